"""Source File Scanner - discovers and prioritizes files for optimization.

Production-ready with:
- Solution file (.sln), directory and single-file roots
- Build/tooling directory exclusion
- Binary file detection
- File size and file count limits
"""

import fnmatch
import logging
import re
from pathlib import Path

from codeopt.domain.entities import FileRecord
from codeopt.domain.errors import DiscoveryError

logger = logging.getLogger(__name__)

# Maximum files to collect to prevent memory issues
MAX_FILE_COUNT = 1000

LANGUAGE_BY_EXTENSION = {
    ".cs": "csharp",
    ".py": "python",
    ".java": "java",
    ".ts": "typescript",
    ".js": "javascript",
}

# Directories to always exclude
EXCLUDED_DIRS = {
    ".git",
    ".vs",
    ".idea",
    ".vscode",
    "bin",
    "obj",
    "packages",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    "dist",
    "build",
    "TestResults",
    "*.egg-info",
    # Outputs of earlier runs
    "optimized_solution",
    "backup_*",
}

# Generated files never worth sending for analysis
EXCLUDED_FILES = (
    "*.Designer.cs",
    "*.g.cs",
    "*.g.i.cs",
    "AssemblyInfo.cs",
    "*.AssemblyAttributes.cs",
    "optimized_*",
)

# (pattern, weight): occurrences raise a file's optimization potential
PRIORITY_PATTERNS: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(r"\+=\s*\"|\"\s*\+\s*\w|\w\s*\+\s*\""), 3),  # string concatenation
    (re.compile(r"\bnew\s+(List|Dictionary|HashSet)<[^>]*>\(\s*\)"), 2),  # no capacity
    (re.compile(r"\.ToList\(\)|\.ToArray\(\)"), 2),
    (re.compile(r"\bArrayList\b|\bHashtable\b"), 3),  # boxing collections
    (re.compile(r"\bobject\s+\w+\s*="), 2),  # boxing
    (re.compile(r"\bnew\s+(FileStream|StreamReader|StreamWriter|SqlConnection|MemoryStream)\b"), 2),
    (re.compile(r"\.(Where|Select|OrderBy|GroupBy)\("), 1),
    (re.compile(r"\bforeach\s*\("), 1),
)


def _is_excluded_dir(part: str) -> bool:
    for excluded in EXCLUDED_DIRS:
        if part == excluded or ("*" in excluded and fnmatch.fnmatch(part, excluded)):
            return True
    return False


def is_binary_file(file_path: Path, check_bytes: int = 8192) -> bool:
    """Check if file appears to be binary.

    Checks for null bytes in the first N bytes.
    """
    try:
        with open(file_path, "rb") as f:
            chunk = f.read(check_bytes)
            if b"\x00" in chunk:
                return True
            # Check for high ratio of non-text bytes
            non_text = sum(1 for b in chunk if b < 32 and b not in (9, 10, 13))
            if len(chunk) > 0 and non_text / len(chunk) > 0.3:
                return True
    except OSError:
        return True  # Assume binary if can't read
    return False


def optimization_potential(content: str) -> int:
    """Weighted count of memory-relevant patterns in content."""
    return sum(len(pattern.findall(content)) * weight for pattern, weight in PRIORITY_PATTERNS)


class SourceFileScanner:
    """Implements DiscoveryPort over the local filesystem."""

    def __init__(
        self,
        extensions: list[str] | None = None,
        max_file_size: int = 500 * 1024,
        max_files: int = MAX_FILE_COUNT,
    ) -> None:
        self._extensions = {e.lower() for e in (extensions or [".cs"])}
        self._max_file_size = max_file_size
        self._max_files = max_files

    def _resolve_root(self, root_path: str) -> Path:
        if not root_path or not root_path.strip():
            raise DiscoveryError("Root path is empty")
        root = Path(root_path).expanduser()
        if not root.exists():
            raise DiscoveryError(f"Path not found: {root}")
        return root

    def _is_candidate(self, path: Path, base: Path) -> bool:
        if path.suffix.lower() not in self._extensions:
            return False
        rel_parts = path.relative_to(base).parts
        if any(_is_excluded_dir(part) for part in rel_parts[:-1]):
            return False
        if any(fnmatch.fnmatch(path.name, pattern) for pattern in EXCLUDED_FILES):
            return False
        return True

    def _read(self, path: Path) -> FileRecord | None:
        try:
            size = path.stat().st_size
        except OSError as e:
            logger.warning("Cannot stat %s: %s", path, e)
            return None
        if size > self._max_file_size:
            logger.info("Skipping %s: %d bytes exceeds limit", path, size)
            return None
        if is_binary_file(path):
            return None
        try:
            content = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read %s: %s", path, e)
            return None
        return FileRecord(
            path=str(path),
            content=content,
            language=LANGUAGE_BY_EXTENSION.get(path.suffix.lower(), path.suffix.lstrip(".").lower()),
        )

    def scan(self, root_path: str) -> list[FileRecord]:
        """Collect source files under root_path (directory, .sln file or single file).

        Raises:
            DiscoveryError: if the root does not exist or cannot be listed

        """
        root = self._resolve_root(root_path)
        if root.is_file():
            if root.suffix.lower() == ".sln":
                root = root.parent
            else:
                record = self._read(root) if root.suffix.lower() in self._extensions else None
                return [record] if record else []

        try:
            candidates = sorted(
                p for p in root.rglob("*") if p.is_file() and self._is_candidate(p, root)
            )
        except OSError as e:
            raise DiscoveryError(f"Cannot read directory {root}: {e}") from e

        files: list[FileRecord] = []
        for path in candidates:
            if len(files) >= self._max_files:
                logger.warning("File limit %d reached under %s", self._max_files, root)
                break
            record = self._read(path)
            if record is not None:
                files.append(record)

        logger.info("Scanned %s: %d source files", root, len(files))
        return files

    def prioritize(self, files: list[FileRecord]) -> list[FileRecord]:
        """Most promising files first; equal scores keep scan order."""
        return sorted(files, key=lambda f: -optimization_potential(f.content))
