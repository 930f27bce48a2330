"""Write-back Manager - emits optimized files, with backup before any overwrite.

Two modes:
- save_to_directory: optimized copies go to a separate output directory as
  optimized_<name>; originals are never touched.
- overwrite_in_place: each original is first copied into a backup directory
  and the copy verified byte-for-byte; only then is the original replaced
  (atomically, via a temp file in the same directory). A file whose backup
  cannot be verified is never overwritten, and an existing backup is never
  replaced: later runs into the same directory take name_2, name_3...

Failures are recorded per file in the returned WriteBackReport, never raised.
"""

import filecmp
import logging
import os
import shutil
import tempfile
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from codeopt.domain.entities import FileResult, WriteBackReport, WriteOutcome, WriteState
from codeopt.domain.errors import BackupPreconditionError, WriteBackError

logger = logging.getLogger(__name__)

OPTIMIZED_PREFIX = "optimized_"
BACKUP_DIR_PREFIX = "backup_"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def _unique_name(name: str, taken: dict[str, int]) -> str:
    """name, then name_2, name_3... for repeats within one batch."""
    key = name.lower()
    taken[key] = taken.get(key, 0) + 1
    if taken[key] == 1:
        return name
    path = Path(name)
    return f"{path.stem}_{taken[key]}{path.suffix}"


def _free_backup_path(directory: Path, name: str, taken: set[str]) -> Path:
    """First of name, name_2, name_3... not used in this batch and not on disk."""
    path = Path(name)
    candidate, n = name, 1
    while candidate.lower() in taken or (directory / candidate).exists():
        n += 1
        candidate = f"{path.stem}_{n}{path.suffix}"
    taken.add(candidate.lower())
    return directory / candidate


def atomic_write_text(path: Path, content: str) -> None:
    """Replace path with content; path is either fully old or fully new."""
    fd, tmp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=f".{path.name}.",
        dir=path.parent,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        if path.exists():
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except Exception:
        # Clean up temp file on error
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class WriteBackManager:
    """Writes optimized content from FileResults back to disk."""

    @staticmethod
    def default_backup_dir(root_path: str | Path, now: datetime | None = None) -> Path:
        """backup_<YYYYmmdd_HHMMSS> next to the analyzed root."""
        root = Path(root_path).resolve()
        stamp = (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)
        return root.parent / f"{BACKUP_DIR_PREFIX}{stamp}"

    def save_to_directory(
        self,
        results: Iterable[FileResult],
        output_dir: str | Path,
    ) -> WriteBackReport:
        """Write optimized_<name> for every result with optimizations."""
        out = Path(output_dir)
        report = WriteBackReport(directory=str(out))
        try:
            out.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create output directory %s: %s", out, e)
            for result in results:
                if result.has_optimizations:
                    report.outcomes.append(WriteOutcome(
                        source_path=result.path,
                        state=WriteState.SAVE_FAILED,
                        error=f"Cannot create output directory: {e}",
                    ))
            return report

        taken: dict[str, int] = {}
        for result in results:
            if not result.has_optimizations:
                continue
            target = out / _unique_name(OPTIMIZED_PREFIX + Path(result.path).name, taken)
            outcome = WriteOutcome(source_path=result.path, target_path=str(target))
            try:
                target.write_text(result.optimized_code, encoding="utf-8")
                outcome.state = WriteState.SAVED
            except OSError as e:
                outcome.state = WriteState.SAVE_FAILED
                outcome.error = str(e)
                logger.warning("Failed to save %s: %s", target, e)
            report.outcomes.append(outcome)

        logger.info(
            "Saved %d optimized files to %s (%d failed)",
            len(report.succeeded),
            out,
            len(report.failed),
        )
        return report

    def _create_backup(self, source: Path, backup: Path) -> None:
        """Copy source to a new backup file and verify the copy.

        An existing file at backup is never replaced.

        Raises:
            BackupPreconditionError: backup exists, copy failed or differs from the source

        """
        try:
            with open(source, "rb") as src:
                try:
                    dst = open(backup, "xb")
                except FileExistsError as e:
                    raise BackupPreconditionError(f"Backup {backup} already exists") from e
                try:
                    with dst:
                        shutil.copyfileobj(src, dst)
                    shutil.copystat(source, backup)
                except OSError:
                    backup.unlink(missing_ok=True)
                    raise
        except OSError as e:
            raise BackupPreconditionError(f"Backup copy failed: {e}") from e
        try:
            identical = filecmp.cmp(source, backup, shallow=False)
        except OSError as e:
            raise BackupPreconditionError(f"Backup verification failed: {e}") from e
        if not identical:
            raise BackupPreconditionError(f"Backup {backup} differs from original")

    def _overwrite(self, source: Path, content: str) -> None:
        try:
            atomic_write_text(source, content)
        except OSError as e:
            raise WriteBackError(f"Overwrite failed: {e}") from e

    def overwrite_in_place(
        self,
        results: Iterable[FileResult],
        backup_dir: str | Path,
    ) -> WriteBackReport:
        """Back up then overwrite every original that has optimizations."""
        backups = Path(backup_dir)
        report = WriteBackReport(directory=str(backups))
        try:
            backups.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create backup directory %s: %s", backups, e)
            for result in results:
                if result.has_optimizations:
                    report.outcomes.append(WriteOutcome(
                        source_path=result.path,
                        state=WriteState.BACKUP_FAILED,
                        error=f"Cannot create backup directory: {e}",
                    ))
            return report

        taken: set[str] = set()
        for result in results:
            if not result.has_optimizations:
                continue
            source = Path(result.path)
            backup = _free_backup_path(backups, source.name, taken)
            outcome = WriteOutcome(source_path=result.path, target_path=str(source))
            report.outcomes.append(outcome)

            try:
                self._create_backup(source, backup)
            except BackupPreconditionError as e:
                outcome.state = WriteState.BACKUP_FAILED
                outcome.error = str(e)
                logger.warning("Skipping overwrite of %s: %s", source, e)
                continue
            outcome.state = WriteState.BACKED_UP
            outcome.backup_path = str(backup)

            try:
                self._overwrite(source, result.optimized_code)
            except WriteBackError as e:
                outcome.state = WriteState.OVERWRITE_FAILED
                outcome.error = str(e)
                logger.warning("Original %s left unchanged, backup at %s: %s", source, backup, e)
                continue
            outcome.state = WriteState.OVERWRITTEN

        logger.info(
            "Overwrote %d files, backups in %s (%d failed)",
            len(report.succeeded),
            backups,
            len(report.failed),
        )
        return report

    def restore_backup(self, backup_path: str | Path, original_path: str | Path) -> WriteOutcome:
        """Restore original_path from backup_path."""
        backup = Path(backup_path)
        original = Path(original_path)
        outcome = WriteOutcome(
            source_path=str(original),
            target_path=str(original),
            backup_path=str(backup),
        )
        if not backup.is_file():
            outcome.state = WriteState.OVERWRITE_FAILED
            outcome.error = f"Backup not found: {backup}"
            return outcome
        try:
            original.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{original.name}.", suffix=".tmp", dir=original.parent)
        except OSError as e:
            outcome.state = WriteState.OVERWRITE_FAILED
            outcome.error = str(e)
            return outcome
        os.close(fd)
        try:
            shutil.copy2(backup, tmp_path)
            os.replace(tmp_path, original)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            outcome.state = WriteState.OVERWRITE_FAILED
            outcome.error = str(e)
            return outcome
        logger.info("Restored %s from %s", original, backup)
        outcome.state = WriteState.OVERWRITTEN
        return outcome
