"""Optimization entities: files, suggestions, memory readings and batch results.

FileRecord flows in from discovery, FileResult is produced once per file by
FileAnalysisRunner, BatchResult accumulates them and carries the Summary.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class Severity(str, Enum):
    """Severity of an optimization suggestion."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def normalize(cls, value: "str | Severity | None") -> "Severity":
        """Map collaborator-provided severity to a known level (default: Medium)."""
        if isinstance(value, Severity):
            return value
        if value:
            text = str(value).strip().lower()
            for level in cls:
                if level.value.lower() == text:
                    return level
        return cls.MEDIUM


@dataclass(frozen=True)
class FileRecord:
    """Source file handed over by discovery."""

    path: str
    content: str = ""
    language: str = "csharp"

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("FileRecord.path must not be empty")
        if self.content is None:
            object.__setattr__(self, "content", "")


@dataclass(frozen=True)
class Suggestion:
    """One optimization finding."""

    category: str
    description: str = ""
    location: str | None = None
    severity: Severity = Severity.MEDIUM
    before: str | None = None
    after: str | None = None


@dataclass(frozen=True)
class MemorySnapshot:
    """Point-in-time reading of the optimizer process's own memory counters.

    A delta snapshot (after - before) may hold negative values.
    """

    allocated_bytes: int = 0
    working_set: int = 0
    gen0_collections: int = 0
    gen1_collections: int = 0
    gen2_collections: int = 0
    captured_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class AnalysisOutcome:
    """What the analysis collaborator returned for one file."""

    suggestions: tuple[Suggestion, ...] = ()
    optimized_code: str = ""
    raw_response: str = ""
    structured: bool = True


@dataclass(frozen=True)
class FileResult:
    """Outcome of analyzing one file. Immutable once returned."""

    path: str
    original_code: str
    optimized_code: str
    suggestions: tuple[Suggestion, ...] = ()
    memory_before: MemorySnapshot = field(default_factory=MemorySnapshot)
    memory_after: MemorySnapshot = field(default_factory=MemorySnapshot)
    improvement_percentage: float = 0.0
    success: bool = True
    error: str | None = None
    analyzed_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if self.error and self.success:
            raise ValueError("FileResult with an error cannot be successful")
        if not 0.0 <= self.improvement_percentage <= 100.0:
            raise ValueError(f"improvement_percentage out of range: {self.improvement_percentage}")

    @property
    def optimization_count(self) -> int:
        return len(self.suggestions)

    @property
    def has_optimizations(self) -> bool:
        return self.optimization_count > 0

    @classmethod
    def failed(
        cls,
        record: FileRecord,
        error: str,
        snapshot: MemorySnapshot | None = None,
    ) -> "FileResult":
        """Result for a file whose analysis failed: original code kept, no suggestions."""
        snapshot = snapshot or MemorySnapshot()
        return cls(
            path=record.path,
            original_code=record.content,
            optimized_code=record.content,
            memory_before=snapshot,
            memory_after=snapshot,
            improvement_percentage=0.0,
            success=False,
            error=error,
        )


@dataclass
class Summary:
    """Statistics derived from a batch of FileResults."""

    total_files_analyzed: int = 0
    files_with_optimizations: int = 0
    files_failed: int = 0
    total_optimizations: int = 0
    average_improvement: float = 0.0
    analysis_duration: timedelta = field(default_factory=timedelta)
    top_optimization_types: list[tuple[str, int]] = field(default_factory=list)
    most_optimized_files: list[FileResult] = field(default_factory=list)


@dataclass
class BatchResult:
    """Outcome of one orchestration run. Append-only while the run is active."""

    root_path: str
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    file_results: list[FileResult] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)
    error: str | None = None
    cancelled: bool = False
    batch_id: str = ""

    def add(self, result: FileResult) -> None:
        self.file_results.append(result)

    def finish(self, when: datetime | None = None) -> None:
        """Stamp end_time, never earlier than start_time."""
        when = when or datetime.now()
        self.end_time = max(when, self.start_time)

    @property
    def duration(self) -> timedelta:
        if self.end_time is None:
            return timedelta()
        return self.end_time - self.start_time

    @property
    def succeeded(self) -> list[FileResult]:
        return [r for r in self.file_results if r.success]

    @property
    def failed(self) -> list[FileResult]:
        return [r for r in self.file_results if not r.success]


@dataclass(frozen=True)
class BatchProgress:
    """Progress observation emitted after each file."""

    processed: int
    total: int
    path: str
    success: bool
    optimization_count: int

    @property
    def has_optimizations(self) -> bool:
        return self.optimization_count > 0


class WriteState(str, Enum):
    """Per-file write-back state.

    Overwrite: PENDING -> BACKED_UP -> OVERWRITTEN, or PENDING -> BACKUP_FAILED,
    or PENDING -> BACKED_UP -> OVERWRITE_FAILED.
    Save to directory: PENDING -> SAVED or PENDING -> SAVE_FAILED.
    """

    PENDING = "pending"
    BACKED_UP = "backed_up"
    OVERWRITTEN = "overwritten"
    BACKUP_FAILED = "backup_failed"
    OVERWRITE_FAILED = "overwrite_failed"
    SAVED = "saved"
    SAVE_FAILED = "save_failed"


_SUCCESS_STATES = frozenset({WriteState.OVERWRITTEN, WriteState.SAVED})


@dataclass
class WriteOutcome:
    """Write-back result for one file."""

    source_path: str
    state: WriteState = WriteState.PENDING
    target_path: str | None = None
    backup_path: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.state in _SUCCESS_STATES


@dataclass
class WriteBackReport:
    """Accumulated write-back outcomes for one batch."""

    directory: str
    outcomes: list[WriteOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[WriteOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[WriteOutcome]:
        return [o for o in self.outcomes if not o.success]
