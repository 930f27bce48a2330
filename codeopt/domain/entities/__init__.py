"""Domain entities."""

from codeopt.domain.entities.optimization import (
    AnalysisOutcome,
    BatchProgress,
    BatchResult,
    FileRecord,
    FileResult,
    MemorySnapshot,
    Severity,
    Suggestion,
    Summary,
    WriteBackReport,
    WriteOutcome,
    WriteState,
)

__all__ = [
    "AnalysisOutcome",
    "BatchProgress",
    "BatchResult",
    "FileRecord",
    "FileResult",
    "MemorySnapshot",
    "Severity",
    "Suggestion",
    "Summary",
    "WriteBackReport",
    "WriteOutcome",
    "WriteState",
]
