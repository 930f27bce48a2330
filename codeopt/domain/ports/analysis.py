"""Collaborator ports consumed by the optimization pipeline."""

from typing import Protocol

from codeopt.domain.entities import AnalysisOutcome, BatchProgress, FileRecord


class DiscoveryPort(Protocol):
    """Enumerates candidate files and orders them by optimization potential."""

    def scan(self, root_path: str) -> list[FileRecord]:
        """Return source files under root_path. Raises DiscoveryError on invalid roots."""
        ...

    def prioritize(self, files: list[FileRecord]) -> list[FileRecord]:
        """Stable reordering of the same files, most promising first."""
        ...


class AnalysisPort(Protocol):
    """Remote per-file analysis. May fail, time out or reply with free text."""

    async def analyze(self, record: FileRecord) -> AnalysisOutcome:
        """Return suggestions and optimized content for one file."""
        ...


class ProgressSink(Protocol):
    """Receives a progress observation after each analyzed file."""

    def __call__(self, progress: BatchProgress) -> None:
        ...
