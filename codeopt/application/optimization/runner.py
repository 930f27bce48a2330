"""Per-file analysis runner - the failure isolation point of a batch."""

import asyncio
from contextlib import AbstractContextManager

import structlog

from codeopt.domain.entities import FileRecord, FileResult
from codeopt.domain.ports.analysis import AnalysisPort
from codeopt.domain.services.memory_estimation import (
    estimate_saving,
    improvement_percentage,
    project_optimized_snapshot,
)
from codeopt.infrastructure.profiling.memory_sampler import MemorySampler

log = structlog.get_logger()


class FileAnalysisRunner:
    """Analyzes one file and turns the outcome into a FileResult."""

    def __init__(
        self,
        analyzer: AnalysisPort,
        sampler: MemorySampler | None = None,
    ) -> None:
        self._analyzer = analyzer
        self._sampler = sampler or MemorySampler()

    def tracing(self) -> AbstractContextManager:
        """Allocation tracing window; wrap a batch of run() calls in it."""
        return self._sampler.tracing()

    async def run(self, record: FileRecord) -> FileResult:
        """Run analysis for record. Collaborator failures become a failed FileResult."""
        # Readings run a full collection, kept off the event loop
        before = await asyncio.to_thread(self._sampler.sample)
        try:
            outcome = await self._analyzer.analyze(record)
        except Exception as e:  # noqa: BLE001
            error = str(e) or type(e).__name__
            log.warning("file_analysis_failed", path=record.path, error=error)
            return FileResult.failed(record, error, before)

        suggestions = tuple(outcome.suggestions)
        # Estimated, see memory_estimation
        reading = await asyncio.to_thread(self._sampler.sample)
        after = project_optimized_snapshot(reading, estimate_saving(suggestions))
        return FileResult(
            path=record.path,
            original_code=record.content,
            optimized_code=outcome.optimized_code or record.content,
            suggestions=suggestions,
            memory_before=before,
            memory_after=after,
            improvement_percentage=improvement_percentage(before, after),
        )
