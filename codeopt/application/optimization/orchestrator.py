"""Batch orchestration - discovery, paced sequential analysis, aggregation.

Files are analyzed one at a time with a fixed delay between calls: the
remote analysis service enforces a shared rate limit, so concurrency would
only trade latency for throttling errors. Results keep the prioritized input
order. run() never raises except for task cancellation; faults outside the
per-file boundary land in BatchResult.error.
"""

import asyncio
from datetime import datetime

import structlog

from codeopt.application.optimization.aggregator import Aggregator
from codeopt.application.optimization.runner import FileAnalysisRunner
from codeopt.domain.entities import BatchProgress, BatchResult, FileRecord
from codeopt.domain.errors import DiscoveryError
from codeopt.domain.ports.analysis import DiscoveryPort, ProgressSink
from codeopt.shared.logging import batch_log_context

log = structlog.get_logger()

DEFAULT_PACING_DELAY = 0.5


def log_progress(progress: BatchProgress) -> None:
    """Default progress sink."""
    log.info(
        "file_processed",
        processed=progress.processed,
        total=progress.total,
        path=progress.path,
        success=progress.success,
        optimizations=progress.optimization_count,
    )


class BatchOrchestrator:
    """Drives FileAnalysisRunner over a prioritized file list."""

    def __init__(
        self,
        discovery: DiscoveryPort,
        runner: FileAnalysisRunner,
        aggregator: Aggregator | None = None,
        pacing_delay: float = DEFAULT_PACING_DELAY,
        progress: ProgressSink | None = None,
    ) -> None:
        if pacing_delay < 0:
            raise ValueError("pacing_delay must be >= 0")
        self._discovery = discovery
        self._runner = runner
        self._aggregator = aggregator or Aggregator()
        self._pacing_delay = pacing_delay
        self._progress = progress or log_progress

    @property
    def runner(self) -> FileAnalysisRunner:
        return self._runner

    def _discover(self, root_path: str) -> list[FileRecord]:
        files = self._discovery.scan(root_path)
        return self._discovery.prioritize(files) if files else []

    def _emit(self, sink: ProgressSink, progress: BatchProgress) -> None:
        try:
            sink(progress)
        except Exception as e:  # noqa: BLE001
            log.warning("progress_sink_failed", path=progress.path, error=str(e))

    async def run(
        self,
        root_path: str,
        cancel_event: asyncio.Event | None = None,
        progress: ProgressSink | None = None,
    ) -> BatchResult:
        """Analyze every file discovered under root_path.

        Args:
            root_path: directory, solution file or single source file
            cancel_event: checked before each file; when set the batch stops
                and returns the results gathered so far
            progress: sink for this run only, in place of the default one

        """
        with batch_log_context(root_path) as batch_id:
            batch = BatchResult(root_path=root_path, start_time=datetime.now(), batch_id=batch_id)
            log.info("batch_started")
            files = await self._discover_safely(batch)
            with self._runner.tracing():
                await self._analyze_all(batch, files, cancel_event, progress or self._progress)

            batch.finish()
            batch.summary = self._aggregator.summarize(batch.file_results, batch.duration)
            log.info(
                "batch_finished",
                files=len(batch.file_results),
                failed=batch.summary.files_failed,
                optimizations=batch.summary.total_optimizations,
                duration_s=round(batch.duration.total_seconds(), 3),
            )
        return batch

    async def _discover_safely(self, batch: BatchResult) -> list[FileRecord]:
        try:
            return await asyncio.to_thread(self._discover, batch.root_path)
        except DiscoveryError as e:
            batch.error = str(e)
            log.error("discovery_failed", error=batch.error)
        except Exception as e:  # noqa: BLE001
            batch.error = f"Discovery failed: {e}"
            log.exception("discovery_failed")
        return []

    async def _analyze_all(
        self,
        batch: BatchResult,
        files: list[FileRecord],
        cancel_event: asyncio.Event | None,
        sink: ProgressSink,
    ) -> None:
        total = len(files)
        try:
            for index, record in enumerate(files):
                if index > 0 and self._pacing_delay > 0:
                    await asyncio.sleep(self._pacing_delay)
                if cancel_event is not None and cancel_event.is_set():
                    batch.cancelled = True
                    batch.error = f"Cancelled after {index} of {total} files"
                    log.info("batch_cancelled", processed=index, total=total)
                    return

                result = await self._runner.run(record)
                batch.add(result)
                self._emit(sink, BatchProgress(
                    processed=index + 1,
                    total=total,
                    path=record.path,
                    success=result.success,
                    optimization_count=result.optimization_count,
                ))
        except Exception as e:  # noqa: BLE001
            batch.error = f"Batch aborted: {e}"
            log.exception("batch_aborted", processed=len(batch.file_results))
