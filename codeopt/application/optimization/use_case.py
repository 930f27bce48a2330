"""Optimization use case - batch run, then report and optional write-back.

Batches run either inline (optimize) or as background jobs that are polled
and cancelled by id (start_job, get_job, cancel_job). Single snippets sent
as text go through the same per-file runner (optimize_code).
"""

import asyncio
import uuid
from pathlib import Path

import structlog

from codeopt.application.optimization.dto import (
    CodeOptimizeResponse,
    JobStatus,
    OptimizationJob,
    OptimizeRequest,
    OptimizeResponse,
    WriteMode,
)
from codeopt.application.optimization.orchestrator import BatchOrchestrator, log_progress
from codeopt.domain.entities import BatchProgress, BatchResult, FileRecord, WriteBackReport
from codeopt.domain.ports.analysis import ProgressSink
from codeopt.infrastructure.agents.file_writer import WriteBackManager
from codeopt.infrastructure.report.html_report import HtmlReportGenerator
from codeopt.infrastructure.scanner.file_scanner import LANGUAGE_BY_EXTENSION

log = structlog.get_logger()

# Finished jobs beyond this count are forgotten, oldest first
MAX_KEPT_JOBS = 50


def base_directory(root_path: str) -> Path:
    """Directory that holds outputs for root_path: the root itself, or a file's parent."""
    root = Path(root_path).expanduser().resolve()
    return root.parent if root.is_file() else root


def snippet_name(language: str) -> str:
    """Default file name for an inline snippet: snippet.cs, snippet.py..."""
    for extension, name in LANGUAGE_BY_EXTENSION.items():
        if name == language:
            return f"snippet{extension}"
    return "snippet.txt"


class OptimizationUseCase:
    """Runs a batch and hands the result to the report and write-back consumers."""

    def __init__(
        self,
        orchestrator: BatchOrchestrator,
        write_back: WriteBackManager | None = None,
        report_generator: HtmlReportGenerator | None = None,
        output_dir_name: str = "optimized_solution",
        report_name: str = "optimization_report.html",
        max_jobs: int = MAX_KEPT_JOBS,
    ) -> None:
        self._orchestrator = orchestrator
        self._write_back = write_back or WriteBackManager()
        self._report_generator = report_generator or HtmlReportGenerator()
        self._output_dir_name = output_dir_name
        self._report_name = report_name
        self._max_jobs = max_jobs
        self._jobs: dict[str, OptimizationJob] = {}

    async def optimize(
        self,
        request: OptimizeRequest,
        cancel_event: asyncio.Event | None = None,
        progress: ProgressSink | None = None,
    ) -> OptimizeResponse:
        batch = await self._orchestrator.run(request.path, cancel_event, progress)
        response = OptimizeResponse(batch=batch)

        if request.generate_report and not (batch.error and not batch.file_results):
            report_path = base_directory(request.path) / self._report_name
            try:
                saved = await asyncio.to_thread(self._report_generator.save_report, batch, report_path)
                response.report_path = str(saved)
            except OSError as e:
                response.report_error = str(e)
                log.warning("report_save_failed", path=str(report_path), error=str(e))

        if request.write_mode != WriteMode.NONE:
            response.write_back = await self.write_back(
                batch,
                request.write_mode,
                output_dir=request.output_dir,
                backup_dir=request.backup_dir,
            )
        return response

    async def write_back(
        self,
        batch: BatchResult,
        mode: WriteMode,
        output_dir: str | None = None,
        backup_dir: str | None = None,
    ) -> WriteBackReport | None:
        """Persist optimized content of batch according to mode."""
        if mode == WriteMode.DIRECTORY:
            target = output_dir or str(base_directory(batch.root_path) / self._output_dir_name)
            report = await asyncio.to_thread(
                self._write_back.save_to_directory, batch.file_results, target
            )
        elif mode == WriteMode.OVERWRITE:
            target = backup_dir or str(self._write_back.default_backup_dir(batch.root_path))
            report = await asyncio.to_thread(
                self._write_back.overwrite_in_place, batch.file_results, target
            )
        else:
            return None
        log.info(
            "write_back_finished",
            mode=mode.value,
            directory=report.directory,
            written=len(report.succeeded),
            failed=len(report.failed),
        )
        return report

    async def optimize_code(
        self,
        content: str,
        language: str = "csharp",
        filename: str | None = None,
        output_dir: str | None = None,
    ) -> CodeOptimizeResponse:
        """Analyze one snippet sent as text; save optimized_<name> when output_dir is given."""
        record = FileRecord(
            path=Path(filename).name if filename else snippet_name(language),
            content=content,
            language=language,
        )
        runner = self._orchestrator.runner
        with runner.tracing():
            result = await runner.run(record)
        log.info(
            "snippet_analyzed",
            path=record.path,
            success=result.success,
            optimizations=result.optimization_count,
        )
        response = CodeOptimizeResponse(result=result)
        if output_dir:
            response.write_back = await asyncio.to_thread(
                self._write_back.save_to_directory, [result], output_dir
            )
        return response

    # Background jobs

    def start_job(self, request: OptimizeRequest) -> OptimizationJob:
        """Run request as a background task and return its job handle."""
        self._prune_jobs()
        job = OptimizationJob(id=uuid.uuid4().hex, request=request)
        self._jobs[job.id] = job
        job.task = asyncio.create_task(self._run_job(job))
        log.info("job_started", job_id=job.id, path=request.path)
        return job

    def get_job(self, job_id: str) -> OptimizationJob | None:
        return self._jobs.get(job_id)

    def cancel_job(self, job_id: str) -> OptimizationJob | None:
        """Ask a job to stop before its next file. Finished jobs are left as they are."""
        job = self._jobs.get(job_id)
        if job is not None and not job.finished:
            job.cancel_event.set()
            log.info("job_cancel_requested", job_id=job_id, processed=job.processed)
        return job

    async def shutdown(self) -> None:
        """Cancel the tasks of unfinished jobs and wait for them to end."""
        tasks = [j.task for j in self._jobs.values() if j.task is not None and not j.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _prune_jobs(self) -> None:
        finished = [job_id for job_id, job in self._jobs.items() if job.finished]
        excess = len(self._jobs) - self._max_jobs + 1
        for job_id in finished[:max(0, excess)]:
            del self._jobs[job_id]

    async def _run_job(self, job: OptimizationJob) -> None:
        def track(progress: BatchProgress) -> None:
            job.processed = progress.processed
            job.total = progress.total
            job.current_path = progress.path
            log_progress(progress)

        job.status = JobStatus.RUNNING
        try:
            job.response = await self.optimize(job.request, job.cancel_event, track)
        except asyncio.CancelledError:
            job.status = JobStatus.CANCELLED
            job.error = "Stopped on shutdown"
            raise
        except Exception as e:  # noqa: BLE001
            job.status = JobStatus.FAILED
            job.error = str(e) or type(e).__name__
            log.exception("job_failed", job_id=job.id)
            return

        batch = job.response.batch
        job.processed = len(batch.file_results)
        job.status = JobStatus.CANCELLED if batch.cancelled else JobStatus.COMPLETED
        job.error = batch.error
        log.info("job_finished", job_id=job.id, status=job.status.value, processed=job.processed)
