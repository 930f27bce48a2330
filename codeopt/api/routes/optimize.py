"""Optimization API routes."""

import tempfile
from pathlib import Path
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from codeopt.api.dependencies import (
    get_config,
    get_optimization_use_case,
    get_write_back,
    limiter,
)
from codeopt.application.optimization import (
    OptimizationJob,
    OptimizationUseCase,
    OptimizeRequest,
    OptimizeResponse,
    WriteMode,
)
from codeopt.domain.entities import BatchResult, FileResult, MemorySnapshot, WriteBackReport, WriteOutcome
from codeopt.infrastructure.agents.file_writer import WriteBackManager
from codeopt.infrastructure.profiling.memory_sampler import MemorySampler

router = APIRouter(prefix="/optimize", tags=["optimize"])


def _rate_limit() -> str:
    return f"{get_config().security.rate_limit_requests_per_minute}/minute"


# Request/Response models


class OptimizeRequestModel(BaseModel):
    """Request to optimize a solution file, directory or single source file."""

    path: str
    write_mode: Literal["none", "directory", "overwrite"] = "none"
    output_dir: str | None = None
    backup_dir: str | None = None
    generate_report: bool = True
    include_code: bool = False


class CodeRequestModel(BaseModel):
    """Request to optimize one snippet sent as text."""

    content: str = Field(..., min_length=1)
    language: str = "csharp"
    filename: str | None = Field(None, max_length=255, pattern=r"^[^\\/]+$")
    output_dir: str | None = None
    include_code: bool = True


class RestoreRequestModel(BaseModel):
    """Request to restore one file from its backup copy."""

    backup_path: str
    original_path: str


def _allowed_roots() -> list[Path]:
    return [Path.cwd().resolve(), Path(tempfile.gettempdir()).resolve()]


def _resolve_path_allowed(path_str: str) -> Path:
    """Resolve path and ensure it is under cwd or the temp directory (security)."""
    path = Path(path_str).expanduser().resolve()
    for root in _allowed_roots():
        try:
            path.relative_to(root)
            return path
        except ValueError:
            continue
    raise HTTPException(
        status_code=403,
        detail="Path must be inside the working directory or the temp directory",
    )


def _snapshot_to_dict(s: MemorySnapshot) -> dict:
    return {
        "allocated_bytes": s.allocated_bytes,
        "working_set": s.working_set,
        "gen0_collections": s.gen0_collections,
        "gen1_collections": s.gen1_collections,
        "gen2_collections": s.gen2_collections,
        "captured_at": s.captured_at.isoformat(),
    }


def _file_result_to_dict(r: FileResult, include_code: bool) -> dict:
    data = {
        "path": r.path,
        "success": r.success,
        "error": r.error,
        "optimization_count": r.optimization_count,
        "improvement_percentage": round(r.improvement_percentage, 2),
        "memory_before": _snapshot_to_dict(r.memory_before),
        "memory_after": _snapshot_to_dict(r.memory_after),
        "memory_delta": _snapshot_to_dict(MemorySampler.delta(r.memory_before, r.memory_after)),
        "suggestions": [
            {
                "category": s.category,
                "description": s.description,
                "location": s.location,
                "severity": s.severity.value,
                "before": s.before,
                "after": s.after,
            }
            for s in r.suggestions
        ],
    }
    if include_code:
        data["optimized_code"] = r.optimized_code
    return data


def _batch_to_dict(batch: BatchResult, include_code: bool) -> dict:
    s = batch.summary
    return {
        "batch_id": batch.batch_id,
        "root_path": batch.root_path,
        "start_time": batch.start_time.isoformat(),
        "end_time": batch.end_time.isoformat() if batch.end_time else None,
        "error": batch.error,
        "cancelled": batch.cancelled,
        "summary": {
            "total_files_analyzed": s.total_files_analyzed,
            "files_with_optimizations": s.files_with_optimizations,
            "files_failed": s.files_failed,
            "total_optimizations": s.total_optimizations,
            "average_improvement": round(s.average_improvement, 2),
            "analysis_duration_seconds": s.analysis_duration.total_seconds(),
            "top_optimization_types": [
                {"category": category, "count": count} for category, count in s.top_optimization_types
            ],
            "most_optimized_files": [
                {"path": f.path, "optimization_count": f.optimization_count}
                for f in s.most_optimized_files
            ],
        },
        "file_results": [_file_result_to_dict(r, include_code) for r in batch.file_results],
    }


def _outcome_to_dict(o: WriteOutcome) -> dict:
    return {
        "source_path": o.source_path,
        "state": o.state.value,
        "success": o.success,
        "target_path": o.target_path,
        "backup_path": o.backup_path,
        "error": o.error,
    }


def _write_back_to_dict(report: WriteBackReport | None) -> dict | None:
    if report is None:
        return None
    return {
        "directory": report.directory,
        "written": len(report.succeeded),
        "failed": len(report.failed),
        "outcomes": [_outcome_to_dict(o) for o in report.outcomes],
    }


def _response_to_dict(result: OptimizeResponse, include_code: bool) -> dict:
    return {
        **_batch_to_dict(result.batch, include_code),
        "write_back": _write_back_to_dict(result.write_back),
        "report_path": result.report_path,
        "report_error": result.report_error,
    }


def _job_to_dict(job: OptimizationJob, include_code: bool = False) -> dict:
    return {
        "job_id": job.id,
        "status": job.status.value,
        "path": job.request.path,
        "processed": job.processed,
        "total": job.total,
        "current_path": job.current_path,
        "error": job.error,
        "created_at": job.created_at.isoformat(),
        "result": _response_to_dict(job.response, include_code) if job.response else None,
    }


def _to_request(body: OptimizeRequestModel) -> OptimizeRequest:
    """Validate paths of body and build the use case request."""
    path = _resolve_path_allowed(body.path)
    if not path.exists():
        raise HTTPException(status_code=404, detail=f"Path not found: {body.path}")

    output_dir = str(_resolve_path_allowed(body.output_dir)) if body.output_dir else None
    backup_dir = str(_resolve_path_allowed(body.backup_dir)) if body.backup_dir else None
    return OptimizeRequest(
        path=str(path),
        write_mode=WriteMode(body.write_mode),
        output_dir=output_dir,
        backup_dir=backup_dir,
        generate_report=body.generate_report,
    )


def _job_or_404(job: OptimizationJob | None, job_id: str) -> OptimizationJob:
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return job


# Endpoints


@router.post("")
@limiter.limit(_rate_limit)
async def optimize(
    request: Request,
    body: OptimizeRequestModel,
    use_case: OptimizationUseCase = Depends(get_optimization_use_case),
):
    """Analyze files under path and optionally write optimized output.

    Returns:
        - summary, file_results, error, cancelled
        - write_back: per-file outcomes when write_mode is not "none"
        - report_path: generated HTML report, if requested
    """
    result = await use_case.optimize(_to_request(body))
    return _response_to_dict(result, body.include_code)


@router.post("/jobs", status_code=202)
@limiter.limit(_rate_limit)
async def start_job(
    request: Request,
    body: OptimizeRequestModel,
    use_case: OptimizationUseCase = Depends(get_optimization_use_case),
):
    """Start the same batch as POST /optimize in the background.

    Poll GET /optimize/jobs/{job_id} for progress and the final result.
    """
    job = use_case.start_job(_to_request(body))
    return {"job_id": job.id, "status": job.status.value}


@router.get("/jobs/{job_id}")
@limiter.limit("120/minute")
async def get_job(
    request: Request,
    job_id: str,
    include_code: bool = False,
    use_case: OptimizationUseCase = Depends(get_optimization_use_case),
):
    """Status, progress (processed of total, current file) and, once finished, the result."""
    job = _job_or_404(use_case.get_job(job_id), job_id)
    return _job_to_dict(job, include_code)


@router.post("/jobs/{job_id}/cancel")
@limiter.limit(_rate_limit)
async def cancel_job(
    request: Request,
    job_id: str,
    use_case: OptimizationUseCase = Depends(get_optimization_use_case),
):
    """Stop a job before its next file. Results gathered so far are kept."""
    job = _job_or_404(use_case.cancel_job(job_id), job_id)
    return _job_to_dict(job)


@router.post("/code")
@limiter.limit(_rate_limit)
async def optimize_code(
    request: Request,
    body: CodeRequestModel,
    use_case: OptimizationUseCase = Depends(get_optimization_use_case),
):
    """Analyze one snippet sent as text.

    With output_dir the optimized snippet is also saved there as
    optimized_<filename>.
    """
    max_size = get_config().optimizer.max_file_size
    if len(body.content.encode("utf-8")) > max_size:
        raise HTTPException(status_code=413, detail=f"Content exceeds {max_size} bytes")
    output_dir = str(_resolve_path_allowed(body.output_dir)) if body.output_dir else None

    result = await use_case.optimize_code(
        body.content,
        language=body.language,
        filename=body.filename,
        output_dir=output_dir,
    )
    return {
        **_file_result_to_dict(result.result, body.include_code),
        "write_back": _write_back_to_dict(result.write_back),
    }


@router.post("/restore")
@limiter.limit(_rate_limit)
async def restore(
    request: Request,
    body: RestoreRequestModel,
    write_back: WriteBackManager = Depends(get_write_back),
):
    """Restore an overwritten file from its backup copy."""
    backup = _resolve_path_allowed(body.backup_path)
    original = _resolve_path_allowed(body.original_path)
    outcome = write_back.restore_backup(backup, original)
    if not outcome.success:
        raise HTTPException(status_code=400, detail=outcome.error or "Restore failed")
    return _outcome_to_dict(outcome)
