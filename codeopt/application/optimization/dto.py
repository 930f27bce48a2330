"""DTOs for the optimization use case."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from codeopt.domain.entities import BatchResult, FileResult, WriteBackReport


class WriteMode(str, Enum):
    """What to do with optimized content after a batch."""

    NONE = "none"
    DIRECTORY = "directory"
    OVERWRITE = "overwrite"


class JobStatus(str, Enum):
    """Status of a background optimization job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class OptimizeRequest:
    """Request to optimize a solution, directory or single file."""

    path: str
    write_mode: WriteMode = WriteMode.NONE
    output_dir: str | None = None
    backup_dir: str | None = None
    generate_report: bool = True


@dataclass
class OptimizeResponse:
    """Batch outcome plus whatever was written to disk."""

    batch: BatchResult
    write_back: WriteBackReport | None = None
    report_path: str | None = None
    report_error: str | None = None


@dataclass
class CodeOptimizeResponse:
    """Result for one inline snippet, plus the saved copy if one was requested."""

    result: FileResult
    write_back: WriteBackReport | None = None


@dataclass
class OptimizationJob:
    """Batch running in the background, polled and cancelled by id."""

    id: str
    request: OptimizeRequest
    status: JobStatus = JobStatus.PENDING
    processed: int = 0
    total: int = 0
    current_path: str | None = None
    response: OptimizeResponse | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.FAILED)
