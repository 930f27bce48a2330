"""Error kinds of the optimization pipeline."""


class OptimizerError(Exception):
    """Base class for pipeline errors."""


class DiscoveryError(OptimizerError):
    """Root path is invalid or unreadable. Aborts the batch."""


class AnalysisError(OptimizerError):
    """Remote analysis failed or returned an unusable payload. Isolated to one file."""


class WriteBackError(OptimizerError):
    """I/O failure while writing optimized output. Isolated to one file."""


class BackupPreconditionError(WriteBackError):
    """Overwrite attempted without a verified backup copy."""
