"""Memory Sampler - point readings of this process's memory counters.

Readings describe the optimizer process itself (the tool that calls the
LLM), not the program whose sources are being analyzed. Before/after
numbers in results therefore reflect the tool's own heap, combined with the
estimation policy in codeopt.domain.services.memory_estimation.

tracemalloc runs only inside tracing() windows (one per batch), so the
allocation counter is not paid for while the service is idle.
"""

import gc
import logging
import os
import sys
import threading
import tracemalloc
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from codeopt.domain.entities import MemorySnapshot

logger = logging.getLogger(__name__)

_STATM = Path("/proc/self/statm")

_windows_lock = threading.Lock()
_open_windows = 0
_owns_tracing = False


def _open_window() -> None:
    global _open_windows, _owns_tracing
    with _windows_lock:
        if _open_windows == 0 and not tracemalloc.is_tracing():
            tracemalloc.start()
            _owns_tracing = True
            logger.debug("tracemalloc started")
        _open_windows += 1


def _close_window() -> None:
    global _open_windows, _owns_tracing
    with _windows_lock:
        _open_windows -= 1
        # Tracing started elsewhere is left running
        if _open_windows == 0 and _owns_tracing:
            tracemalloc.stop()
            _owns_tracing = False
            logger.debug("tracemalloc stopped")


def _resident_set_bytes() -> int:
    """Current RSS from /proc on Linux, else peak RSS from getrusage, else 0."""
    try:
        pages = int(_STATM.read_text().split()[1])
        return pages * os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError, IndexError):
        pass
    try:
        import resource
    except ImportError:
        return 0
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports KiB, macOS reports bytes
    return peak if sys.platform == "darwin" else peak * 1024


def format_bytes(count: int) -> str:
    """Human-readable byte count (GB / MB / KB / Bytes)."""
    scale = 1024
    orders = ("GB", "MB", "KB")
    sign = "-" if count < 0 else ""
    value = abs(count)
    limit = scale ** len(orders)
    for order in orders:
        if value >= limit:
            return f"{sign}{value / limit:.2f} {order}"
        limit //= scale
    return f"{sign}{value} Bytes"


class MemorySampler:
    """Takes MemorySnapshot readings of the current process."""

    def __init__(self, collect: bool = True, trace_allocations: bool = True) -> None:
        """Initialize sampler.

        Args:
            collect: run one full garbage collection before each reading
            trace_allocations: run tracemalloc inside tracing() windows
        """
        self._collect = collect
        self._trace_allocations = trace_allocations

    @contextmanager
    def tracing(self) -> Iterator[None]:
        """Keep allocation tracing on for the duration of the block.

        Windows may overlap (concurrent batches); tracing stops when the last
        one closes, unless it was already running before the first opened.
        """
        if not self._trace_allocations:
            yield
            return
        _open_window()
        try:
            yield
        finally:
            _close_window()

    def sample(self) -> MemorySnapshot:
        """Read allocation, working set and per-generation collection counters now."""
        if self._collect:
            gc.collect()
        allocated = tracemalloc.get_traced_memory()[0] if tracemalloc.is_tracing() else 0
        stats = gc.get_stats()
        return MemorySnapshot(
            allocated_bytes=allocated,
            working_set=_resident_set_bytes(),
            gen0_collections=stats[0]["collections"],
            gen1_collections=stats[1]["collections"],
            gen2_collections=stats[2]["collections"],
            captured_at=datetime.now(),
        )

    @staticmethod
    def delta(before: MemorySnapshot, after: MemorySnapshot) -> MemorySnapshot:
        """Counter-wise after - before. Negative values are kept."""
        return MemorySnapshot(
            allocated_bytes=after.allocated_bytes - before.allocated_bytes,
            working_set=after.working_set - before.working_set,
            gen0_collections=after.gen0_collections - before.gen0_collections,
            gen1_collections=after.gen1_collections - before.gen1_collections,
            gen2_collections=after.gen2_collections - before.gen2_collections,
            captured_at=after.captured_at,
        )

