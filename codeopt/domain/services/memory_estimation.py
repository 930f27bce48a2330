"""Estimated memory saving per suggestion category.

This is an estimation policy, not profiling. No optimized build is compiled
or run: each suggestion category is assumed to save a fixed fraction of
memory, the fractions are summed and the total is capped at 50%. The
"after" snapshot is the optimizer process's own fresh reading scaled down by
that estimate.
"""

from dataclasses import replace
from typing import Iterable

from codeopt.domain.entities import MemorySnapshot, Suggestion

# Checked in order; first substring found in the lower-cased category wins.
CATEGORY_SAVINGS: tuple[tuple[str, float], ...] = (
    ("string", 0.15),
    ("collection", 0.20),
    ("boxing", 0.10),
    ("disposal", 0.05),
    ("linq", 0.12),
    ("lazy", 0.08),
)
DEFAULT_SAVING = 0.05
MAX_ESTIMATED_SAVING = 0.5


def saving_for_category(category: str) -> float:
    """Assumed fractional saving for one suggestion category."""
    text = (category or "").lower()
    for keyword, saving in CATEGORY_SAVINGS:
        if keyword in text:
            return saving
    return DEFAULT_SAVING


def estimate_saving(suggestions: Iterable[Suggestion]) -> float:
    """Sum of per-category savings, capped at MAX_ESTIMATED_SAVING."""
    total = sum(saving_for_category(s.category) for s in suggestions)
    return min(total, MAX_ESTIMATED_SAVING)


def project_optimized_snapshot(current: MemorySnapshot, saving: float) -> MemorySnapshot:
    """Scale allocated bytes and working set of a reading by (1 - saving)."""
    factor = 1.0 - saving
    return replace(
        current,
        allocated_bytes=int(current.allocated_bytes * factor),
        working_set=int(current.working_set * factor),
    )


def improvement_percentage(before: MemorySnapshot, after: MemorySnapshot) -> float:
    """Percentage drop of allocated bytes, floored at 0 and capped at 100.

    Returns 0 when nothing was allocated before.
    """
    if before.allocated_bytes <= 0:
        return 0.0
    drop = (before.allocated_bytes - after.allocated_bytes) / before.allocated_bytes * 100
    return min(max(0.0, drop), 100.0)
