"""Reduces per-file results into batch summary statistics."""

from collections.abc import Sequence
from datetime import timedelta

from codeopt.domain.entities import FileResult, Summary


class Aggregator:
    """Builds a Summary from FileResults.

    Rankings are deterministic: ties keep first-seen / input order.
    """

    def __init__(self, top_n_types: int = 10, top_n_files: int = 5) -> None:
        self._top_n_types = top_n_types
        self._top_n_files = top_n_files

    def summarize(self, results: Sequence[FileResult], elapsed: timedelta) -> Summary:
        optimized = [r for r in results if r.has_optimizations]
        average = (
            sum(r.improvement_percentage for r in optimized) / len(optimized)
            if optimized
            else 0.0
        )

        # dict keeps first-seen order, sorted() is stable
        counts: dict[str, int] = {}
        for result in results:
            for suggestion in result.suggestions:
                counts[suggestion.category] = counts.get(suggestion.category, 0) + 1
        top_types = sorted(counts.items(), key=lambda item: -item[1])[: self._top_n_types]

        top_files = sorted(optimized, key=lambda r: -r.optimization_count)[: self._top_n_files]

        return Summary(
            total_files_analyzed=len(results),
            files_with_optimizations=len(optimized),
            files_failed=sum(1 for r in results if not r.success),
            total_optimizations=sum(r.optimization_count for r in results),
            average_improvement=average,
            analysis_duration=elapsed,
            top_optimization_types=top_types,
            most_optimized_files=top_files,
        )
