"""HTML Report Generator - optimization report for a finished batch.

Rendering is pure: output depends only on the BatchResult passed in.

Production-ready with:
- HTML escaping of every path, category and snippet
- Null/empty safety checks
"""

import html
from pathlib import Path

from codeopt.domain.entities import BatchResult, FileResult, Suggestion
from codeopt.infrastructure.profiling.memory_sampler import format_bytes

REPORT_TITLE = "Solution Optimization Report"

_STYLE = """
        body { font-family: Arial, sans-serif; margin: 20px; }
        .header { background-color: #f0f0f0; padding: 20px; border-radius: 5px; }
        .summary { background-color: #e8f4f8; padding: 15px; margin: 20px 0; border-radius: 5px; }
        .note { color: #666; font-size: 0.9em; }
        .file-result { border: 1px solid #ccc; margin: 10px 0; padding: 15px; border-radius: 5px; }
        .failed { border-color: #dc3545; background-color: #fdf2f2; }
        .optimization { background-color: #fff3cd; padding: 10px; margin: 5px 0; border-radius: 3px; }
        .high { border-left: 4px solid #dc3545; }
        .medium { border-left: 4px solid #ffc107; }
        .low { border-left: 4px solid #28a745; }
        code { background-color: #f8f9fa; padding: 2px 4px; border-radius: 3px; font-family: 'Courier New', monospace; }
        pre { white-space: pre-wrap; margin: 4px 0; }
"""


def escape(text: object | None) -> str:
    """HTML-escape text, None becomes empty string."""
    if text is None:
        return ""
    return html.escape(str(text), quote=True)


class HtmlReportGenerator:
    """Renders a BatchResult as a standalone HTML document."""

    def generate_html(self, batch: BatchResult | None) -> str:
        if batch is None:
            return self._document("<p><strong>Error:</strong> No batch result to report.</p>")

        sections = [
            self._header(batch),
            self._error_section(batch),
            self._summary_section(batch),
            self._types_section(batch),
            self._top_files_section(batch),
            self._file_results_section(batch),
            self._failed_section(batch),
        ]
        return self._document("\n".join(s for s in sections if s))

    def _document(self, body: str) -> str:
        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{REPORT_TITLE}</title>
    <style>{_STYLE}    </style>
</head>
<body>
{body}
</body>
</html>
"""

    def _header(self, batch: BatchResult) -> str:
        generated = (batch.end_time or batch.start_time).strftime("%Y-%m-%d %H:%M:%S")
        return f"""    <div class='header'>
        <h1>{REPORT_TITLE}</h1>
        <p>Generated on: {generated}</p>
        <p>Solution: {escape(batch.root_path)}</p>
    </div>"""

    def _error_section(self, batch: BatchResult) -> str:
        if not batch.error:
            return ""
        label = "Cancelled" if batch.cancelled else "Error"
        return f"    <div class='file-result failed'><strong>{label}:</strong> {escape(batch.error)}</div>"

    def _summary_section(self, batch: BatchResult) -> str:
        s = batch.summary
        minutes = s.analysis_duration.total_seconds() / 60
        return f"""    <div class='summary'>
        <h2>Summary</h2>
        <p><strong>Total Files Analyzed:</strong> {s.total_files_analyzed}</p>
        <p><strong>Files with Optimizations:</strong> {s.files_with_optimizations}</p>
        <p><strong>Files Failed:</strong> {s.files_failed}</p>
        <p><strong>Total Optimizations:</strong> {s.total_optimizations}</p>
        <p><strong>Average Memory Improvement:</strong> {s.average_improvement:.2f}%</p>
        <p><strong>Analysis Duration:</strong> {minutes:.2f} minutes</p>
        <p class='note'>Memory figures are estimates derived from suggestion categories
        and readings of the optimizer process, not measurements of the analyzed program.</p>
    </div>"""

    def _types_section(self, batch: BatchResult) -> str:
        types = batch.summary.top_optimization_types
        if not types:
            return ""
        items = "\n".join(
            f"        <li>{escape(category)}: {count} occurrences</li>" for category, count in types
        )
        return f"""    <h2>Top Optimization Types</h2>
    <ul>
{items}
    </ul>"""

    def _top_files_section(self, batch: BatchResult) -> str:
        files = batch.summary.most_optimized_files
        if not files:
            return ""
        items = "\n".join(
            f"        <li>{escape(Path(f.path).name)}: {f.optimization_count} optimizations</li>"
            for f in files
        )
        return f"""    <h2>Most Optimized Files</h2>
    <ol>
{items}
    </ol>"""

    def _suggestion_block(self, s: Suggestion) -> str:
        severity = s.severity.value
        parts = [f"<strong>[{severity}] {escape(s.category)}</strong>"]
        if s.location:
            parts.append(f"<span class='note'>Line {escape(s.location)}</span>")
        if s.description:
            parts.append(escape(s.description))
        if s.before:
            parts.append(f"<strong>Before:</strong> <pre><code>{escape(s.before)}</code></pre>")
        if s.after:
            parts.append(f"<strong>After:</strong> <pre><code>{escape(s.after)}</code></pre>")
        body = "<br>\n                ".join(parts)
        return f"""            <div class='optimization {severity.lower()}'>
                {body}
            </div>"""

    def _file_block(self, f: FileResult) -> str:
        blocks = "\n".join(self._suggestion_block(s) for s in f.suggestions)
        return f"""    <div class='file-result'>
        <h3>{escape(Path(f.path).name)}</h3>
        <p class='note'>{escape(f.path)}</p>
        <p><strong>Optimizations:</strong> {f.optimization_count}</p>
        <p><strong>Memory Improvement:</strong> {f.improvement_percentage:.2f}%</p>
        <p><strong>Allocated (before / estimated after):</strong> {format_bytes(f.memory_before.allocated_bytes)} / {format_bytes(f.memory_after.allocated_bytes)}</p>
        <div class='optimizations'>
{blocks}
        </div>
    </div>"""

    def _file_results_section(self, batch: BatchResult) -> str:
        files = [f for f in batch.file_results if f.has_optimizations]
        if not files:
            return "    <h2>File Results</h2>\n    <p>No optimizations found.</p>"
        return "    <h2>File Results</h2>\n" + "\n".join(self._file_block(f) for f in files)

    def _failed_section(self, batch: BatchResult) -> str:
        failed = batch.failed
        if not failed:
            return ""
        items = "\n".join(
            f"        <li><code>{escape(f.path)}</code>: {escape(f.error)}</li>" for f in failed
        )
        return f"""    <h2>Failed Files</h2>
    <div class='file-result failed'>
    <ul>
{items}
    </ul>
    </div>"""

    def save_report(self, batch: BatchResult, output_path: str | Path) -> Path:
        """Render batch and write the report file.

        Returns:
            Path to the created file

        """
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(self.generate_html(batch), encoding="utf-8")
        return output
