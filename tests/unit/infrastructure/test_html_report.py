"""Tests for HtmlReportGenerator."""

from datetime import datetime

import pytest

from codeopt.application.optimization import Aggregator
from codeopt.domain.entities import (
    BatchResult,
    FileRecord,
    FileResult,
    MemorySnapshot,
    Severity,
    Suggestion,
)
from codeopt.infrastructure.report.html_report import HtmlReportGenerator


@pytest.fixture
def batch():
    batch = BatchResult(root_path="/work/Shop<Main>", start_time=datetime(2024, 6, 1, 9, 0, 0))
    batch.add(FileResult(
        path="/work/Shop/Cart.cs",
        original_code="",
        optimized_code="",
        suggestions=(
            Suggestion(
                category="String Concatenation",
                description="Use StringBuilder & avoid <temp> strings",
                location="12",
                severity=Severity.HIGH,
                before='s += "x";',
                after="sb.Append(\"x\");",
            ),
            Suggestion(category="Boxing", severity=Severity.LOW),
        ),
        memory_before=MemorySnapshot(allocated_bytes=2048),
        memory_after=MemorySnapshot(allocated_bytes=1536),
        improvement_percentage=25.0,
    ))
    batch.add(FileResult.failed(FileRecord(path="/work/Shop/Broken.cs"), "timeout <30s>"))
    batch.finish(datetime(2024, 6, 1, 9, 3, 0))
    batch.summary = Aggregator().summarize(batch.file_results, batch.duration)
    return batch


class TestHtmlReportGenerator:
    """Tests for generate_html and save_report."""

    def test_sections_present(self, batch):
        html = HtmlReportGenerator().generate_html(batch)

        assert html.startswith("<!DOCTYPE html>")
        assert "Generated on: 2024-06-01 09:03:00" in html
        assert "<strong>Total Files Analyzed:</strong> 2" in html
        assert "<strong>Files Failed:</strong> 1" in html
        assert "<strong>Average Memory Improvement:</strong> 25.00%" in html
        assert "<strong>Analysis Duration:</strong> 3.00 minutes" in html
        assert "<li>String Concatenation: 1 occurrences</li>" in html
        assert "Most Optimized Files" in html
        assert "2.00 KB / 1.50 KB" in html

    def test_severity_classes(self, batch):
        html = HtmlReportGenerator().generate_html(batch)

        assert "<div class='optimization high'>" in html
        assert "<div class='optimization low'>" in html
        assert "[High] String Concatenation" in html

    def test_text_is_escaped(self, batch):
        html = HtmlReportGenerator().generate_html(batch)

        assert "Shop&lt;Main&gt;" in html
        assert "StringBuilder &amp; avoid &lt;temp&gt; strings" in html
        assert "s += &quot;x&quot;;" in html
        assert "<temp>" not in html

    def test_failed_files_listed(self, batch):
        html = HtmlReportGenerator().generate_html(batch)

        assert "Failed Files" in html
        assert "/work/Shop/Broken.cs</code>: timeout &lt;30s&gt;" in html

    def test_pure_rendering(self, batch):
        generator = HtmlReportGenerator()
        assert generator.generate_html(batch) == generator.generate_html(batch)

    def test_empty_batch(self):
        batch = BatchResult(root_path="/empty", start_time=datetime(2024, 1, 1))
        batch.finish(datetime(2024, 1, 1))

        html = HtmlReportGenerator().generate_html(batch)

        assert "No optimizations found." in html
        assert "Failed Files" not in html
        assert "Top Optimization Types" not in html

    def test_batch_error_shown(self):
        batch = BatchResult(root_path="/x", start_time=datetime(2024, 1, 1), error="Path not found: /x")
        html = HtmlReportGenerator().generate_html(batch)
        assert "<strong>Error:</strong> Path not found: /x" in html

    def test_none_batch(self):
        assert "No batch result" in HtmlReportGenerator().generate_html(None)

    def test_save_report(self, batch, tmp_path):
        path = HtmlReportGenerator().save_report(batch, tmp_path / "reports" / "optimization_report.html")

        assert path.exists()
        assert "Solution Optimization Report" in path.read_text(encoding="utf-8")
