"""Tests for analysis reply parsing."""

import json

import pytest

from codeopt.domain.entities import FileRecord, Severity
from codeopt.infrastructure.agents.response_parser import (
    DEFAULT_CATEGORY,
    annotate_fallback,
    extract_code_block,
    extract_heuristic_suggestions,
    extract_json_object,
    parse_analysis_response,
)


@pytest.fixture
def record():
    return FileRecord(path="Cache.cs", content="class Cache { }")


class TestExtractJsonObject:
    """Tests for extract_json_object."""

    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_object_inside_prose(self):
        text = 'Here you go:\n{"suggestions": []}\nHope it helps.'
        assert extract_json_object(text) == {"suggestions": []}

    def test_fenced_json_block_preferred(self):
        text = 'Notes {not json}\n```json\n{"optimizedCode": "x"}\n```\n'
        assert extract_json_object(text) == {"optimizedCode": "x"}

    @pytest.mark.parametrize("text", ["", "   ", "no braces here", "{broken", "[1, 2, 3]"])
    def test_no_object(self, text):
        assert extract_json_object(text) is None


class TestExtractCodeBlock:
    """Tests for extract_code_block."""

    def test_skips_json_fence(self):
        text = '```json\n{"a": 1}\n```\nThen:\n```csharp\nvar sb = new StringBuilder();\n```'
        assert extract_code_block(text) == "var sb = new StringBuilder();"

    def test_none_without_fences(self):
        assert extract_code_block("just words") is None


class TestHeuristicSuggestions:
    """Tests for keyword extraction from free text."""

    def test_keywords_map_to_fixed_categories(self):
        text = (
            "Use a StringBuilder instead of concatenation in the loop.\n"
            "Wrap the stream in a using statement so it is disposed.\n"
            "Avoid boxing the integer into object.\n"
        )

        suggestions = extract_heuristic_suggestions(text)

        by_category = {s.category: s for s in suggestions}
        assert by_category["String Concatenation"].severity is Severity.HIGH
        assert by_category["Resource Disposal"].severity is Severity.HIGH
        assert by_category["Boxing Elimination"].severity is Severity.MEDIUM
        assert "StringBuilder" in by_category["String Concatenation"].description

    def test_linq_and_collections(self):
        categories = [s.category for s in extract_heuristic_suggestions(
            "The LINQ chain enumerates twice; also set list capacity up front."
        )]
        assert categories == ["LINQ Optimization", "Collection Initialization"]

    def test_unmatched_text_gives_general_suggestion(self):
        suggestions = extract_heuristic_suggestions("The code looks fine overall.")

        assert len(suggestions) == 1
        assert suggestions[0].category == DEFAULT_CATEGORY
        assert suggestions[0].severity is Severity.LOW

    def test_empty_text_gives_nothing(self):
        assert extract_heuristic_suggestions("  ") == []


class TestAnnotateFallback:
    """Tests for annotate_fallback."""

    def test_marks_and_truncates(self, record):
        raw = "x" * 2000
        annotated = annotate_fallback(record, raw)

        header, _, body = annotated.partition("\n\n")
        assert body == record.content
        assert header.startswith("// codeopt: analysis reply had no optimized code")
        assert len(header) < 700
        assert header.endswith("...")

    def test_hash_comments_for_python(self):
        record = FileRecord(path="a.py", content="x = 1\n", language="python")
        assert annotate_fallback(record, "reply").startswith("# codeopt:")


class TestParseAnalysisResponse:
    """Tests for parse_analysis_response."""

    def test_structured_reply(self, record):
        raw = json.dumps({
            "suggestions": [
                {"type": "Lazy Initialization", "description": "Use Lazy<T>", "lineNumber": 4,
                 "severity": "low", "before": "new Cache()", "after": "new Lazy<Cache>()"},
                {"category": "Boxing", "severity": "catastrophic"},
                "Dispose the timer",
            ],
            "optimizedCode": "sealed class Cache { }",
        })

        outcome = parse_analysis_response(record, raw)

        assert outcome.structured is True
        assert outcome.optimized_code == "sealed class Cache { }"
        assert len(outcome.suggestions) == 3
        first, second, third = outcome.suggestions
        assert first.category == "Lazy Initialization"
        assert first.location == "4"
        assert first.severity is Severity.LOW
        assert first.after == "new Lazy<Cache>()"
        assert second.category == "Boxing"
        assert second.severity is Severity.MEDIUM
        assert third.category == DEFAULT_CATEGORY
        assert third.description == "Dispose the timer"

    def test_structured_without_code_keeps_original(self, record):
        outcome = parse_analysis_response(record, '{"suggestions": [], "optimizationSummary": "none"}')

        assert outcome.structured is True
        assert outcome.suggestions == ()
        assert outcome.optimized_code == record.content

    def test_unrelated_json_falls_back_to_heuristics(self, record):
        outcome = parse_analysis_response(record, '{"answer": "use StringBuilder"}')

        assert outcome.structured is False
        assert outcome.suggestions[0].category == "String Concatenation"

    def test_free_text_with_code_block(self, record):
        raw = "Avoid boxing here.\n```csharp\nclass Cache<T> { }\n```"

        outcome = parse_analysis_response(record, raw)

        assert outcome.structured is False
        assert outcome.optimized_code == "class Cache<T> { }"
        assert [s.category for s in outcome.suggestions] == ["Boxing Elimination"]

    def test_free_text_without_code_is_annotated(self, record):
        outcome = parse_analysis_response(record, "Consider disposing the connection.")

        assert outcome.optimized_code.endswith(record.content)
        assert "Consider disposing the connection." in outcome.optimized_code
        assert outcome.raw_response == "Consider disposing the connection."
