"""Parsing of analysis replies into suggestions and optimized code.

Replies are expected to carry a JSON object, but models often answer with
prose, markdown or partial JSON. Parsing goes:
1. JSON object (fenced ```json block or first '{' .. last '}') validated
   into an all-optional schema; missing fields get defaults.
2. Otherwise keyword heuristics over the free text, plus the first fenced
   code block as optimized code, or the original content annotated with an
   excerpt of the reply.
"""

import json
import logging
import re
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from codeopt.domain.entities import AnalysisOutcome, FileRecord, Severity, Suggestion

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?P<lang>[\w#+.\-]*)[ \t]*\r?\n(?P<body>.*?)```", re.DOTALL)

STRUCTURE_KEYS = frozenset({
    "suggestions",
    "optimizedCode",
    "optimized_code",
    "optimizationSummary",
    "optimization_summary",
})

DEFAULT_CATEGORY = "General Optimization"
FALLBACK_EXCERPT_CHARS = 500
DESCRIPTION_CHARS = 300

# (keywords, category, severity); one suggestion per rule whose keyword appears
HEURISTIC_RULES: tuple[tuple[tuple[str, ...], str, Severity], ...] = (
    (("stringbuilder", "string concatenation", "concatenat"), "String Concatenation", Severity.HIGH),
    (("dispose", "idisposable", "using statement", "using block"), "Resource Disposal", Severity.HIGH),
    (("boxing",), "Boxing Elimination", Severity.MEDIUM),
    (("linq", "enumerat", "ienumerable"), "LINQ Optimization", Severity.MEDIUM),
    (("collection", "capacity", "list<", "dictionary<"), "Collection Initialization", Severity.MEDIUM),
)

_HASH_COMMENT_LANGUAGES = {"python", "ruby", "shell", "bash", "perl", "r", "yaml", "toml"}


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class SuggestionPayload(BaseModel):
    """One suggestion as sent by the model. Every field optional."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = Field(default=None, validation_alias=AliasChoices("type", "category"))
    description: str | None = None
    line_number: str | None = Field(
        default=None,
        validation_alias=AliasChoices("lineNumber", "line_number", "line"),
    )
    severity: str | None = None
    before: str | None = None
    after: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        return _as_text(value)

    def to_suggestion(self) -> Suggestion:
        return Suggestion(
            category=(self.type or "").strip() or DEFAULT_CATEGORY,
            description=(self.description or "").strip(),
            location=(self.line_number or "").strip() or None,
            severity=Severity.normalize(self.severity),
            before=self.before or None,
            after=self.after or None,
        )


class AnalysisPayload(BaseModel):
    """Top-level reply object. Every field optional."""

    model_config = ConfigDict(extra="ignore")

    suggestions: list[SuggestionPayload] = []
    optimized_code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("optimizedCode", "optimized_code"),
    )
    optimization_summary: str | None = Field(
        default=None,
        validation_alias=AliasChoices("optimizationSummary", "optimization_summary"),
    )

    @field_validator("suggestions", mode="before")
    @classmethod
    def _keep_objects(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        items: list = []
        for item in value:
            if isinstance(item, dict):
                items.append(item)
            elif isinstance(item, str) and item.strip():
                items.append({"description": item})
        return items

    @field_validator("optimized_code", "optimization_summary", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        return _as_text(value)


def _truncate(text: str, limit: int) -> str:
    text = text.strip()
    return text if len(text) <= limit else text[: limit - 3].rstrip() + "..."


def extract_json_object(text: str) -> dict | None:
    """Return the first JSON object found in text, or None."""
    if not text or not text.strip():
        return None
    candidates = [m.group("body") for m in _FENCE_RE.finditer(text) if m.group("lang").lower() == "json"]
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start : end + 1])
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def extract_code_block(text: str) -> str | None:
    """First fenced block that is not JSON, without the fences."""
    for match in _FENCE_RE.finditer(text or ""):
        if match.group("lang").lower() == "json":
            continue
        body = match.group("body").rstrip()
        if body.strip():
            return body
    return None


def extract_heuristic_suggestions(text: str) -> list[Suggestion]:
    """Derive suggestions from free text by keyword matching.

    Never empty for a non-empty reply: falls back to one generic suggestion.
    """
    if not text or not text.strip():
        return []
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    lowered = text.lower()
    suggestions: list[Suggestion] = []
    for keywords, category, severity in HEURISTIC_RULES:
        hit = next((k for k in keywords if k in lowered), None)
        if hit is None:
            continue
        line = next((ln for ln in lines if hit in ln.lower()), "")
        suggestions.append(Suggestion(
            category=category,
            description=_truncate(line, DESCRIPTION_CHARS) or f"{category} opportunity mentioned in analysis",
            severity=severity,
        ))
    if not suggestions:
        suggestions.append(Suggestion(
            category=DEFAULT_CATEGORY,
            description=_truncate(text, DESCRIPTION_CHARS),
            severity=Severity.LOW,
        ))
    return suggestions


def annotate_fallback(record: FileRecord, raw: str) -> str:
    """Original content prefixed with a comment block quoting the reply."""
    prefix = "#" if record.language in _HASH_COMMENT_LANGUAGES else "//"
    header = [
        f"{prefix} codeopt: analysis reply had no optimized code; original content kept.",
        f"{prefix} Reply excerpt:",
    ]
    header += [f"{prefix}   {line}".rstrip() for line in _truncate(raw, FALLBACK_EXCERPT_CHARS).splitlines()]
    return "\n".join(header) + "\n\n" + record.content


def parse_analysis_response(record: FileRecord, raw: str) -> AnalysisOutcome:
    """Turn a raw model reply into an AnalysisOutcome for record."""
    data = extract_json_object(raw)
    if data is not None and data.keys() & STRUCTURE_KEYS:
        try:
            payload = AnalysisPayload.model_validate(data)
        except ValidationError as e:
            logger.warning("Analysis reply for %s failed schema validation: %s", record.path, e)
        else:
            optimized = payload.optimized_code if payload.optimized_code and payload.optimized_code.strip() else None
            return AnalysisOutcome(
                suggestions=tuple(s.to_suggestion() for s in payload.suggestions),
                optimized_code=optimized or extract_code_block(raw) or record.content,
                raw_response=raw,
                structured=True,
            )

    logger.info("Analysis reply for %s is unstructured, using keyword extraction", record.path)
    return AnalysisOutcome(
        suggestions=tuple(extract_heuristic_suggestions(raw)),
        optimized_code=extract_code_block(raw) or annotate_fallback(record, raw),
        raw_response=raw,
        structured=False,
    )
