"""Prompt builders for per-file memory-optimization analysis."""

from codeopt.domain.entities import FileRecord

LANGUAGE_NAMES = {
    "csharp": "C#",
    "python": "Python",
    "java": "Java",
    "typescript": "TypeScript",
    "javascript": "JavaScript",
}

FOCUS_AREAS = (
    "String concatenation optimization (StringBuilder, string interpolation)",
    "Collection initialization and capacity management",
    "Unnecessary object allocations",
    "Proper disposal of resources (using statements)",
    "Boxing/unboxing elimination",
    "Lazy initialization where appropriate",
    "Value types vs reference types optimization",
    "Memory-efficient LINQ operations",
    "Async/await memory patterns",
    "Cache-friendly data structures",
)


def language_name(tag: str) -> str:
    return LANGUAGE_NAMES.get(tag, tag or "source")


def build_system_prompt(record: FileRecord) -> str:
    return (
        f"You are an expert {language_name(record.language)} code optimizer specializing in "
        "memory optimization. Analyze the provided code and suggest memory optimizations."
    )


def build_analysis_prompt(record: FileRecord) -> str:
    """Build user prompt asking for a JSON reply with suggestions and optimized code."""
    focus = "\n".join(f"{i}. {area}" for i, area in enumerate(FOCUS_AREAS, start=1))
    return f"""Please analyze the following {language_name(record.language)} code for memory optimization opportunities and provide a JSON response with the following structure:

{{
  "suggestions": [
    {{
      "type": "Memory Optimization Type",
      "description": "Detailed description of the optimization",
      "lineNumber": "Line number or range",
      "severity": "High/Medium/Low",
      "before": "Original code snippet",
      "after": "Optimized code snippet"
    }}
  ],
  "optimizedCode": "Complete optimized version of the code",
  "optimizationSummary": "Summary of all optimizations made"
}}

Focus on these memory optimization areas:
{focus}

Code to analyze:
```{record.language}
{record.content}
```

Provide practical, implementable suggestions with clear before/after examples.
"""
