"""Pytest configuration and shared fixtures."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from codeopt.api.container import get_container
from codeopt.api.dependencies import limiter
from codeopt.domain.ports.config import AppConfig, OptimizerConfig
from codeopt.domain.ports.llm import Completion

STRUCTURED_REPLY = json.dumps({
    "suggestions": [
        {
            "type": "String Concatenation",
            "description": "Use StringBuilder inside the loop",
            "lineNumber": "5",
            "severity": "High",
            "before": "s += i.ToString();",
            "after": "sb.Append(i);",
        },
        {
            "type": "Collection Initialization",
            "description": "Preallocate list capacity",
            "lineNumber": "3",
            "severity": "Medium",
        },
    ],
    "optimizedCode": "class Optimized { }",
    "optimizationSummary": "Two optimizations",
})


@pytest.fixture
def fake_llm():
    """LLM double answering every request with a structured reply."""
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=Completion(content=STRUCTURED_REPLY, model="test-model"))
    llm.is_available = AsyncMock(return_value=True)
    llm.close = AsyncMock()
    return llm


@pytest.fixture
def container(fake_llm):
    """Global container wired to the fake LLM, without pacing delay."""
    c = get_container()
    c.reset()
    c.config = AppConfig(optimizer=OptimizerConfig(pacing_delay=0.0, trace_allocations=False))
    c.llm = fake_llm
    limiter.reset()
    yield c
    c.reset()
