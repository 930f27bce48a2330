"""Code Analyzer Agent - per-file memory-optimization analysis via LLM."""

import logging

from codeopt.domain.entities import AnalysisOutcome, FileRecord
from codeopt.domain.errors import AnalysisError
from codeopt.domain.ports.llm import ChatMessage, CompletionPort
from codeopt.infrastructure.agents.optimization_prompts import (
    build_analysis_prompt,
    build_system_prompt,
)
from codeopt.infrastructure.agents.response_parser import parse_analysis_response
from codeopt.infrastructure.llm.retry import complete_with_retry

logger = logging.getLogger(__name__)


class CodeOptimizationAnalyzer:
    """Implements AnalysisPort on top of a CompletionPort."""

    def __init__(
        self,
        llm: CompletionPort,
        model: str | None = None,
        temperature: float | None = None,
        attempts: int = 3,
    ) -> None:
        self._llm = llm
        self._model = model
        self._temperature = temperature
        self._attempts = attempts

    async def analyze(self, record: FileRecord) -> AnalysisOutcome:
        """Ask the model for suggestions and optimized code for one file.

        Raises:
            AnalysisError: on an empty reply
            httpx.HTTPError: on transport failures left after retries

        """
        messages = [
            ChatMessage(role="system", content=build_system_prompt(record)),
            ChatMessage(role="user", content=build_analysis_prompt(record)),
        ]
        completion = await complete_with_retry(
            self._llm,
            messages,
            attempts=self._attempts,
            model=self._model,
            temperature=self._temperature,
        )
        if not completion.content.strip():
            raise AnalysisError(f"Empty analysis reply for {record.path}")

        outcome = parse_analysis_response(record, completion.content)
        logger.debug(
            "Analyzed %s: %d suggestions (structured=%s, tokens=%d/%d)",
            record.path,
            len(outcome.suggestions),
            outcome.structured,
            completion.prompt_tokens,
            completion.completion_tokens,
        )
        return outcome
