"""Retry of completion calls on transient transport failures.

Only timeouts and connection-level errors are retried. HTTP status errors
(429 included) propagate at once: the batch paces its own calls and a
failed file is recorded rather than hammered.
"""

import logging

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from codeopt.domain.ports.llm import ChatMessage, Completion, CompletionPort

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    TimeoutError,
    ConnectionError,
)


async def complete_with_retry(
    client: CompletionPort,
    messages: list[ChatMessage],
    *,
    attempts: int = 3,
    model: str | None = None,
    temperature: float | None = None,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
) -> Completion:
    """Call client.complete, retrying up to attempts times with exponential backoff."""
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            return await client.complete(messages, model=model, temperature=temperature)
    raise AssertionError("unreachable")  # pragma: no cover
