"""Chat completion client for OpenAI-compatible servers (OpenAI, LM Studio, vLLM, LocalAI)."""

import json
import logging

import httpx

from codeopt.domain.errors import AnalysisError
from codeopt.domain.ports.config import OpenAICompatibleConfig
from codeopt.domain.ports.llm import ChatMessage, Completion

logger = logging.getLogger(__name__)

AVAILABILITY_TIMEOUT = 5.0


def parse_completion(payload: object, requested_model: str) -> Completion:
    """Turn a /chat/completions JSON body into a Completion.

    Raises:
        AnalysisError: when the body carries no assistant choice

    """
    if not isinstance(payload, dict):
        raise AnalysisError("Completion payload is not a JSON object")
    choices = payload.get("choices")
    if not choices or not isinstance(choices[0], dict):
        error = payload.get("error")
        detail = f": {error}" if error else ""
        raise AnalysisError(f"Completion has no choices{detail}")

    choice = choices[0]
    usage = payload.get("usage") or {}
    return Completion(
        content=(choice.get("message") or {}).get("content") or "",
        model=payload.get("model") or requested_model,
        finish_reason=choice.get("finish_reason"),
        prompt_tokens=int(usage.get("prompt_tokens") or 0),
        completion_tokens=int(usage.get("completion_tokens") or 0),
    )


class OpenAICompatibleClient:
    """Implements CompletionPort over POST {base_url}/chat/completions.

    One httpx.AsyncClient is kept for the app lifetime and closed on shutdown.
    """

    def __init__(self, config: OpenAICompatibleConfig) -> None:
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._headers = {"Content-Type": "application/json"}
        if config.api_key:
            self._headers["Authorization"] = f"Bearer {config.api_key}"
        self._client: httpx.AsyncClient | None = None

    @property
    def model(self) -> str:
        return self._config.model

    def _http(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._config.timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def _request_body(
        self,
        messages: list[ChatMessage],
        model: str,
        temperature: float,
    ) -> dict:
        body: dict = {
            "model": model,
            "messages": [m.model_dump() for m in messages],
            "temperature": temperature,
            "stream": False,
        }
        if self._config.max_tokens is not None:
            body["max_tokens"] = self._config.max_tokens
        return body

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        model: str | None = None,
        temperature: float | None = None,
    ) -> Completion:
        """Request one completion.

        Raises:
            httpx.HTTPStatusError: on non-2xx responses
            httpx.TransportError: on timeouts and connection failures
            AnalysisError: if the body is not a chat completion

        """
        model = model or self._config.model
        if temperature is None:
            temperature = self._config.temperature
        resp = await self._http().post(
            "/chat/completions",
            json=self._request_body(messages, model, temperature),
        )
        if resp.is_error:
            logger.error(
                "Completion request failed with %s: %s",
                resp.status_code,
                resp.text[:500],
                extra={"model": model},
            )
        resp.raise_for_status()

        try:
            payload = resp.json()
        except json.JSONDecodeError as e:
            raise AnalysisError(f"Completion body is not JSON: {e}") from e
        completion = parse_completion(payload, model)
        if completion.truncated:
            logger.warning(
                "Completion hit max_tokens=%s, optimized code may be cut off",
                self._config.max_tokens,
            )
        return completion

    async def is_available(self) -> bool:
        """True when GET {base_url}/models answers 200 within AVAILABILITY_TIMEOUT."""
        try:
            resp = await self._http().get("/models", timeout=AVAILABILITY_TIMEOUT)
        except httpx.HTTPError as e:
            logger.debug("Completion endpoint unavailable: %s", e)
            return False
        return resp.status_code == 200
