"""Chat completion port used by the code analyzer."""

from typing import Literal, Protocol

from pydantic import BaseModel


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class Completion(BaseModel):
    """One non-streaming chat completion."""

    content: str
    model: str
    # "stop", "length", ... as reported by the server; None when absent
    finish_reason: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def truncated(self) -> bool:
        """Reply was cut off by the token limit (optimized code likely incomplete)."""
        return self.finish_reason == "length"


class CompletionPort(Protocol):
    """OpenAI-compatible chat completion endpoint (OpenAI, LM Studio, vLLM)."""

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        model: str | None = None,
        temperature: float | None = None,
    ) -> Completion:
        ...

    async def is_available(self) -> bool:
        ...

    async def close(self) -> None:
        ...
