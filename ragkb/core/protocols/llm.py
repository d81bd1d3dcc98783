"""LLM protocol for dependency injection."""
from typing import AsyncIterator, Protocol, runtime_checkable


@runtime_checkable
class LLMProtocol(Protocol):
    """Protocol for the answer-generation model."""

    def chat_stream(self, messages: list[dict]) -> AsyncIterator[str]:
        """Stream chat response from LLM.

        Args:
            messages: Chat messages, last one being the user turn.

        Yields:
            Response tokens.
        """
        ...
