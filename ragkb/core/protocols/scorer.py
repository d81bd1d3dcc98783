"""Generative scoring model transport protocol."""
from typing import AsyncIterator, Protocol, runtime_checkable


@runtime_checkable
class ScoringModelProtocol(Protocol):
    """Streamed generation endpoint used to score candidates."""

    def generate_stream(
        self,
        prompt: str,
        temperature: float = 0.0,
        format_hint: str | None = "json",
    ) -> AsyncIterator[str]:
        """Submit one generation request and stream it back.

        Args:
            prompt: Full prompt.
            temperature: Sampling temperature.
            format_hint: Output format hint for the model.

        Yields:
            Raw stream lines, each normally a JSON fragment.
        """
        ...
