"""Embedding gateway protocols for dependency injection."""
from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbedderProtocol(Protocol):
    """Protocol for embedding service."""

    async def embed_one(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text: Text to embed.

        Returns:
            Fixed-dimension embedding vector.
        """
        ...


@runtime_checkable
class BatchEmbedderProtocol(EmbedderProtocol, Protocol):
    """Embedding service that can embed many texts in one call."""

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in one request.

        Args:
            texts: Texts to embed.

        Returns:
            One vector per text, in input order.
        """
        ...
