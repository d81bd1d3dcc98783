"""Reranker protocol for dependency injection."""
from typing import Any, Protocol, runtime_checkable

from ..models.document import Candidate


@runtime_checkable
class RerankerProtocol(Protocol):
    """Protocol for reranking service."""

    async def rerank(self, query: str, candidates: list[Candidate]) -> list[Candidate]:
        """Rerank candidates by relevance.

        Args:
            query: User query.
            candidates: Candidates in retrieval order.

        Returns:
            Reranked candidates, or the input order if reranking did not happen.
        """
        ...

    async def batch_rerank(
        self, query: str, candidates: list[Candidate], batch_size: int = 10
    ) -> list[Candidate]:
        """Rerank candidates in fixed-size groups, then sort globally."""
        ...

    def get_stats(self) -> dict[str, Any]:
        """Return reranker configuration."""
        ...

    async def self_test(self) -> bool:
        """Score a fixed probe set; True if scores came back."""
        ...
