"""Search service - similarity retrieval of candidates."""

import logging
from typing import Optional

from ..errors import RetrievalError
from ..models.document import Candidate, QueryMatches
from ..protocols.embedder import EmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol

logger = logging.getLogger(__name__)


class SearchService:
    """Embeds the query and asks the vector index for nearest chunks."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        default_top_k: int = 5,
        max_top_k: int = 20,
    ):
        """Initialize search service.

        Args:
            embedder: Embedding gateway.
            vector_store: Vector index.
            default_top_k: Results returned when no top_k is given.
            max_top_k: Upper bound for top_k.
        """
        self._embedder = embedder
        self._vector_store = vector_store
        self._max_top_k = max(1, max_top_k)
        self._default_top_k = self.clamp_top_k(default_top_k)

    def clamp_top_k(self, top_k: Optional[int]) -> int:
        if top_k is None:
            return self._default_top_k
        return max(1, min(int(top_k), self._max_top_k))

    async def search(self, query: str, top_k: Optional[int] = None) -> list[Candidate]:
        """Find the chunks closest to the query.

        Args:
            query: Search query.
            top_k: Number of candidates, clamped to [1, max_top_k].

        Returns:
            Candidates sorted by ascending distance.

        Raises:
            RetrievalError: Embedding or vector query failed.
        """
        top_k = self.clamp_top_k(top_k)

        try:
            query_embedding = await self._embedder.embed_one(query)
        except Exception as e:
            logger.error(f"Query embedding failed: {e}")
            raise RetrievalError(f"Query embedding failed: {e}") from e

        try:
            matches = await self._vector_store.query(
                query_embedding=query_embedding, n_results=top_k
            )
        except Exception as e:
            logger.error(f"Vector query failed: {e}")
            raise RetrievalError(f"Vector query failed: {e}") from e

        candidates = self._to_candidates(matches)
        logger.info(f"Search: {len(candidates)}/{top_k} candidates for '{query[:50]}'")
        return candidates

    @staticmethod
    def _to_candidates(matches: QueryMatches) -> list[Candidate]:
        count = min(len(matches.texts), len(matches.metadatas), len(matches.distances))
        if count != len(matches.texts):
            logger.warning(
                f"Vector index returned uneven arrays: {len(matches.texts)} texts, "
                f"{len(matches.metadatas)} metadatas, {len(matches.distances)} distances"
            )

        candidates = []
        for i in range(count):
            metadata = matches.metadatas[i] or {}
            if i < len(matches.ids):
                candidate_id = str(matches.ids[i])
            else:
                candidate_id = str(metadata.get("id", i + 1))
            candidates.append(
                Candidate(
                    id=candidate_id,
                    text=matches.texts[i] or "",
                    metadata=metadata,
                    similarity_distance=float(matches.distances[i]),
                )
            )

        candidates.sort(key=lambda c: c.similarity_distance)
        return candidates
