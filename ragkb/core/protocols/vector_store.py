"""Vector index protocol for dependency injection."""
from typing import Optional, Protocol, runtime_checkable

from ..models.document import QueryMatches


@runtime_checkable
class VectorStoreProtocol(Protocol):
    """Protocol for vector storage."""

    @property
    def collection_name(self) -> str:
        ...

    async def create_collection(self, name: str, metadata: dict) -> str:
        """Create a collection and make it the active one.

        Args:
            name: Collection name.
            metadata: Collection metadata.

        Returns:
            Collection ID.
        """
        ...

    async def get_collection(self, name: str) -> Optional[str]:
        """Look up a collection and make it the active one.

        Returns:
            Collection ID, or None if it does not exist.
        """
        ...

    async def add(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict],
    ) -> None:
        """Append vectors to the active collection.

        Args:
            ids: Vector IDs.
            embeddings: Vectors.
            documents: Texts.
            metadatas: Per-vector metadata.
        """
        ...

    async def query(self, query_embedding: list[float], n_results: int = 5) -> QueryMatches:
        """Nearest-neighbour search on the active collection.

        Args:
            query_embedding: Query vector.
            n_results: Number of matches to return.

        Returns:
            Parallel ids, texts, metadatas and distances.
        """
        ...

    async def count(self) -> int:
        """Get vector count of the active collection."""
        ...

    async def delete_collection(self, name: str) -> None:
        """Drop a collection and everything in it."""
        ...
