"""RAG service - composes ingestion, retrieval and reranking."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from ..errors import IngestionError, RagError, RetrievalError
from ..models.document import Candidate, IngestionResult, QueryResult
from ..protocols.reranker import RerankerProtocol
from ..protocols.vector_store import VectorStoreProtocol
from .discovery import DocumentDiscovery, expand_path
from .ingest_service import IngestService
from .search_service import SearchService

logger = logging.getLogger(__name__)

CONTEXT_INTRO = "Answer the question using the following relevant documents:\n\n"
CONTEXT_OUTRO = (
    "Answer the user's question based on the documents above. If the documents "
    "do not contain the relevant information, say so and answer from your general knowledge."
)


class RagService:
    """Knowledge base facade: add documents, query, clear."""

    def __init__(
        self,
        vector_store: VectorStoreProtocol,
        discovery: DocumentDiscovery,
        ingest_service: IngestService,
        search_service: SearchService,
        reranker: RerankerProtocol,
        rerank_batch_size: int = 10,
        collection_metadata: Optional[dict[str, Any]] = None,
    ):
        """Initialize RAG service.

        Args:
            vector_store: Vector index holding the collection.
            discovery: File discovery.
            ingest_service: Batch ingestion coordinator.
            search_service: Retriever.
            reranker: Reranker.
            rerank_batch_size: Candidate count above which reranking is grouped.
            collection_metadata: Metadata for newly created collections.
        """
        self._vector_store = vector_store
        self._discovery = discovery
        self._ingest = ingest_service
        self._search = search_service
        self._reranker = reranker
        self._rerank_batch_size = max(1, rerank_batch_size)
        self._collection_metadata = collection_metadata or {}
        self._initialized = False

    def _new_collection_metadata(self) -> dict[str, Any]:
        return {
            "description": "RAG document vector store",
            **self._collection_metadata,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

    async def initialize(self) -> None:
        """Connect to the collection, creating it if missing."""
        name = self._vector_store.collection_name
        if await self._vector_store.get_collection(name) is None:
            await self._vector_store.create_collection(name, self._new_collection_metadata())
            logger.info(f"Created collection: {name}")
        else:
            logger.info(f"Connected to collection: {name}")
        self._initialized = True

    async def _ensure_initialized(self, error: type[RagError] = RagError) -> None:
        if self._initialized:
            return
        try:
            await self.initialize()
        except Exception as e:
            raise error(f"Vector index unavailable: {e}") from e

    def validate_path(self, path: str) -> bool:
        return self._discovery.validate_path(path)

    async def add_documents(self, path: str) -> IngestionResult:
        """Discover documents under path and ingest them.

        Raises:
            IngestionError: Vector index unreachable, path missing, or a batch failed.
        """
        started = time.monotonic()
        await self._ensure_initialized(IngestionError)
        logger.info(f"Adding documents from {path} ({expand_path(path)})")

        try:
            documents = await asyncio.to_thread(self._discovery.discover, path)
        except FileNotFoundError as e:
            raise IngestionError(str(e)) from e

        result = await self._ingest.ingest(documents)
        result.total_time_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Added {result.documents_processed} documents / {result.chunks_created} "
            f"chunks in {result.total_time_ms}ms"
        )
        return result

    async def _rerank(self, query: str, candidates: list[Candidate]) -> list[Candidate]:
        if len(candidates) > self._rerank_batch_size:
            return await self._reranker.batch_rerank(query, candidates, self._rerank_batch_size)
        return await self._reranker.rerank(query, candidates)

    async def query(self, text: str, top_k: Optional[int] = None) -> QueryResult:
        """Retrieve, rerank and build the grounded prompt.

        Raises:
            RetrievalError: Vector index unreachable or retrieval failed. Rerank failures never raise.
        """
        await self._ensure_initialized(RetrievalError)
        candidates = await self._search.search(text, top_k)
        reranked = await self._rerank(text, candidates)

        return QueryResult(
            query=text,
            candidates=reranked,
            original_candidates=candidates,
            enhanced_prompt=self.build_enhanced_prompt(text, reranked),
        )

    @staticmethod
    def build_enhanced_prompt(query: str, candidates: list[Candidate]) -> str:
        if not candidates:
            return query

        parts = [CONTEXT_INTRO]
        for i, c in enumerate(candidates, 1):
            parts.append(f"Document {i} (source: {c.filename}):\n{c.text}\n\n")
        parts.append(f"User question: {query}\n\n")
        parts.append(CONTEXT_OUTRO)
        return "".join(parts)

    async def clear(self) -> None:
        """Delete and recreate the collection. Irreversible."""
        name = self._vector_store.collection_name
        await self._ensure_initialized()
        await self._vector_store.delete_collection(name)
        await self._vector_store.create_collection(name, self._new_collection_metadata())
        logger.info(f"Knowledge base cleared: {name}")

    async def get_stats(self) -> dict[str, Any]:
        await self._ensure_initialized()
        stats: dict[str, Any] = {
            "vector_store": {
                "total_documents": await self._vector_store.count(),
                "collection_name": self._vector_store.collection_name,
            },
            "reranker": self._reranker.get_stats(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        return stats

    def close(self) -> None:
        """Forget the collection handle; the next call reconnects."""
        self._initialized = False
        logger.info("RAG service closed")
