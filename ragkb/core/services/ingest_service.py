"""Ingest service - chunking, batched embedding and storage."""

import asyncio
import logging
import time
from datetime import date, datetime
from typing import Any, Callable, Mapping, Optional

from ..errors import IngestionError
from ..models.document import Chunk, Document, IngestionBatch, IngestionResult, StoredVector
from ..protocols.embedder import BatchEmbedderProtocol, EmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol
from .chunker import TextChunker

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[int, int], None]


def clean_metadata(metadata: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten metadata into scalar values the vector index accepts.

    Nested mappings become dotted keys, datetimes become ISO strings and
    ``None`` values are dropped.
    """
    cleaned: dict[str, Any] = {}
    for key, value in metadata.items():
        name = f"{prefix}{key}"
        if value is None:
            continue
        if isinstance(value, (str, bool, int, float)):
            cleaned[name] = value
        elif isinstance(value, (datetime, date)):
            cleaned[name] = value.isoformat()
        elif isinstance(value, Mapping):
            cleaned.update(clean_metadata(value, prefix=f"{name}."))
        else:
            cleaned[name] = str(value)
    return cleaned


class IngestService:
    """Batch ingestion coordinator.

    Chunks are grouped into batches and batches are processed in waves of
    ``max_concurrent_batches``; a wave is fully awaited before the next starts.
    """

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        chunker: TextChunker,
        batch_size: int = 50,
        max_concurrent_batches: int = 3,
    ):
        """Initialize ingest service.

        Args:
            embedder: Embedding gateway.
            vector_store: Vector index.
            chunker: Text chunker.
            batch_size: Chunks per batch.
            max_concurrent_batches: Batches in flight per wave.
        """
        self._embedder = embedder
        self._vector_store = vector_store
        self._chunker = chunker
        self._batch_size = max(1, batch_size)
        self._max_concurrent_batches = max(1, max_concurrent_batches)
        self._observers: list[ProgressObserver] = []

    def add_observer(self, observer: ProgressObserver) -> None:
        """Register a callback receiving (processed_batches, total_batches)."""
        self._observers.append(observer)

    def chunk_document(self, document: Document) -> list[Chunk]:
        texts = self._chunker.split(document.raw_text)
        source_metadata = document.metadata
        return [
            Chunk(
                text=text,
                source_metadata=source_metadata,
                chunk_index=i,
                total_chunks=len(texts),
            )
            for i, text in enumerate(texts)
        ]

    def make_batches(
        self, chunks: list[Chunk], batch_size: Optional[int] = None
    ) -> list[IngestionBatch]:
        size = max(1, batch_size or self._batch_size)
        return [
            IngestionBatch(chunks=chunks[i : i + size], batch_index=i // size)
            for i in range(0, len(chunks), size)
        ]

    @staticmethod
    def to_vectors(batch: IngestionBatch, embeddings: list[list[float]]) -> list[StoredVector]:
        """Pair chunks with their embeddings under ids unique to this batch and moment."""
        stamp = int(time.time() * 1000)
        return [
            StoredVector(
                id=f"{batch.batch_index}_{i}_{stamp}",
                embedding=embedding,
                text=chunk.text,
                metadata=clean_metadata(chunk.metadata),
            )
            for i, (chunk, embedding) in enumerate(zip(batch.chunks, embeddings))
        ]

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        """Embed all texts of one batch, issuing every call together."""
        if isinstance(self._embedder, BatchEmbedderProtocol):
            return await self._embedder.embed_batch(texts)
        return list(await asyncio.gather(*(self._embedder.embed_one(t) for t in texts)))

    async def _process_batch(self, batch: IngestionBatch) -> None:
        started = time.monotonic()
        texts = [c.text for c in batch.chunks]

        embeddings = await self._embed(texts)
        if len(embeddings) != len(texts):
            raise IngestionError(
                f"Embedding count mismatch in batch {batch.batch_index + 1}: "
                f"{len(embeddings)} vectors for {len(texts)} texts",
                batch_index=batch.batch_index,
            )

        vectors = self.to_vectors(batch, embeddings)
        await self._vector_store.add(
            ids=[v.id for v in vectors],
            embeddings=[v.embedding for v in vectors],
            documents=[v.text for v in vectors],
            metadatas=[v.metadata for v in vectors],
        )

        logger.debug(
            f"Batch {batch.batch_index + 1} stored {len(texts)} chunks "
            f"in {(time.monotonic() - started) * 1000:.0f}ms"
        )

    def _notify(self, processed: int, total: int) -> None:
        for observer in self._observers:
            try:
                observer(processed, total)
            except Exception as e:
                logger.warning(f"Progress observer failed: {e}")

    async def ingest(
        self,
        documents: list[Document],
        batch_size: Optional[int] = None,
        max_concurrent_batches: Optional[int] = None,
    ) -> IngestionResult:
        """Chunk, embed and store documents.

        Args:
            documents: Documents to ingest.
            batch_size: Override chunks per batch.
            max_concurrent_batches: Override wave width.

        Returns:
            Ingestion counts and duration.

        Raises:
            IngestionError: A batch failed to embed or store. Batches already
                written are not rolled back.
        """
        width = max(1, max_concurrent_batches or self._max_concurrent_batches)

        chunks: list[Chunk] = []
        for document in documents:
            chunks.extend(self.chunk_document(document))
        logger.info(f"Created {len(chunks)} chunks from {len(documents)} documents")

        batches = self.make_batches(chunks, batch_size)
        logger.info(
            f"Processing {len(batches)} batches of up to "
            f"{max(1, batch_size or self._batch_size)} chunks, {width} at a time"
        )

        started = time.monotonic()
        for wave_start in range(0, len(batches), width):
            wave = batches[wave_start : wave_start + width]
            outcomes = await asyncio.gather(
                *(self._process_batch(b) for b in wave), return_exceptions=True
            )

            for batch, outcome in zip(wave, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Batch {batch.batch_index + 1} failed: {outcome}")
                    if isinstance(outcome, IngestionError):
                        raise outcome
                    raise IngestionError(
                        f"Batch {batch.batch_index + 1} failed: {outcome}",
                        batch_index=batch.batch_index,
                    ) from outcome

            processed = wave_start + len(wave)
            logger.info(f"Progress: {processed}/{len(batches)} batches")
            self._notify(processed, len(batches))

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Ingestion complete: {len(chunks)} chunks in {duration_ms}ms")
        return IngestionResult(
            documents_processed=len(documents),
            chunks_created=len(chunks),
            duration_ms=duration_ms,
        )
