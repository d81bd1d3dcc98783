"""Document domain models."""
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Document:
    """Text file read from disk, discarded after chunking."""
    source_path: str
    filename: str
    extension: str
    size_bytes: int
    modified_at: str
    file_type: str
    raw_text: str

    @property
    def metadata(self) -> dict[str, Any]:
        return {
            "source": self.source_path,
            "filename": self.filename,
            "extension": self.extension,
            "size": self.size_bytes,
            "modified": self.modified_at,
            "type": self.file_type,
        }


@dataclass
class Chunk:
    """Document chunk for indexing."""
    text: str
    source_metadata: dict[str, Any]
    chunk_index: int
    total_chunks: int

    @property
    def metadata(self) -> dict[str, Any]:
        """Source metadata plus chunk position, as stored alongside the vector."""
        return {
            **self.source_metadata,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
        }


@dataclass
class IngestionBatch:
    chunks: list[Chunk]
    batch_index: int


@dataclass(frozen=True)
class StoredVector:
    id: str
    embedding: list[float]
    text: str
    metadata: dict[str, Any]


@dataclass
class IngestionResult:
    documents_processed: int
    chunks_created: int
    duration_ms: int
    total_time_ms: Optional[int] = None


@dataclass
class QueryMatches:
    """Parallel arrays returned by one nearest-neighbour query."""
    ids: list[str] = field(default_factory=list)
    texts: list[str] = field(default_factory=list)
    metadatas: list[dict] = field(default_factory=list)
    distances: list[float] = field(default_factory=list)


@dataclass(frozen=True)
class Candidate:
    """Search candidate, optionally carrying reranker output.

    A candidate without ``rerank_score`` has not been reranked.
    """
    id: str
    text: str
    metadata: dict[str, Any]
    similarity_distance: float
    rerank_score: Optional[float] = None
    original_rank: Optional[int] = None

    @property
    def filename(self) -> str:
        return str(self.metadata.get("filename") or self.metadata.get("source") or "Unknown")

    @property
    def is_reranked(self) -> bool:
        return self.rerank_score is not None


@dataclass
class QueryResult:
    """Query response for presentation layer."""
    query: str
    candidates: list[Candidate]
    original_candidates: list[Candidate]
    enhanced_prompt: str

    @property
    def document_count(self) -> int:
        return len(self.candidates)

    @property
    def reranking_applied(self) -> bool:
        return bool(self.candidates) and self.candidates[0].is_reranked
