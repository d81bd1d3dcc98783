"""Pytest configuration and shared fixtures for the test suite."""

import asyncio
import json
import math
import re
import zlib
from typing import AsyncIterator, Optional

import pytest

from ragkb.core.models.document import Candidate, Document, QueryMatches
from ragkb.core.services.chunker import TextChunker
from ragkb.core.services.discovery import DocumentDiscovery
from ragkb.core.services.ingest_service import IngestService
from ragkb.core.services.rag_service import RagService
from ragkb.core.services.rerank_service import RerankService
from ragkb.core.services.search_service import SearchService
from ragkb.infrastructure.document_loaders import TextLoader

ML_TEXT = "Machine learning is a branch of AI."
COOKING_TEXT = "Cooking pasta requires boiling water and a pinch of salt."

DIMENSION = 64


def bag_of_words(text: str) -> list[float]:
    """Deterministic hashed bag-of-words vector."""
    vector = [0.0] * DIMENSION
    for word in re.findall(r"[a-z0-9]+", text.lower()):
        vector[zlib.crc32(word.encode()) % DIMENSION] += 1.0
    return vector


def cosine_distance(a: list[float], b: list[float]) -> float:
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 1.0
    return 1.0 - sum(x * y for x, y in zip(a, b)) / norm


def stream_lines(text: str, pieces: int = 3) -> list[str]:
    """Split text into Ollama-style stream frames."""
    step = max(1, math.ceil(len(text) / pieces))
    lines = [
        json.dumps({"response": text[i : i + step], "done": False})
        for i in range(0, len(text), step)
    ]
    lines.append(json.dumps({"response": "", "done": True}))
    return lines


class FakeEmbedder:
    """Embedder with both single and batch calls."""

    def __init__(self, delay: float = 0.0, fail_on: Optional[str] = None, events: Optional[list] = None):
        self.delay = delay
        self.fail_on = fail_on
        self.events = events if events is not None else []
        self.batch_calls: list[list[str]] = []
        self.single_calls: list[str] = []

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        for text in texts:
            self.events.append(("embed", text))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on and any(self.fail_on in t for t in texts):
            raise RuntimeError(f"embedding failed for {self.fail_on}")
        return [bag_of_words(t) for t in texts]

    async def embed_one(self, text: str) -> list[float]:
        self.single_calls.append(text)
        return bag_of_words(text)


class SingleEmbedder:
    """Embedder without a batch capability."""

    def __init__(self):
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def embed_one(self, text: str) -> list[float]:
        self.calls.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.001)
        self.in_flight -= 1
        return bag_of_words(text)


class InMemoryVectorStore:
    """Vector index keeping everything in lists, with call recording."""

    def __init__(self, collection_name: str = "test_collection", add_delay: float = 0.0, events: Optional[list] = None):
        self._collection_name = collection_name
        self.collections: dict[str, dict] = {}
        self.active: Optional[str] = None
        self.add_delay = add_delay
        self.events = events if events is not None else []
        self.add_calls: list[list[str]] = []
        self.fail_query = False
        self.fail_connect = False

    @property
    def collection_name(self) -> str:
        return self._collection_name

    def _rows(self) -> list[dict]:
        return self.collections.setdefault(self._collection_name, {"metadata": {}, "rows": []})["rows"]

    async def create_collection(self, name: str, metadata: dict) -> str:
        self.collections[name] = {"metadata": dict(metadata), "rows": []}
        self.active = name
        return f"id-{name}"

    async def get_collection(self, name: str) -> Optional[str]:
        if self.fail_connect:
            raise ConnectionError("index unreachable")
        if name in self.collections:
            self.active = name
            return f"id-{name}"
        return None

    async def add(self, ids, embeddings, documents, metadatas) -> None:
        batch = ids[0].split("_")[0] if ids else "?"
        self.events.append(("add_start", batch))
        self.add_calls.append(list(ids))
        if self.add_delay:
            await asyncio.sleep(self.add_delay)
        rows = self._rows()
        for row in zip(ids, embeddings, documents, metadatas):
            rows.append(dict(zip(("id", "embedding", "text", "metadata"), row)))
        self.events.append(("add_end", batch))

    async def query(self, query_embedding, n_results: int = 5) -> QueryMatches:
        if self.fail_query:
            raise ConnectionError("index unavailable")
        scored = sorted(
            ((cosine_distance(query_embedding, r["embedding"]), r) for r in self._rows()),
            key=lambda pair: pair[0],
        )[:n_results]
        return QueryMatches(
            ids=[r["id"] for _, r in scored],
            texts=[r["text"] for _, r in scored],
            metadatas=[r["metadata"] for _, r in scored],
            distances=[d for d, _ in scored],
        )

    async def count(self) -> int:
        return len(self._rows())

    async def delete_collection(self, name: str) -> None:
        self.collections.pop(name, None)


class FakeScorer:
    """Scoring transport replaying canned stream lines."""

    def __init__(self, lines: Optional[list[str]] = None, error: Optional[Exception] = None):
        self.lines = lines or []
        self.error = error
        self.prompts: list[str] = []
        self.temperatures: list[float] = []

    @classmethod
    def replying(cls, payload) -> "FakeScorer":
        text = payload if isinstance(payload, str) else json.dumps(payload)
        return cls(stream_lines(text))

    async def generate_stream(
        self, prompt: str, temperature: float = 0.0, format_hint: str | None = "json"
    ) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        self.temperatures.append(temperature)
        if self.error:
            raise self.error
        for line in self.lines:
            yield line


def make_document(text: str, filename: str = "doc.txt") -> Document:
    return Document(
        source_path=f"/docs/{filename}",
        filename=filename,
        extension=".txt",
        size_bytes=len(text.encode()),
        modified_at="2025-01-01T00:00:00+00:00",
        file_type="text",
        raw_text=text,
    )


def make_candidate(cid: str, text: str = "", distance: float = 0.1, filename: str = "doc.txt") -> Candidate:
    return Candidate(
        id=cid,
        text=text or f"text of {cid}",
        metadata={"filename": filename},
        similarity_distance=distance,
    )


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def ingest_service(embedder, vector_store) -> IngestService:
    return IngestService(
        embedder=embedder,
        vector_store=vector_store,
        chunker=TextChunker(chunk_size=1000, overlap=200),
        batch_size=2,
        max_concurrent_batches=2,
    )


@pytest.fixture
def search_service(embedder, vector_store) -> SearchService:
    return SearchService(embedder=embedder, vector_store=vector_store, default_top_k=5, max_top_k=20)


@pytest.fixture
def candidates() -> list[Candidate]:
    """Three candidates in retrieval order A, B, C."""
    return [
        make_candidate("a", "alpha text", 0.1, "a.txt"),
        make_candidate("b", "beta text", 0.2, "b.txt"),
        make_candidate("c", "gamma text", 0.3, "c.txt"),
    ]


@pytest.fixture
def make_rag_service(embedder, vector_store, ingest_service, search_service):
    """Factory building a RagService around a given scoring transport."""

    def _make(scorer: Optional[FakeScorer] = None, enabled: bool = True) -> RagService:
        reranker = RerankService(scorer=scorer or FakeScorer(), model="fake-reranker", enabled=enabled)
        return RagService(
            vector_store=vector_store,
            discovery=DocumentDiscovery(TextLoader(), skip_directories=["node_modules", "dist"]),
            ingest_service=ingest_service,
            search_service=search_service,
            reranker=reranker,
            rerank_batch_size=10,
        )

    return _make
