"""Tests for the RAG orchestrator."""

import json
from pathlib import Path

import pytest

from conftest import COOKING_TEXT, ML_TEXT, FakeScorer, make_candidate, stream_lines
from ragkb.core.errors import IngestionError, RetrievalError, UnsupportedFileType
from ragkb.core.services.rag_service import RagService


@pytest.fixture
def kb_dir(tmp_path: Path) -> Path:
    (tmp_path / "cooking.txt").write_text(COOKING_TEXT, encoding="utf-8")
    (tmp_path / "ml.md").write_text(ML_TEXT, encoding="utf-8")
    nested = tmp_path / "notes"
    nested.mkdir()
    (nested / "long.txt").write_text(
        "\n".join(f"Paragraph {i} about vector search and chunking." for i in range(400)),
        encoding="utf-8",
    )
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "skip.js").write_text("skip()", encoding="utf-8")
    return tmp_path


def ml_favoring_scorer() -> FakeScorer:
    """Scores whichever document mentions machine learning highest."""

    class MLScorer(FakeScorer):
        async def generate_stream(self, prompt, temperature=0.0, format_hint="json"):
            self.prompts.append(prompt)
            entries = []
            for line in prompt.split("\n"):
                if line.startswith("Document "):
                    token, _, text = line[len("Document "):].partition(": ")
                    entries.append({"id": int(token), "score": 0.9 if "Machine" in text else 0.1})
            for frame in stream_lines(json.dumps({"results": entries})):
                yield frame

    return MLScorer()


class TestAddDocuments:
    """Tests for RagService.add_documents."""

    @pytest.mark.asyncio
    async def test_single_file(self, kb_dir, make_rag_service, vector_store):
        rag = make_rag_service()

        result = await rag.add_documents(str(kb_dir / "ml.md"))

        assert result.documents_processed == 1
        assert result.chunks_created == 1
        assert result.total_time_ms is not None
        assert vector_store.collections["test_collection"]["metadata"]["description"]

    @pytest.mark.asyncio
    async def test_directory(self, kb_dir, make_rag_service, vector_store):
        rag = make_rag_service()

        result = await rag.add_documents(str(kb_dir))

        assert result.documents_processed == 3
        assert result.chunks_created > 3
        assert await vector_store.count() == result.chunks_created

    @pytest.mark.asyncio
    async def test_reingest_after_clear_is_stable(self, kb_dir, make_rag_service, vector_store):
        rag = make_rag_service()

        first = await rag.add_documents(str(kb_dir))
        await rag.clear()
        assert await vector_store.count() == 0
        second = await rag.add_documents(str(kb_dir))

        assert first.chunks_created == second.chunks_created
        assert await vector_store.count() == second.chunks_created

    @pytest.mark.asyncio
    async def test_missing_path(self, tmp_path, make_rag_service):
        with pytest.raises(IngestionError):
            await make_rag_service().add_documents(str(tmp_path / "missing"))

    @pytest.mark.asyncio
    async def test_unsupported_single_file(self, tmp_path, make_rag_service):
        path = tmp_path / "photo.png"
        path.write_bytes(b"\x89PNG")

        with pytest.raises(UnsupportedFileType):
            await make_rag_service().add_documents(str(path))

    @pytest.mark.asyncio
    async def test_unreachable_index_raises_ingestion_error(self, kb_dir, make_rag_service, vector_store):
        vector_store.fail_connect = True

        with pytest.raises(IngestionError, match="index unreachable") as exc:
            await make_rag_service().add_documents(str(kb_dir))

        assert isinstance(exc.value.__cause__, ConnectionError)
        assert await vector_store.count() == 0

    def test_validate_path(self, kb_dir, make_rag_service):
        rag = make_rag_service()

        assert rag.validate_path(str(kb_dir))
        assert not rag.validate_path(str(kb_dir / "nope"))


class TestQuery:
    """Tests for RagService.query."""

    @pytest.mark.asyncio
    async def test_ml_document_ranked_first(self, kb_dir, make_rag_service):
        rag = make_rag_service(ml_favoring_scorer())
        await rag.add_documents(str(kb_dir / "cooking.txt"))
        await rag.add_documents(str(kb_dir / "ml.md"))

        result = await rag.query("learning AI", top_k=2)

        assert len(result.original_candidates) == 2
        assert result.document_count == 2
        assert result.reranking_applied
        assert result.candidates[0].filename == "ml.md"
        assert result.candidates[0].rerank_score == 0.9
        assert "Document 1 (source: ml.md):\nMachine learning is a branch of AI." in result.enhanced_prompt
        assert result.enhanced_prompt.index("ml.md") < result.enhanced_prompt.index("cooking.txt")
        assert "User question: learning AI" in result.enhanced_prompt

    @pytest.mark.asyncio
    async def test_failed_rerank_keeps_retrieval_order(self, kb_dir, make_rag_service):
        rag = make_rag_service(FakeScorer(["{truncated"]))
        await rag.add_documents(str(kb_dir))

        result = await rag.query("vector search", top_k=3)

        assert not result.reranking_applied
        assert result.candidates == result.original_candidates
        assert all(c.rerank_score is None for c in result.candidates)

    @pytest.mark.asyncio
    async def test_large_candidate_sets_use_batch_rerank(self, kb_dir, make_rag_service):
        scorer = ml_favoring_scorer()
        rag = make_rag_service(scorer)
        await rag.add_documents(str(kb_dir))

        result = await rag.query("vector search", top_k=15)

        assert len(result.candidates) == 15
        assert len(scorer.prompts) == 2

    @pytest.mark.asyncio
    async def test_empty_store(self, make_rag_service):
        result = await make_rag_service().query("anything")

        assert result.candidates == []
        assert result.enhanced_prompt == "anything"
        assert not result.reranking_applied

    @pytest.mark.asyncio
    async def test_unreachable_index_raises_retrieval_error(self, make_rag_service, vector_store):
        vector_store.fail_connect = True
        rag = make_rag_service()

        with pytest.raises(RetrievalError, match="index unreachable"):
            await rag.query("learning AI", top_k=2)

        # The next call tries to connect again
        vector_store.fail_connect = False
        assert (await rag.query("learning AI", top_k=2)).candidates == []

    @pytest.mark.asyncio
    async def test_retrieval_failure_propagates(self, make_rag_service, vector_store):
        vector_store.fail_query = True

        with pytest.raises(RetrievalError):
            await make_rag_service().query("anything")


class TestPromptAndAdmin:
    """Tests for prompt assembly, clear and stats."""

    def test_enhanced_prompt_layout(self):
        cands = [make_candidate("x", "first body", filename="one.txt"),
                 make_candidate("y", "second body", filename="two.txt")]

        prompt = RagService.build_enhanced_prompt("why?", cands)

        assert prompt.startswith("Answer the question using the following relevant documents:")
        assert prompt.index("Document 1 (source: one.txt):\nfirst body") < prompt.index(
            "Document 2 (source: two.txt):\nsecond body"
        )
        assert "User question: why?" in prompt
        assert prompt.rstrip().endswith("general knowledge.")

    @pytest.mark.asyncio
    async def test_clear_recreates_collection(self, kb_dir, make_rag_service, vector_store):
        rag = make_rag_service()
        await rag.add_documents(str(kb_dir / "ml.md"))

        await rag.clear()

        assert "test_collection" in vector_store.collections
        assert await vector_store.count() == 0

    @pytest.mark.asyncio
    async def test_stats(self, kb_dir, make_rag_service):
        rag = make_rag_service()
        await rag.add_documents(str(kb_dir / "ml.md"))

        stats = await rag.get_stats()

        assert stats["vector_store"] == {"total_documents": 1, "collection_name": "test_collection"}
        assert stats["reranker"]["model"] == "fake-reranker"
        assert "timestamp" in stats

    @pytest.mark.asyncio
    async def test_initialize_connects_to_existing_collection(self, make_rag_service, vector_store):
        await vector_store.create_collection("test_collection", {"keep": "me"})

        await make_rag_service().initialize()

        assert vector_store.collections["test_collection"]["metadata"] == {"keep": "me"}
