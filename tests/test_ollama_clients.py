"""Tests for the embedding gateways and the generate transport."""

import json
from unittest.mock import MagicMock

import httpx
import numpy as np
import pytest

from ragkb.core.protocols.embedder import BatchEmbedderProtocol
from ragkb.infrastructure.embeddings.ollama_embedder import OllamaEmbedder
from ragkb.infrastructure.embeddings.sentence_transformer import SentenceTransformerEmbedder
from ragkb.infrastructure.llm.ollama_generate import OllamaGenerateClient


class TestOllamaEmbedder:
    """Tests for OllamaEmbedder."""

    @pytest.mark.asyncio
    async def test_embed_batch(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            n = len(seen[-1]["input"])
            return httpx.Response(200, json={"embeddings": [[float(i)] * 3 for i in range(n)]})

        embedder = OllamaEmbedder(model="embed-m", transport=httpx.MockTransport(handler))

        vectors = await embedder.embed_batch(["a", "b"])
        single = await embedder.embed_one("c")
        await embedder.aclose()

        assert vectors == [[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]]
        assert single == [0.0, 0.0, 0.0]
        assert seen[0] == {"model": "embed-m", "input": ["a", "b"]}

    @pytest.mark.asyncio
    async def test_count_mismatch_raises(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"embeddings": [[1.0]]}))
        embedder = OllamaEmbedder(transport=transport)

        with pytest.raises(ValueError):
            await embedder.embed_batch(["a", "b"])

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(404, json={"error": "model not found"}))
        embedder = OllamaEmbedder(transport=transport)

        with pytest.raises(httpx.HTTPStatusError):
            await embedder.embed_one("a")

    @pytest.mark.asyncio
    async def test_empty_batch_skips_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        embedder = OllamaEmbedder(transport=httpx.MockTransport(handler))

        assert await embedder.embed_batch([]) == []


class TestOllamaGenerateClient:
    """Tests for OllamaGenerateClient."""

    @pytest.mark.asyncio
    async def test_streams_lines(self):
        seen = []
        body = "\n".join(
            [
                json.dumps({"response": '{"id": 1,', "done": False}),
                json.dumps({"response": ' "score": 0.5}', "done": False}),
                json.dumps({"done": True}),
            ]
        )

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, content=body.encode())

        client = OllamaGenerateClient(model="rr", transport=httpx.MockTransport(handler))

        lines = [line async for line in client.generate_stream("prompt", temperature=0.0)]

        assert len(lines) == 3
        assert json.loads(lines[0])["response"] == '{"id": 1,'
        path, payload = seen[0]
        assert path == "/api/generate"
        assert payload == {
            "model": "rr",
            "prompt": "prompt",
            "stream": True,
            "options": {"temperature": 0.0},
            "format": "json",
        }

    @pytest.mark.asyncio
    async def test_no_format_hint(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, content=b"")

        client = OllamaGenerateClient(transport=httpx.MockTransport(handler))

        assert [line async for line in client.generate_stream("p", format_hint=None)] == []
        assert "format" not in seen[0]

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(500, content=b"model crashed"))
        client = OllamaGenerateClient(transport=transport)

        with pytest.raises(httpx.HTTPStatusError):
            async for _ in client.generate_stream("p"):
                pass


class TestSentenceTransformerEmbedder:
    """Tests for SentenceTransformerEmbedder with a stand-in model."""

    @pytest.mark.asyncio
    async def test_embeds_batches_as_float_lists(self):
        model = MagicMock()
        model.encode.side_effect = lambda texts, **kw: np.ones((len(texts), 4), dtype=np.float64)
        embedder = SentenceTransformerEmbedder("local-model", encode_batch_size=8)
        embedder.__dict__["model"] = model

        vectors = await embedder.embed_batch(["a", "b", "c"])
        single = await embedder.embed_one("d")

        assert vectors == [[1.0] * 4] * 3
        assert single == [1.0] * 4
        assert model.encode.call_args.kwargs["batch_size"] == 8
        assert isinstance(embedder, BatchEmbedderProtocol)
        assert await embedder.embed_batch([]) == []
