import logging

import httpx

logger = logging.getLogger(__name__)


class OllamaEmbedder:
    """Embedding gateway backed by Ollama's /api/embed endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "dengcao/Qwen3-Embedding-4B:Q4_K_M",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize embedder.

        Args:
            base_url: Ollama server URL.
            model: Embedding model name.
            timeout: Per-request timeout in seconds.
            transport: Custom httpx transport.
        """
        self._model = model
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport
        )

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        resp = await self._client.post(
            "/api/embed", json={"model": self._model, "input": texts}
        )
        resp.raise_for_status()
        embeddings = resp.json().get("embeddings") or []
        if len(embeddings) != len(texts):
            raise ValueError(
                f"Ollama returned {len(embeddings)} embeddings for {len(texts)} texts"
            )
        return embeddings

    async def embed_one(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]

    async def aclose(self) -> None:
        await self._client.aclose()
