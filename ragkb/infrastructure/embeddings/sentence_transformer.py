import asyncio
import logging
from functools import cached_property

import numpy as np
from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """In-process embedding gateway; no server round trip."""

    def __init__(self, model_name: str = "intfloat/multilingual-e5-base", encode_batch_size: int = 32):
        self._model_name = model_name
        self._encode_batch_size = encode_batch_size

    @cached_property
    def model(self) -> SentenceTransformer:
        logger.info(f"Loading embedding model: {self._model_name}")
        return SentenceTransformer(self._model_name)

    def warmup(self) -> None:
        _ = self.model
        logger.info("Embedding model warmed up")

    def _encode(self, texts: list[str]) -> list[list[float]]:
        vectors: np.ndarray = self.model.encode(
            texts, batch_size=self._encode_batch_size, convert_to_numpy=True
        )
        return np.atleast_2d(vectors).astype(np.float32).tolist()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        # encode() is CPU bound; keep the event loop free for other batches
        return await asyncio.to_thread(self._encode, texts)

    async def embed_one(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]
