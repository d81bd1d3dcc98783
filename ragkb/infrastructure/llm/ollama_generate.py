import logging
from typing import AsyncIterator

import httpx

logger = logging.getLogger(__name__)


class OllamaGenerateClient:
    """Streamed /api/generate transport used by the reranker."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "dengcao/Qwen3-Reranker-4B:Q4_K_M",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            base_url: Ollama server URL.
            model: Scoring model name.
            timeout: Connect/read timeout in seconds.
            transport: Custom httpx transport.
        """
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._transport = transport

    async def generate_stream(
        self,
        prompt: str,
        temperature: float = 0.0,
        format_hint: str | None = "json",
    ) -> AsyncIterator[str]:
        """Yield raw newline-delimited stream lines.

        Raises:
            httpx.HTTPStatusError: Non-2xx response.
            httpx.TransportError: Connection failure.
        """
        payload = {
            "model": self._model,
            "prompt": prompt,
            "stream": True,
            "options": {"temperature": temperature},
        }
        if format_hint:
            payload["format"] = format_hint

        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            async with client.stream("POST", "/api/generate", json=payload) as resp:
                if resp.is_error:
                    body = (await resp.aread()).decode("utf-8", errors="replace")
                    logger.error(f"Scoring model HTTP {resp.status_code}: {body[:200]}")
                    resp.raise_for_status()
                async for line in resp.aiter_lines():
                    yield line
