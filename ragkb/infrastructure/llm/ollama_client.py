
import logging
from typing import AsyncIterator

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a helpful assistant answering questions about the user's knowledge base.

- When the message includes documents, base the answer on them and mention the source file.
- When the documents do not cover the question, say so before answering from general knowledge.
- Keep answers concise."""


class OllamaClient:
    """LLM client for Ollama (OpenAI-compatible API)."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434/v1",
        model: str = "deepseek-r1:7b",
        max_tokens: int = 1024,
        temperature: float = 0.7,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API URL.
            model: Model name.
            max_tokens: Max response tokens.
            temperature: Sampling temperature.
            system_prompt: System message prepended to every request.
        """
        self._client = AsyncOpenAI(base_url=base_url, api_key="ollama")
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._system_prompt = system_prompt

    async def chat_stream(self, messages: list[dict]) -> AsyncIterator[str]:
        """Stream chat response.

        Args:
            messages: History plus the user turn.

        Yields:
            Response tokens.
        """
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "system", "content": self._system_prompt}, *messages],
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            stream=True,
        )

        async for chunk in response:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content

    async def close(self) -> None:
        await self._client.close()
