"""Chat service - grounds the answer model with retrieved context."""

import logging
from typing import AsyncIterator, Optional

from ..errors import RetrievalError
from ..models.chat import ChatHistory
from ..models.document import QueryResult
from ..protocols.llm import LLMProtocol
from .rag_service import RagService

logger = logging.getLogger(__name__)

LLM_ERROR_MESSAGE = (
    "Model call failed: {error}\n"
    "Please check that:\n"
    "1. the Ollama service is running\n"
    "2. the model has been pulled\n"
    "3. the network is reachable"
)


class ChatService:
    """Chat service that coordinates retrieval and the answer model."""

    def __init__(
        self,
        llm: LLMProtocol,
        rag_service: RagService,
        rag_enabled: bool = True,
        top_k: Optional[int] = None,
    ):
        """Initialize chat service.

        Args:
            llm: Answer-generation client.
            rag_service: Knowledge base.
            rag_enabled: Whether to ground answers in retrieved documents.
            top_k: Candidates retrieved per message.
        """
        self._llm = llm
        self._rag = rag_service
        self._rag_enabled = rag_enabled
        self._top_k = top_k

    @property
    def rag_enabled(self) -> bool:
        return self._rag_enabled

    def set_rag_enabled(self, enabled: bool) -> None:
        self._rag_enabled = bool(enabled)
        logger.info(f"RAG {'enabled' if self._rag_enabled else 'disabled'}")

    async def _build_prompt(self, user_message: str) -> tuple[str, Optional[QueryResult]]:
        if not self._rag_enabled:
            return user_message, None

        try:
            result = await self._rag.query(user_message, self._top_k)
        except RetrievalError as e:
            logger.warning(f"Retrieval failed, answering without context: {e}")
            return user_message, None

        logger.info(
            f"Grounding with {result.document_count} documents "
            f"(reranked={result.reranking_applied})"
        )
        return result.enhanced_prompt, result

    async def stream_reply(
        self, user_message: str, history: ChatHistory
    ) -> AsyncIterator[tuple[str, Optional[QueryResult]]]:
        """Stream the answer to one user message.

        The first item carries the query result (or None) with an empty token;
        the exchange is appended to history once the stream ends.

        Yields:
            Tuples of (token, query_result).
        """
        prompt, result = await self._build_prompt(user_message)
        yield ("", result)

        answer: list[str] = []
        try:
            async for token in self._llm.chat_stream(history.as_messages(prompt)):
                answer.append(token)
                yield (token, None)
        except Exception as e:
            logger.error(f"LLM stream failed: {e}")
            message = LLM_ERROR_MESSAGE.format(error=e)
            answer.append(message)
            yield (message, None)

        history.record_exchange(user_message, "".join(answer))
