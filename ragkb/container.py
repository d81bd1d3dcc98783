import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _singletons: dict[type, Any] = field(default_factory=dict)
    _singleton_flags: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = False
    ) -> None:
        """Register factory for interface.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Whether to cache instance.
        """
        self._factories[interface] = factory
        if singleton:
            self._singleton_flags.add(interface)

    def resolve(self, interface: type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        if interface not in self._factories:
            raise KeyError(f"No factory registered for {interface}")

        instance = self._factories[interface]()

        if interface in self._singleton_flags:
            self._singletons[interface] = instance

        return instance

    async def aclose(self) -> None:
        """Release clients held by resolved singletons, then forget them."""
        for instance in list(self._singletons.values()):
            for name in ("aclose", "close"):
                closer = getattr(instance, name, None)
                if closer is None:
                    continue
                result = closer()
                if inspect.isawaitable(result):
                    await result
                break
        self._singletons.clear()


def _build_embedder(settings: Settings):
    if settings.embedding_provider == "sentence_transformers":
        from .infrastructure.embeddings.sentence_transformer import (
            SentenceTransformerEmbedder,
        )

        return SentenceTransformerEmbedder(settings.embedding_model)

    from .infrastructure.embeddings.ollama_embedder import OllamaEmbedder

    return OllamaEmbedder(
        base_url=settings.ollama_base_url,
        model=settings.embedding_model,
        timeout=settings.embedding_timeout,
    )


def build_container(settings: Settings) -> Container:
    """Build a container with all dependencies.

    Each call returns an independent container with its own clients.

    Args:
        settings: Application settings.

    Returns:
        Configured container.
    """
    from .core.protocols.embedder import EmbedderProtocol
    from .core.protocols.llm import LLMProtocol
    from .core.protocols.reranker import RerankerProtocol
    from .core.protocols.scorer import ScoringModelProtocol
    from .core.protocols.vector_store import VectorStoreProtocol
    from .core.services.chat_service import ChatService
    from .core.services.chunker import TextChunker
    from .core.services.discovery import DocumentDiscovery
    from .core.services.ingest_service import IngestService
    from .core.services.rag_service import RagService
    from .core.services.rerank_service import RerankService
    from .core.services.search_service import SearchService
    from .infrastructure.document_loaders import TextLoader
    from .infrastructure.llm.ollama_client import OllamaClient
    from .infrastructure.llm.ollama_generate import OllamaGenerateClient
    from .infrastructure.vector_stores.chroma_store import ChromaVectorStore

    container = Container()

    container.register(EmbedderProtocol, lambda: _build_embedder(settings), singleton=True)

    container.register(
        VectorStoreProtocol,
        lambda: ChromaVectorStore(
            host=settings.chroma_host,
            port=settings.chroma_port,
            collection_name=settings.chroma_collection,
            tenant=settings.chroma_tenant,
            database=settings.chroma_database,
            timeout=settings.search_timeout,
        ),
        singleton=True,
    )

    container.register(
        ScoringModelProtocol,
        lambda: OllamaGenerateClient(
            base_url=settings.ollama_base_url,
            model=settings.reranker_model,
            timeout=settings.reranker_timeout,
        ),
        singleton=True,
    )

    container.register(
        RerankerProtocol,
        lambda: RerankService(
            scorer=container.resolve(ScoringModelProtocol),
            model=settings.reranker_model,
            enabled=settings.enable_reranking,
            temperature=settings.reranker_temperature,
            max_retries=settings.reranker_max_retries,
            timeout=settings.reranker_timeout,
            default_score=settings.rerank_default_score,
            keep_unmatched=settings.rerank_keep_unmatched,
        ),
        singleton=True,
    )

    container.register(
        LLMProtocol,
        lambda: OllamaClient(
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        ),
        singleton=True,
    )

    container.register(
        IngestService,
        lambda: IngestService(
            embedder=container.resolve(EmbedderProtocol),
            vector_store=container.resolve(VectorStoreProtocol),
            chunker=TextChunker(settings.chunk_size, settings.chunk_overlap),
            batch_size=settings.batch_size,
            max_concurrent_batches=settings.max_concurrent_batches,
        ),
        singleton=True,
    )

    container.register(
        SearchService,
        lambda: SearchService(
            embedder=container.resolve(EmbedderProtocol),
            vector_store=container.resolve(VectorStoreProtocol),
            default_top_k=settings.default_top_k,
            max_top_k=settings.max_top_k,
        ),
        singleton=True,
    )

    container.register(
        RagService,
        lambda: RagService(
            vector_store=container.resolve(VectorStoreProtocol),
            discovery=DocumentDiscovery(
                TextLoader(settings.supported_extensions),
                skip_directories=settings.skip_directories,
            ),
            ingest_service=container.resolve(IngestService),
            search_service=container.resolve(SearchService),
            reranker=container.resolve(RerankerProtocol),
            rerank_batch_size=settings.rerank_batch_size,
            collection_metadata={
                "embedding_model": settings.embedding_model,
                "embedding_dimension": settings.embedding_dimension,
            },
        ),
        singleton=True,
    )

    container.register(
        ChatService,
        lambda: ChatService(
            llm=container.resolve(LLMProtocol),
            rag_service=container.resolve(RagService),
            rag_enabled=settings.rag_enabled,
            top_k=settings.default_top_k,
        ),
        singleton=True,
    )

    logger.info("Container configured")
    return container
