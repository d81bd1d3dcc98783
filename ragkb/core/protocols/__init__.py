"""Protocol interfaces for dependency injection."""
from .embedder import BatchEmbedderProtocol, EmbedderProtocol
from .loader import DocumentLoaderProtocol
from .vector_store import VectorStoreProtocol
from .reranker import RerankerProtocol
from .scorer import ScoringModelProtocol
from .llm import LLMProtocol

__all__ = [
    "BatchEmbedderProtocol",
    "EmbedderProtocol",
    "DocumentLoaderProtocol",
    "VectorStoreProtocol",
    "RerankerProtocol",
    "ScoringModelProtocol",
    "LLMProtocol",
]
