"""Core business services."""
from .chunker import TextChunker
from .discovery import DocumentDiscovery
from .ingest_service import IngestService
from .search_service import SearchService
from .rerank_service import RerankService
from .rag_service import RagService
from .chat_service import ChatService

__all__ = [
    "TextChunker",
    "DocumentDiscovery",
    "IngestService",
    "SearchService",
    "RerankService",
    "RagService",
    "ChatService",
]
