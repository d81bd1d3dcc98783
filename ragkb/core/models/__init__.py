"""Domain models."""
from .document import (
    Candidate,
    Chunk,
    Document,
    IngestionBatch,
    IngestionResult,
    QueryMatches,
    QueryResult,
    StoredVector,
)
from .chat import ChatMessage, ChatHistory

__all__ = [
    "Candidate",
    "Chunk",
    "Document",
    "IngestionBatch",
    "IngestionResult",
    "QueryMatches",
    "QueryResult",
    "StoredVector",
    "ChatMessage",
    "ChatHistory",
]
