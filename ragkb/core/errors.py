"""Error taxonomy for the ingestion and retrieval pipeline."""
from typing import Optional


class RagError(Exception):
    """Base class for pipeline errors."""


class IngestionError(RagError):
    """Embedding or storage failed while ingesting documents."""

    def __init__(self, message: str, batch_index: Optional[int] = None):
        super().__init__(message)
        self.batch_index = batch_index


class RetrievalError(RagError):
    """Embedding or similarity query failed while searching."""


class RerankParseError(RagError):
    """Scoring model output could not be turned into scores.

    Never leaves the reranker: it is converted to the retrieval-order fallback.
    """


class UnsupportedFileType(RagError):
    """File extension is not on the allow-list, or the file is not text."""

    def __init__(self, path: str, extension: str):
        super().__init__(f"Unsupported file type '{extension}': {path}")
        self.path = path
        self.extension = extension
