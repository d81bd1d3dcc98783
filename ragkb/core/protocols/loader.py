"""Document loader protocol for dependency injection."""
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..models.document import Document


@runtime_checkable
class DocumentLoaderProtocol(Protocol):
    """Protocol for reading one file into a Document."""

    def supports(self, file_path: Path) -> bool:
        ...

    def load(self, file_path: Path) -> Document:
        """Read a file.

        Raises:
            UnsupportedFileType: Extension not allowed or content not text.
        """
        ...
