"""Document discovery - file-system walk into Documents."""

import logging
from pathlib import Path
from typing import Iterable

from ..errors import UnsupportedFileType
from ..models.document import Document
from ..protocols.loader import DocumentLoaderProtocol

logger = logging.getLogger(__name__)


def expand_path(path: str | Path) -> Path:
    """Expand a leading ``~`` and resolve to an absolute path."""
    return Path(path).expanduser().resolve()


class DocumentDiscovery:
    """Finds supported files under a path and reads them."""

    def __init__(
        self,
        loader: DocumentLoaderProtocol,
        skip_directories: Iterable[str] = ("node_modules", ".git", "dist"),
    ):
        """Initialize discovery.

        Args:
            loader: Reads one file into a Document.
            skip_directories: Directory names never descended into.
        """
        self._loader = loader
        self._skip_directories = set(skip_directories)

    def validate_path(self, path: str | Path) -> bool:
        expanded = expand_path(path)
        return expanded.is_file() or expanded.is_dir()

    def iter_files(self, root: Path) -> Iterable[Path]:
        """Yield supported files below root, depth-first in name order."""
        try:
            entries = sorted(root.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.warning(f"Skip directory {root}: {e}")
            return

        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                # Symlinked directories can form cycles
                if entry.name in self._skip_directories or entry.is_symlink():
                    continue
                yield from self.iter_files(entry)
            elif entry.is_file() and self._loader.supports(entry):
                yield entry

    def discover(self, path: str | Path) -> list[Document]:
        """Read the file at path, or every supported file below it.

        Args:
            path: File or directory, ``~`` allowed.

        Returns:
            Documents read.

        Raises:
            FileNotFoundError: Path is neither a file nor a directory.
            UnsupportedFileType: Path is a single file that cannot be read.
        """
        expanded = expand_path(path)
        logger.debug(f"Discovery path: {path} -> {expanded}")

        if expanded.is_file():
            return [self._loader.load(expanded)]

        if not expanded.is_dir():
            raise FileNotFoundError(f"Path is neither a file nor a directory: {expanded}")

        documents = []
        for file_path in self.iter_files(expanded):
            try:
                documents.append(self._loader.load(file_path))
            except UnsupportedFileType as e:
                logger.warning(f"Skip file {file_path}: {e}")
                continue
            except OSError as e:
                logger.warning(f"Skip unreadable file {file_path}: {e}")
                continue

        logger.info(f"Discovered {len(documents)} documents under {expanded}")
        return documents
