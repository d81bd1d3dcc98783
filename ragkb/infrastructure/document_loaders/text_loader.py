from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from ragkb.core.errors import UnsupportedFileType
from ragkb.core.models.document import Document

FILE_TYPES = {
    ".txt": "text",
    ".md": "markdown",
    ".js": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".cpp": "cpp",
    ".c": "c",
    ".h": "header",
    ".json": "json",
    ".xml": "xml",
    ".html": "html",
    ".css": "css",
}


class TextLoader:

    def __init__(self, extensions: Iterable[str] | None = None):
        self._extensions = {e.lower() for e in (extensions or FILE_TYPES)}

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self._extensions

    def load(self, file_path: Path) -> Document:
        ext = file_path.suffix.lower()
        if ext not in self._extensions:
            raise UnsupportedFileType(str(file_path), ext)

        try:
            raw = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise UnsupportedFileType(str(file_path), ext) from e

        stat = file_path.stat()
        return Document(
            source_path=str(file_path),
            filename=file_path.name,
            extension=ext,
            size_bytes=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
            file_type=FILE_TYPES.get(ext, "unknown"),
            raw_text=self.clean_text(raw),
        )

    @staticmethod
    def clean_text(text: str) -> str:
        return text.replace("\r\n", "\n").replace("\r", "\n").strip()
