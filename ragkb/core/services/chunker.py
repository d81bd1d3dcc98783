"""Boundary-aware text chunking."""

import logging

logger = logging.getLogger(__name__)

BOUNDARY_CHARS = (".", "\n")


class TextChunker:
    """Split text into overlapping windows, preferring sentence/line ends."""

    def __init__(self, chunk_size: int = 1000, overlap: int = 200, min_fill: float = 0.5):
        """Initialize chunker.

        Args:
            chunk_size: Window size in characters.
            overlap: Characters repeated between consecutive windows when a
                window is cut without a boundary. Clamped below chunk_size.
            min_fill: Fraction of the window a boundary must lie past to be used.
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._chunk_size = chunk_size
        self._overlap = max(0, min(overlap, chunk_size - 1))
        self._min_fill = min_fill

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def split(self, text: str) -> list[str]:
        """Split text into trimmed, non-empty chunks.

        Args:
            text: Text to split.

        Returns:
            Chunks in document order.
        """
        chunks: list[str] = []
        start = 0
        length = len(text)

        while start < length:
            end = min(start + self._chunk_size, length)
            piece = text[start:end]

            if end < length:
                boundary = max(piece.rfind(c) for c in BOUNDARY_CHARS)
                if boundary != -1 and boundary >= self._chunk_size * self._min_fill:
                    piece = text[start : start + boundary + 1]
                    start = start + boundary + 1
                else:
                    start = end - self._overlap
            else:
                start = end

            piece = piece.strip()
            if piece:
                chunks.append(piece)

        return chunks
