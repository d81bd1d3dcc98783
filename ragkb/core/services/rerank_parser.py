"""Parsing of streamed scoring-model output into a JSON object.

The parser is a small state machine::

    ACCUMULATING --finish()--> PARSING --+--> PARSED
                                         +--> FAILED

While accumulating, every stream line is decoded on its own and its
``response`` field appended to the buffer; lines that are not JSON are
framing noise and are ignored. ``finish`` decodes the whole buffer, then
the first ``{...}`` span inside it, and fails with ``RerankParseError``
when neither yields an object.
"""

import json
import logging
import re
from enum import Enum
from typing import Any, Optional

from ..errors import RerankParseError

logger = logging.getLogger(__name__)

_OBJECT_SPAN = re.compile(r"\{.*\}", re.DOTALL)


class ParseState(Enum):
    ACCUMULATING = "accumulating"
    PARSING = "parsing"
    PARSED = "parsed"
    FAILED = "failed"


class RerankResponseParser:
    """Accumulates a streamed response and decodes it once the stream ends."""

    def __init__(self) -> None:
        self.state = ParseState.ACCUMULATING
        self._fragments: list[str] = []
        self.ignored_lines = 0
        self.result: Optional[dict[str, Any]] = None

    @property
    def text(self) -> str:
        return "".join(self._fragments)

    def feed_line(self, line: str | bytes) -> None:
        """Add one stream line."""
        if self.state is not ParseState.ACCUMULATING:
            raise RuntimeError(f"Cannot feed parser in state {self.state.value}")

        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        line = line.strip()
        if not line:
            return

        try:
            frame = json.loads(line)
        except ValueError:
            self.ignored_lines += 1
            return

        if isinstance(frame, dict) and isinstance(frame.get("response"), str):
            self._fragments.append(frame["response"])

    def finish(self) -> dict[str, Any]:
        """Decode the accumulated text.

        Returns:
            The decoded object.

        Raises:
            RerankParseError: No JSON object could be recovered.
        """
        if self.state is not ParseState.ACCUMULATING:
            raise RuntimeError(f"Parser already finished ({self.state.value})")

        self.state = ParseState.PARSING
        try:
            self.result = self.parse_text(self.text)
        except RerankParseError:
            self.state = ParseState.FAILED
            raise
        self.state = ParseState.PARSED
        return self.result

    @staticmethod
    def parse_text(text: str) -> dict[str, Any]:
        """Decode text as a JSON object, falling back to its first ``{...}`` span."""
        try:
            data = json.loads(text)
        except ValueError:
            match = _OBJECT_SPAN.search(text)
            if not match:
                raise RerankParseError("No JSON object in scoring response")
            try:
                data = json.loads(match.group(0))
            except ValueError as e:
                raise RerankParseError(f"Malformed JSON in scoring response: {e}") from e

        if not isinstance(data, dict):
            raise RerankParseError(
                f"Scoring response is {type(data).__name__}, expected object"
            )
        return data
