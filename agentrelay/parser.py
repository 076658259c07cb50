"""
Incremental JSONL decoding shared by all agent protocols.

Handles:
- Line framing across arbitrarily split chunks
- Non-JSON noise (surfaced as RawEvent, never dropped)
- Dispatch of decoded objects to a protocol-specific normalizer
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from .events import Event, RawEvent

__all__ = [
    "StreamParser",
    "raw_json",
]


def raw_json(obj: Any) -> RawEvent:
    """RawEvent carrying the re-serialized JSON of an unrecognized object."""
    return RawEvent(text=json.dumps(obj, ensure_ascii=False))


class StreamParser(ABC):
    """
    Base class for streaming JSONL parsers.

    Subclass and implement:
    - normalize(): Map one decoded JSON object to zero or one Event

    The parser does no I/O. Callers decode bytes to text before feeding;
    only complete lines are ever decoded as JSON. Lines end at LF and a trailing
    CR is dropped, so CRLF output yields the same events (and the same
    RawEvent text) as LF output.
    """

    protocol: str = "jsonl"

    def __init__(self):
        self._buffer = ""

    @property
    def buffered(self) -> str:
        """Text of the incomplete trailing line, if any."""
        return self._buffer

    def feed(self, chunk: str) -> list[Event]:
        """
        Feed a raw chunk of stdout text.

        Args:
            chunk: Text fragment of any length (may be empty)

        Returns:
            Events for every line completed by this chunk, in line order
        """
        if not chunk:
            return []

        self._buffer += chunk
        lines = self._buffer.split("\n")
        # Last segment is incomplete until its newline arrives
        self._buffer = lines.pop()

        events: list[Event] = []
        for line in lines:
            event = self._parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[Event]:
        """
        Process the remaining buffer as a final line (call after stream ends).

        Returns:
            Zero or one event
        """
        rest = self._buffer
        self._buffer = ""
        event = self._parse_line(rest)
        return [event] if event is not None else []

    def _parse_line(self, line: str) -> Event | None:
        line = line.rstrip("\r")
        if not line.strip():
            return None

        try:
            obj = json.loads(line)
        except (ValueError, RecursionError):
            # JSONDecodeError, oversized integers, pathological nesting
            return RawEvent(text=line)

        if not isinstance(obj, dict):
            return RawEvent(text=line)

        return self.normalize(obj)

    @abstractmethod
    def normalize(self, obj: dict[str, Any]) -> Event | None:
        """
        Map one decoded JSON object to an event.

        Args:
            obj: Decoded JSON object

        Returns:
            Event, or None for documented zero-event kinds
        """
        pass
