from __future__ import annotations

import json
from typing import AsyncIterator, Iterable, Iterator, List, Optional

from unbind.models import AnalysisEvent

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_format(event: str, data: str) -> str:
    lines = data.splitlines() or [""]
    return f"event: {event}\n" + "\n".join(f"data: {line}" for line in lines) + "\n\n"


def encode_event(event: AnalysisEvent) -> str:
    data = "" if event.data is None else json.dumps(event.data)
    return sse_format(event.event, data)


async def encode_stream(events: AsyncIterator[AnalysisEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield encode_event(event)


def _decode_block(name: Optional[str], data_lines: List[str]) -> Optional[AnalysisEvent]:
    if name is None and not data_lines:
        return None
    raw = "\n".join(data_lines)
    payload = json.loads(raw) if raw.strip() else None
    return AnalysisEvent(event=name or "message", data=payload)


class SSEParser:
    """Incremental parser for ``text/event-stream`` lines."""

    def __init__(self) -> None:
        self._name: Optional[str] = None
        self._data: List[str] = []

    def feed_line(self, line: str) -> Optional[AnalysisEvent]:
        line = line.rstrip("\r")
        if not line:
            event = _decode_block(self._name, self._data)
            self._name, self._data = None, []
            return event
        if line.startswith(":"):
            return None
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            self._name = value
        elif field == "data":
            self._data.append(value)
        return None

    def flush(self) -> Optional[AnalysisEvent]:
        return self.feed_line("")


def parse_events(lines: Iterable[str]) -> Iterator[AnalysisEvent]:
    parser = SSEParser()
    for line in lines:
        event = parser.feed_line(line)
        if event is not None:
            yield event
    tail = parser.flush()
    if tail is not None:
        yield tail


__all__ = ["SSEParser", "SSE_HEADERS", "encode_event", "encode_stream", "parse_events", "sse_format"]
