"""
Server-Sent Events decoding.

SseEventDecoder splits an incrementally received body into events at
blank-line boundaries (LF or CRLF) and extracts their ``data:`` payloads
as JSON. The sequence of payloads does not depend on how the body was
chunked.
"""

import codecs as _codecs
import json as _json
import logging as _logging
import re as _re
import typing as _typing

_logger = _logging.getLogger(__name__)

_BOUNDARIES = ("\n\n", "\r\n\r\n")
_LINE_SPLIT = _re.compile(r"\r?\n")
_DATA_PREFIX = _re.compile(r"^data:\s?")

DONE_SENTINEL = "[DONE]"
"""Payload some vendors send to mark the end of a stream."""


def parse_event_data(raw_event: str) -> str:
    """Join the ``data:`` lines of one raw event with newlines."""
    data_lines = [
        _DATA_PREFIX.sub("", line)
        for line in _LINE_SPLIT.split(raw_event)
        if line.startswith("data:")
    ]
    return "\n".join(data_lines).strip()


def parse_event_json(raw_event: str) -> dict[str, _typing.Any] | None:
    """
    Parse one raw event's data payload as a JSON object.

    Returns None for empty payloads, the ``[DONE]`` sentinel, payloads
    that are not valid JSON, and JSON values that are not objects.
    """
    data = parse_event_data(raw_event)
    if not data or data == DONE_SENTINEL:
        return None
    try:
        parsed = _json.loads(data)
    except ValueError:
        _logger.debug("Skipping SSE event with non-JSON payload: %.200s", data)
        return None
    if not isinstance(parsed, dict):
        _logger.debug("Skipping SSE event with non-object payload: %.200s", data)
        return None
    return parsed


class SseEventDecoder:
    """
    Incremental splitter for an SSE body.

    Usage:
        decoder = SseEventDecoder()
        for chunk in chunks:
            for raw_event in decoder.feed(chunk):
                ...
        for raw_event in decoder.flush():
            ...
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = _codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: bytes | str) -> list[str]:
        """Add a chunk and return every event completed by it."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        events: list[str] = []
        while True:
            found = self._next_boundary()
            if found is None:
                return events
            index, length = found
            events.append(self._buffer[:index])
            self._buffer = self._buffer[index + length :]

    def flush(self) -> list[str]:
        """Return the trailing event at end of stream, if it is not blank."""
        self._buffer += self._decoder.decode(b"", final=True)
        remaining, self._buffer = self._buffer, ""
        events = self.feed(remaining) if remaining else []
        tail, self._buffer = self._buffer, ""
        if tail.strip():
            events.append(tail)
        return events

    def _next_boundary(self) -> tuple[int, int] | None:
        best: tuple[int, int] | None = None
        for boundary in _BOUNDARIES:
            index = self._buffer.find(boundary)
            if index != -1 and (best is None or index < best[0]):
                best = (index, len(boundary))
        return best


async def aiter_sse_json(
    chunks: _typing.AsyncIterable[bytes | str],
) -> _typing.AsyncIterator[dict[str, _typing.Any]]:
    """
    Decode an async byte stream into parsed SSE JSON payloads.

    Unparseable events are skipped. Stopping iteration early leaves the
    source to be closed by its owner.
    """
    decoder = SseEventDecoder()
    async for chunk in chunks:
        for raw_event in decoder.feed(chunk):
            payload = parse_event_json(raw_event)
            if payload is not None:
                yield payload
    for raw_event in decoder.flush():
        payload = parse_event_json(raw_event)
        if payload is not None:
            yield payload
