"""Event stream decoding: SSE splitting, text reconciliation, stream reading."""

from agentloop.streaming.accumulator import TextAccumulator
from agentloop.streaming.reader import StreamReader, StreamState
from agentloop.streaming.sse import SseEventDecoder, aiter_sse_json, parse_event_json

__all__ = [
    "SseEventDecoder",
    "StreamReader",
    "StreamState",
    "TextAccumulator",
    "aiter_sse_json",
    "parse_event_json",
]
