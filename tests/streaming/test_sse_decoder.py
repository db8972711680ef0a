"""Tests for streaming/sse.py."""

import pytest as _pytest

import agentloop.streaming.sse as sse
import tests.conftest as conftest


def _decode_all(data: bytes, size: int | None) -> list[str]:
    decoder = sse.SseEventDecoder()
    events: list[str] = []
    if size is None:
        events.extend(decoder.feed(data))
    else:
        for i in range(0, len(data), size):
            events.extend(decoder.feed(data[i : i + size]))
    events.extend(decoder.flush())
    return events


async def _collect(data: bytes, size: int | None = None) -> list[dict]:
    return [payload async for payload in sse.aiter_sse_json(conftest.aiter_chunks(data, size))]


class TestSseEventDecoder:
    """Tests for event splitting."""

    def test_splits_on_blank_line(self) -> None:
        events = _decode_all(b'data: {"a": 1}\n\ndata: {"b": 2}\n\n', None)
        assert events == ['data: {"a": 1}', 'data: {"b": 2}']

    def test_splits_on_crlf_blank_line(self) -> None:
        events = _decode_all(b'data: {"a": 1}\r\n\r\ndata: {"b": 2}\r\n\r\n', None)
        assert [sse.parse_event_json(e) for e in events] == [{"a": 1}, {"b": 2}]

    @_pytest.mark.parametrize("size", [1, 2, 3, 7])
    def test_chunking_does_not_change_events(self, size: int) -> None:
        """One-byte chunks and a single chunk decode to the same events."""
        data = conftest.sse_body([{"text": "héllo"}, {"text": "wörld ✓"}])
        assert _decode_all(data, size) == _decode_all(data, None)

    def test_multibyte_character_split_across_chunks(self) -> None:
        data = conftest.sse_event({"text": "✓"})
        events = _decode_all(data, 1)
        assert sse.parse_event_json(events[0]) == {"text": "✓"}

    def test_flush_returns_trailing_event(self) -> None:
        """An event without a final blank line is still delivered."""
        decoder = sse.SseEventDecoder()
        assert decoder.feed(b'data: {"a": 1}') == []
        assert decoder.flush() == ['data: {"a": 1}']

    def test_flush_ignores_blank_tail(self) -> None:
        decoder = sse.SseEventDecoder()
        decoder.feed(b'data: {"a": 1}\n\n\n')
        assert decoder.flush() == []


class TestParseEventJson:
    """Tests for payload extraction."""

    def test_joins_multiple_data_lines(self) -> None:
        assert sse.parse_event_json('data: {"a":\ndata: 1}') == {"a": 1}

    def test_ignores_non_data_lines(self) -> None:
        raw = 'event: response.output_text.delta\nid: 7\ndata: {"a": 1}'
        assert sse.parse_event_json(raw) == {"a": 1}

    def test_done_sentinel_is_skipped(self) -> None:
        assert sse.parse_event_json("data: [DONE]") is None

    def test_invalid_json_is_skipped(self) -> None:
        assert sse.parse_event_json("data: {not json") is None

    def test_non_object_is_skipped(self) -> None:
        assert sse.parse_event_json("data: [1, 2]") is None

    def test_empty_payload_is_skipped(self) -> None:
        assert sse.parse_event_json(": keep-alive") is None


class TestAiterSseJson:
    """Tests for the async decoding pipeline."""

    @_pytest.mark.asyncio
    async def test_skips_unparseable_events(self) -> None:
        data = conftest.sse_body([{"a": 1}, "{broken", "[DONE]", {"b": 2}])
        assert await _collect(data) == [{"a": 1}, {"b": 2}]

    @_pytest.mark.asyncio
    async def test_byte_by_byte_matches_single_chunk(self) -> None:
        data = conftest.sse_body([{"n": i, "text": "x" * i} for i in range(5)], crlf=True)
        assert await _collect(data, 1) == await _collect(data)
