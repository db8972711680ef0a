"""
Reading a model's event stream into a turn.

StreamReader drives one stream: it decodes SSE payloads, reconciles
text, watches every event for tool calls and decides when to stop
reading. All mutable reading state lives in a StreamState so the
adapters' finish_stream() and the tests can inspect it directly.

Stopping rules:

- An adapter's terminal event (e.g. ``response.completed``) ends the read.
- For adapters with ``early_tool_call_return``, an event whose tool calls
  all have complete arguments ends the read at once. If the arguments
  are incomplete, at most ``max_extra_events`` further events without a
  call are read, or until a finish reason is seen.
- Otherwise the read ends with the stream.
"""

from __future__ import annotations

import contextlib as _contextlib
import dataclasses as _dataclasses
import logging as _logging
import typing as _typing

import agentloop.api.types as types
import agentloop.constants as _constants
import agentloop.streaming.accumulator as accumulator
import agentloop.streaming.sse as sse

if _typing.TYPE_CHECKING:
    import agentloop.api.base as base

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass
class StreamState:
    """Everything observed so far while reading one stream."""

    text: accumulator.TextAccumulator = _dataclasses.field(
        default_factory=accumulator.TextAccumulator
    )

    last_event: dict[str, _typing.Any] | None = None
    last_with_content: dict[str, _typing.Any] | None = None
    last_with_tool_call: dict[str, _typing.Any] | None = None

    tool_calls_seen: list[types.ToolCall] = _dataclasses.field(default_factory=list)
    """Calls detected so far, deduplicated by call id, in detection order."""

    finish_reason: str | None = None
    usage: types.Usage | None = None
    """Latest usage reported by any event."""

    terminal: dict[str, _typing.Any] | None = None
    """The terminal snapshot event, when the vendor sent one."""

    early_return: dict[str, _typing.Any] | None = None
    """The event the read stopped at because of a tool call."""

    events_after_tool_call: int = 0
    event_count: int = 0

    @property
    def accumulated_text(self) -> str:
        return self.text.text

    def remember_tool_calls(self, calls: _typing.Sequence[types.ToolCall]) -> list[types.ToolCall]:
        """Record calls and return the ones not seen before."""
        known = {call.call_id for call in self.tool_calls_seen}
        new = [call for call in calls if call.call_id not in known]
        self.tool_calls_seen.extend(new)
        return new


class StreamReader:
    """
    Reads one event stream with a given adapter.

    Usage:
        reader = StreamReader(adapter, iteration=0)
        async for event in reader.events(response.stream):
            ...
        turn = reader.turn
    """

    def __init__(
        self,
        adapter: base.ProviderAdapter,
        *,
        iteration: int,
        max_extra_events: int = _constants.MAX_EXTRA_EVENTS_AFTER_TOOL_CALL,
    ) -> None:
        self._adapter = adapter
        self._iteration = iteration
        self._max_extra_events = max_extra_events
        self.state = StreamState()
        self.turn: types.ModelTurn | None = None

    async def events(
        self, chunks: _typing.AsyncIterable[bytes | str]
    ) -> _typing.AsyncIterator[types.StreamEvent]:
        """
        Yield vendor-neutral events for the stream, ending with ``stop``.

        After iteration completes, ``self.turn`` holds the parsed turn.

        Raises:
            IncompleteStreamError: The stream ended with nothing usable.
            ProviderResponseError: The vendor reported an error mid-stream.
        """
        state = self.state
        async with _contextlib.aclosing(sse.aiter_sse_json(chunks)) as payloads:
            async for event in payloads:
                state.event_count += 1
                state.last_event = event
                self._adapter.check_stream_event(event)

                if state.event_count == 1:
                    yield types.StreamEvent(type="start")

                usage = self._adapter.parse_usage(event)
                if usage is not None:
                    state.usage = usage
                finish_reason = self._adapter.stream_finish_reason(event)
                if finish_reason:
                    state.finish_reason = finish_reason
                if self._adapter.stream_event_has_content(event):
                    state.last_with_content = event

                delta = self._adapter.stream_text_delta(event, state.text)
                if delta:
                    yield types.StreamEvent(type="text_delta", text=delta)

                calls = self._adapter.extract_tool_calls(event, iteration=self._iteration)
                if calls:
                    state.last_with_tool_call = event
                for call in state.remember_tool_calls(calls):
                    yield types.StreamEvent(type="tool_call_detected", tool_call=call)

                if self._adapter.is_terminal_event(event):
                    state.terminal = event
                    break
                if self._adapter.early_tool_call_return and self._should_stop(event, calls):
                    break

        self.turn = self._adapter.finish_stream(state, iteration=self._iteration)
        _logger.debug(
            "Stream finished after %d events (tool calls: %d, early return: %s)",
            state.event_count,
            len(self.turn.tool_calls),
            state.early_return is not None,
        )
        yield types.StreamEvent(
            type="stop",
            final_text=state.accumulated_text,
            finish_reason=self.turn.finish_reason,
        )

    def _should_stop(
        self, event: dict[str, _typing.Any], calls: _typing.Sequence[types.ToolCall]
    ) -> bool:
        state = self.state
        if calls:
            state.events_after_tool_call = 0
            if all(call.has_complete_arguments() for call in calls) or state.finish_reason:
                state.early_return = event
                return True
            return False

        if state.last_with_tool_call is None:
            return False
        state.events_after_tool_call += 1
        if state.finish_reason or state.events_after_tool_call >= self._max_extra_events:
            _logger.debug(
                "Proceeding with incomplete tool call after %d extra events",
                state.events_after_tool_call,
            )
            state.early_return = state.last_with_tool_call
            return True
        return False
