"""
Abstract base class for vendor adapters.

The agent loop is written once against ProviderAdapter. Each vendor
(OpenAI Responses, Gemini) supplies a thin adapter that translates
requests, parses responses and stream events, finds tool calls and
records model output into the per-run conversation state.
"""

from __future__ import annotations

import abc as _abc
import dataclasses as _dataclasses
import logging as _logging
import secrets as _secrets
import typing as _typing

import agentloop.api.schema as schema
import agentloop.api.types as types
import agentloop.errors as errors
import agentloop.session as session

if _typing.TYPE_CHECKING:
    import agentloop.streaming.accumulator as accumulator
    import agentloop.streaming.reader as reader

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass
class RequestSpec:
    """A fully built vendor request."""

    url: str
    body: dict[str, _typing.Any]
    headers: dict[str, str] = _dataclasses.field(default_factory=dict)


def split_system_messages(
    items: _typing.Sequence[types.Message],
    system: str | None = None,
) -> tuple[str | None, list[types.Message]]:
    """
    Separate system and developer messages from the rest of the input.

    Args:
        items: Conversation items.
        system: Extra system text placed before any system messages.

    Returns:
        (joined system text or None, remaining items in order)
    """
    parts: list[str] = [system] if system else []
    rest: list[types.Message] = []
    for item in items:
        if item.get("role") in ("system", "developer"):
            text = content_text(item.get("content"))
            if text:
                parts.append(text)
        else:
            rest.append(item)
    return ("\n".join(parts) if parts else None), rest


def content_text(content: _typing.Any) -> str:
    """Flatten message content (a string or a list of blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for block in content:
            if isinstance(block, str):
                texts.append(block)
            elif isinstance(block, dict) and isinstance(block.get("text"), str):
                texts.append(block["text"])
        return "".join(texts)
    return ""


class ProviderAdapter(_abc.ABC):
    """
    Vendor adapter used by the agent loop.

    Subclasses declare how their streams behave through class attributes:

    - ``early_tool_call_return``: the vendor may emit a tool call in a
      non-terminal event and never repeat it, so reading stops as soon as a
      complete call is seen.
    - ``schema_dialect``: which JSON Schema subset tool parameters are
      sanitized into.
    """

    early_tool_call_return: _typing.ClassVar[bool] = False
    schema_dialect: _typing.ClassVar[schema.SchemaDialect] = schema.OPENAI_DIALECT

    def __init__(
        self,
        *,
        model: str,
        api_key: str | None,
        endpoint: str,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._endpoint = endpoint.rstrip("/")
        # Per-run nonce keeps synthesized call ids unique across runs but
        # stable when the same event is parsed twice.
        self._nonce = _secrets.token_hex(4)

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'openai', 'google')."""
        ...

    @property
    def model(self) -> str:
        return self._model

    def sanitize_tools(
        self, tools: _typing.Sequence[types.ToolDefinition]
    ) -> list[types.ToolDefinition]:
        """Return copies of the tools with parameters in this vendor's dialect."""
        return [
            types.ToolDefinition(
                name=tool.name,
                description=tool.description,
                parameters=schema.sanitize_schema(tool.parameters, self.schema_dialect),
            )
            for tool in tools
        ]

    # -------------------------------------------------------------------------
    # Request side
    # -------------------------------------------------------------------------

    @_abc.abstractmethod
    def start_conversation(
        self,
        store: session.ConversationStore,
        input_items: _typing.Sequence[types.InputItem] | str,
        *,
        system: str | None = None,
    ) -> session.ConversationState:
        """Record the run's input in the store and build per-run state."""
        ...

    @_abc.abstractmethod
    def build_request(
        self,
        state: session.ConversationState,
        tools: _typing.Sequence[types.ToolDefinition],
        options: types.GenerationOptions,
        *,
        stream: bool,
    ) -> RequestSpec:
        """Translate the current conversation into a vendor request."""
        ...

    # -------------------------------------------------------------------------
    # Response side
    # -------------------------------------------------------------------------

    @_abc.abstractmethod
    def parse_response(self, data: dict[str, _typing.Any], *, iteration: int) -> types.ModelTurn:
        """Parse a complete (non-streaming) JSON response."""
        ...

    @_abc.abstractmethod
    def extract_tool_calls(
        self, data: dict[str, _typing.Any], *, iteration: int
    ) -> list[types.ToolCall]:
        """Find tool calls in a response body or a single stream event."""
        ...

    @_abc.abstractmethod
    def parse_usage(self, data: dict[str, _typing.Any]) -> types.Usage | None:
        """Read token usage from a response body or stream event, if present."""
        ...

    @_abc.abstractmethod
    def extract_text(self, turn: types.ModelTurn) -> str | None:
        """Find the final answer text of a turn, or None if it has none."""
        ...

    def output_text(self, turn: types.ModelTurn) -> str:
        """Final answer text of a turn.

        Raises:
            NoOutputTextError: If the turn carries no text at all.
        """
        text = self.extract_text(turn)
        if text is None:
            raise errors.NoOutputTextError(
                f"No text output found in {self.name} response"
                + (f" (finish reason: {turn.finish_reason})" if turn.finish_reason else "")
            )
        return text

    # -------------------------------------------------------------------------
    # Stream side
    # -------------------------------------------------------------------------

    def check_stream_event(self, event: dict[str, _typing.Any]) -> None:
        """Raise if the event reports a vendor error. Default: never."""
        return None

    @_abc.abstractmethod
    def stream_text_delta(
        self,
        event: dict[str, _typing.Any],
        text: accumulator.TextAccumulator,
    ) -> str:
        """Feed the event's text (if any) into the accumulator; return the delta."""
        ...

    def stream_event_has_content(self, event: dict[str, _typing.Any]) -> bool:
        """Whether the event carries model content. Default: no."""
        return False

    def stream_finish_reason(self, event: dict[str, _typing.Any]) -> str | None:
        """Finish reason reported by the event, if any. Default: none."""
        return None

    def is_terminal_event(self, event: dict[str, _typing.Any]) -> bool:
        """Whether the event is a complete final snapshot. Default: no."""
        return False

    @_abc.abstractmethod
    def finish_stream(self, state: reader.StreamState, *, iteration: int) -> types.ModelTurn:
        """Build the turn from a finished (or early-returned) stream.

        Raises:
            IncompleteStreamError: If the stream produced nothing usable.
        """
        ...

    # -------------------------------------------------------------------------
    # Conversation recording
    # -------------------------------------------------------------------------

    @_abc.abstractmethod
    def record_model_output(
        self,
        state: session.ConversationState,
        turn: types.ModelTurn,
        store: session.ConversationStore,
    ) -> None:
        """Append the model's raw output to the run state, unmodified."""
        ...

    @_abc.abstractmethod
    def record_tool_results(
        self,
        state: session.ConversationState,
        turn: types.ModelTurn,
        results: _typing.Sequence[types.ToolResult],
        store: session.ConversationStore,
    ) -> None:
        """Append tool outputs (in call order) to the run state."""
        ...

    def record_final_output(self, text: str, store: session.ConversationStore) -> None:
        """Record the run's final answer in the thread history."""
        store.append_to_history([{"role": "assistant", "content": text}])
