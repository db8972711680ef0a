"""
Type definitions for model interactions.

These types give the agent loop a vendor-neutral view of requests,
responses, stream events, tool calls and token usage. Vendor adapters
translate to and from them.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import json as _json
import typing as _typing

Message = dict[str, _typing.Any]
"""A conversation item: ``{"role": ..., "content": ...}`` or a raw vendor item."""

InputItem = _typing.Union[str, Message]
"""Input accepted by a run: plain strings are user messages."""


def _as_int(value: _typing.Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)) and value > 0:
        return int(value)
    return 0


@_dataclasses.dataclass
class Usage:
    """Token usage, for one response or summed over a run."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    cached_input_tokens: int = 0
    """Tokens served from the vendor's prompt cache (subset of input_tokens)."""

    def add(self, other: Usage | None) -> None:
        """Add another usage record into this one."""
        if other is None:
            return
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.total_tokens += other.total_tokens
        self.cached_input_tokens += other.cached_input_tokens

    @classmethod
    def from_dict(cls, raw: _typing.Any) -> Usage:
        """Parse an OpenAI-style usage object.

        Accepts both Responses API names (``input_tokens``/``output_tokens``)
        and Chat Completions names (``prompt_tokens``/``completion_tokens``).
        A missing total falls back to input + output.
        """
        if not isinstance(raw, dict):
            return cls()
        input_tokens = _as_int(raw.get("input_tokens", raw.get("prompt_tokens")))
        output_tokens = _as_int(raw.get("output_tokens", raw.get("completion_tokens")))
        total = _as_int(raw.get("total_tokens")) or input_tokens + output_tokens

        details = raw.get("input_tokens_details") or raw.get("prompt_tokens_details")
        cached = _as_int(details.get("cached_tokens")) if isinstance(details, dict) else 0

        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total,
            cached_input_tokens=cached,
        )

    def to_dict(self) -> dict[str, int]:
        return _dataclasses.asdict(self)


@_dataclasses.dataclass
class ToolDefinition:
    """A tool the model may call."""

    name: str
    description: str = ""
    parameters: dict[str, _typing.Any] = _dataclasses.field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    """JSON Schema for the tool's arguments (unsanitized)."""

    @classmethod
    def from_dict(cls, data: dict[str, _typing.Any]) -> ToolDefinition:
        """Build from an OpenAI-style function tool.

        Accepts both the flat Responses API shape
        ``{"type": "function", "name", "description", "parameters"}`` and
        the nested Chat Completions shape ``{"function": {...}}``.
        """
        function = data.get("function", data)
        if not isinstance(function, dict) or not function.get("name"):
            raise ValueError(f"Tool definition has no name: {data!r}")
        parameters = function.get("parameters")
        return cls(
            name=function["name"],
            description=function.get("description") or "",
            parameters=parameters if isinstance(parameters, dict) else {"type": "object", "properties": {}},
        )


@_dataclasses.dataclass
class ToolCall:
    """A tool call requested by the model, normalized across vendors."""

    name: str
    call_id: str
    """Correlation key matching the call's result back to it."""

    arguments: _typing.Any = None
    """Arguments as sent by the vendor: a JSON string, an object, or None."""

    vendor_id: str | None = None
    """Id the vendor supplied itself, if any (echoed back with the result)."""

    def parsed_arguments(self) -> dict[str, _typing.Any]:
        """Arguments as a dict; unparseable or non-object arguments give {}."""
        value = self.arguments
        if isinstance(value, str):
            try:
                value = _json.loads(value) if value.strip() else {}
            except ValueError:
                return {}
        return value if isinstance(value, dict) else {}

    def has_complete_arguments(self) -> bool:
        """Whether the arguments already form a well-formed object."""
        if isinstance(self.arguments, dict):
            return True
        if isinstance(self.arguments, str):
            try:
                return isinstance(_json.loads(self.arguments), dict)
            except ValueError:
                return False
        return False


@_dataclasses.dataclass
class ToolResult:
    """Result of executing one tool call. Output is always a string."""

    call_id: str
    name: str
    output: str
    is_error: bool = False


@_dataclasses.dataclass
class StreamEvent:
    """
    Vendor-neutral stream event.

    A successful stream yields at most one ``start``, any number of
    ``text_delta`` and ``tool_call_detected`` events, and exactly one
    ``stop``.
    """

    type: _typing.Literal["start", "text_delta", "tool_call_detected", "stop"]

    text: str | None = None
    """Delta text (text_delta)."""

    tool_call: ToolCall | None = None
    """Detected call (tool_call_detected)."""

    final_text: str | None = None
    """Accumulated text of the whole stream (stop)."""

    finish_reason: str | None = None
    """Vendor finish reason, when one was observed (stop)."""


@_dataclasses.dataclass
class ModelTurn:
    """One parsed model response, from a JSON body or a finished stream."""

    raw: dict[str, _typing.Any]
    """The vendor response (or the stream snapshot standing in for it)."""

    tool_calls: list[ToolCall] = _dataclasses.field(default_factory=list)
    usage: Usage = _dataclasses.field(default_factory=Usage)
    finish_reason: str | None = None

    response_id: str | None = None
    """Server-side id usable as a continuation token."""

    accumulated_text: str | None = None
    """Text reconstructed from stream deltas (streaming responses only)."""

    streamed: bool = False


@_dataclasses.dataclass
class GenerationOptions:
    """Vendor-neutral generation options for a run."""

    temperature: float | None = None
    max_output_tokens: int | None = None

    truncation: _typing.Literal["auto", "disabled"] | None = None
    """OpenAI context truncation strategy; ignored by other vendors."""

    structured_output: dict[str, _typing.Any] | None = None
    """JSON Schema the final answer must satisfy.

    Either a bare schema, or ``{"name": ..., "schema": ..., "strict": ...}``.
    """

    def output_schema(self) -> tuple[str, dict[str, _typing.Any], bool] | None:
        """Return (name, schema, strict) for structured output, if requested."""
        declared = self.structured_output
        if not declared:
            return None
        if isinstance(declared.get("schema"), dict):
            return declared.get("name") or "output", declared["schema"], bool(declared.get("strict", True))
        return "output", declared, True
