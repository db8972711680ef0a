"""
OpenAI Responses API adapter.

The Responses API keeps conversation state on the server: each request
after the first names the previous response by ``previous_response_id``
and sends only new input (tool outputs). Streams always end with a
``response.completed`` event carrying the complete response, so tool
calls are taken from that snapshot.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import agentloop.api.base as base
import agentloop.api.schema as schema
import agentloop.api.types as types
import agentloop.constants as _constants
import agentloop.errors as errors
import agentloop.session as session

if _typing.TYPE_CHECKING:
    import agentloop.streaming.accumulator as accumulator
    import agentloop.streaming.reader as reader

_logger = _logging.getLogger(__name__)


class OpenAIResponsesAdapter(base.ProviderAdapter):
    """Adapter for ``POST /responses``."""

    early_tool_call_return = False
    schema_dialect = schema.OPENAI_DIALECT

    def __init__(
        self,
        *,
        model: str = _constants.DEFAULT_OPENAI_MODEL,
        api_key: str | None = None,
        endpoint: str = _constants.DEFAULT_OPENAI_ENDPOINT,
    ) -> None:
        super().__init__(model=model, api_key=api_key, endpoint=endpoint)

    @property
    def name(self) -> str:
        return "openai"

    # -------------------------------------------------------------------------
    # Request side
    # -------------------------------------------------------------------------

    def start_conversation(
        self,
        store: session.ConversationStore,
        input_items: _typing.Sequence[types.InputItem] | str,
        *,
        system: str | None = None,
    ) -> session.ContinuationState:
        context = store.build_request_context(input_items)
        system_text, rest = base.split_system_messages(context.input, system)
        return session.ContinuationState(
            token=context.continuation_token,
            pending=rest,
            system=system_text,
        )

    def build_request(
        self,
        state: session.ConversationState,
        tools: _typing.Sequence[types.ToolDefinition],
        options: types.GenerationOptions,
        *,
        stream: bool,
    ) -> base.RequestSpec:
        if not isinstance(state, session.ContinuationState):
            raise TypeError("OpenAI Responses adapter requires ContinuationState")

        body: dict[str, _typing.Any] = {
            "model": self._model,
            "input": list(state.pending),
        }
        if state.token:
            body["previous_response_id"] = state.token
        if state.system:
            body["instructions"] = state.system

        if tools:
            body["tools"] = [
                {
                    "type": "function",
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                }
                for tool in self.sanitize_tools(tools)
            ]
            body["tool_choice"] = "auto"
            body["parallel_tool_calls"] = True

        if options.temperature is not None:
            body["temperature"] = options.temperature
        if options.max_output_tokens is not None:
            body["max_output_tokens"] = options.max_output_tokens
        if options.truncation is not None:
            body["truncation"] = options.truncation

        output_schema = options.output_schema()
        if output_schema is not None:
            name, json_schema, strict = output_schema
            body["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": name,
                    "schema": json_schema,
                    "strict": strict,
                }
            }

        if stream:
            body["stream"] = True

        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        return base.RequestSpec(url=f"{self._endpoint}/responses", body=body, headers=headers)

    # -------------------------------------------------------------------------
    # Response side
    # -------------------------------------------------------------------------

    def parse_response(self, data: dict[str, _typing.Any], *, iteration: int) -> types.ModelTurn:
        status = data.get("status")
        if status == "failed":
            raise errors.ProviderResponseError(
                f"Response failed: {_error_message(data.get('error'))}", payload=data
            )
        if status == "incomplete":
            raise errors.IncompleteResponseError(_incomplete_reason(data), payload=data)

        return types.ModelTurn(
            raw=data,
            tool_calls=self.extract_tool_calls(data, iteration=iteration),
            usage=self.parse_usage(data) or types.Usage(),
            finish_reason=status,
            response_id=data.get("id"),
        )

    def extract_tool_calls(
        self, data: dict[str, _typing.Any], *, iteration: int
    ) -> list[types.ToolCall]:
        event_type = data.get("type")
        if event_type == "response.output_item.done":
            items = [data.get("item")]
        elif event_type == "response.completed" and isinstance(data.get("response"), dict):
            items = data["response"].get("output") or []
        elif isinstance(data.get("output"), list):
            items = data["output"]
        else:
            return []

        calls = []
        for item in items:
            if not isinstance(item, dict) or item.get("type") != "function_call":
                continue
            call_id = item.get("call_id") or item.get("id")
            if not call_id:
                raise errors.ProviderResponseError(
                    f"Function call '{item.get('name')}' has no call_id", payload=item
                )
            calls.append(
                types.ToolCall(
                    name=item.get("name", ""),
                    call_id=call_id,
                    arguments=item.get("arguments"),
                    vendor_id=item.get("id"),
                )
            )
        return calls

    def parse_usage(self, data: dict[str, _typing.Any]) -> types.Usage | None:
        usage = data.get("usage")
        if usage is None and isinstance(data.get("response"), dict):
            usage = data["response"].get("usage")
        if not isinstance(usage, dict):
            return None
        return types.Usage.from_dict(usage)

    def extract_text(self, turn: types.ModelTurn) -> str | None:
        raw = turn.raw
        if isinstance(raw.get("output_text"), str) and raw["output_text"]:
            return raw["output_text"]

        messages = []
        for item in raw.get("output") or []:
            if not isinstance(item, dict) or item.get("type") != "message":
                continue
            texts = [
                part.get("text", "")
                for part in item.get("content") or []
                if isinstance(part, dict) and part.get("type") == "output_text"
            ]
            if texts:
                messages.append("".join(texts))
        if messages:
            return "\n".join(messages)

        if turn.accumulated_text:
            return turn.accumulated_text
        return None

    # -------------------------------------------------------------------------
    # Stream side
    # -------------------------------------------------------------------------

    def check_stream_event(self, event: dict[str, _typing.Any]) -> None:
        event_type = event.get("type")
        if event_type == "response.incomplete":
            raise errors.IncompleteResponseError(
                _incomplete_reason(event.get("response") or {}), payload=event
            )
        if event_type == "response.failed":
            response = event.get("response") or {}
            raise errors.ProviderResponseError(
                f"Response failed: {_error_message(response.get('error'))}", payload=event
            )
        if event_type == "error":
            raise errors.ProviderResponseError(
                f"Stream error: {_error_message(event.get('error') or event)}", payload=event
            )

    def stream_text_delta(
        self,
        event: dict[str, _typing.Any],
        text: accumulator.TextAccumulator,
    ) -> str:
        # Responses API deltas are pure deltas; a repeated delta is real text.
        if event.get("type") == "response.output_text.delta":
            delta = event.get("delta")
            if isinstance(delta, str) and delta:
                return text.append(delta)
        return ""

    def stream_event_has_content(self, event: dict[str, _typing.Any]) -> bool:
        return event.get("type") in ("response.output_item.done", "response.completed")

    def stream_finish_reason(self, event: dict[str, _typing.Any]) -> str | None:
        if event.get("type") == "response.completed":
            return (event.get("response") or {}).get("status") or "completed"
        return None

    def is_terminal_event(self, event: dict[str, _typing.Any]) -> bool:
        return event.get("type") == "response.completed"

    def finish_stream(self, state: reader.StreamState, *, iteration: int) -> types.ModelTurn:
        if state.terminal is None:
            raise errors.IncompleteStreamError(
                f"Stream ended after {state.event_count} events without response.completed"
            )
        response = state.terminal.get("response")
        if not isinstance(response, dict):
            raise errors.ProviderResponseError(
                "response.completed event carries no response", payload=state.terminal
            )
        turn = self.parse_response(response, iteration=iteration)
        turn.accumulated_text = state.accumulated_text
        turn.streamed = True
        return turn

    # -------------------------------------------------------------------------
    # Conversation recording
    # -------------------------------------------------------------------------

    def record_model_output(
        self,
        state: session.ConversationState,
        turn: types.ModelTurn,
        store: session.ConversationStore,
    ) -> None:
        if not isinstance(state, session.ContinuationState):
            raise TypeError("OpenAI Responses adapter requires ContinuationState")

        # The server now holds everything sent so far plus the output.
        state.pending = []
        if turn.response_id:
            state.token = turn.response_id
            store.update_continuation_token(turn.response_id)

        calls = [
            item
            for item in turn.raw.get("output") or []
            if isinstance(item, dict) and item.get("type") == "function_call"
        ]
        store.append_to_history(calls)

    def record_tool_results(
        self,
        state: session.ConversationState,
        turn: types.ModelTurn,
        results: _typing.Sequence[types.ToolResult],
        store: session.ConversationStore,
    ) -> None:
        if not isinstance(state, session.ContinuationState):
            raise TypeError("OpenAI Responses adapter requires ContinuationState")
        if not state.token:
            raise errors.ProviderResponseError(
                "Response has no id; tool outputs cannot be sent back", payload=turn.raw
            )

        items = [
            {"type": "function_call_output", "call_id": result.call_id, "output": result.output}
            for result in results
        ]
        state.pending.extend(items)
        store.append_to_history(items)


def _error_message(error: _typing.Any) -> str:
    if isinstance(error, dict):
        code = error.get("code")
        message = error.get("message") or "unknown error"
        return f"{code}: {message}" if code else str(message)
    return str(error) if error else "unknown error"


def _incomplete_reason(response: dict[str, _typing.Any]) -> str:
    details = response.get("incomplete_details")
    if isinstance(details, dict) and details.get("reason"):
        return str(details["reason"])
    return "unknown"
