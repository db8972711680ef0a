"""
Google Gemini ``generateContent`` adapter.

Gemini has no server-side conversation state, so the whole history of
``contents`` is resubmitted on every request. The model's content parts
are appended exactly as received: they may carry opaque thought
signatures that later function calls depend on.

Gemini streams may emit a ``functionCall`` part in one event and follow
it only with usage or finish-reason events, so this adapter opts into
the early tool-call return of the stream reader.
"""

from __future__ import annotations

import json as _json
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


def _first_candidate(data: dict[str, _typing.Any]) -> dict[str, _typing.Any]:
    candidates = data.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        return candidates[0]
    return {}


def _parts(data: dict[str, _typing.Any]) -> list[dict[str, _typing.Any]]:
    content = _first_candidate(data).get("content")
    if not isinstance(content, dict) or not isinstance(content.get("parts"), list):
        return []
    return [part for part in content["parts"] if isinstance(part, dict)]


def _answer_text(parts: _typing.Sequence[dict[str, _typing.Any]]) -> str | None:
    texts = [
        part["text"]
        for part in parts
        if isinstance(part.get("text"), str) and not part.get("thought")
    ]
    return "".join(texts) if texts else None


def function_response_payload(output: str) -> dict[str, _typing.Any]:
    """
    Shape a tool output as a ``functionResponse.response`` object.

    JSON objects are used as they are; other JSON values and plain text
    are wrapped as ``{"result": ...}``.
    """
    try:
        value = _json.loads(output)
    except ValueError:
        return {"result": output}
    if isinstance(value, dict):
        return value
    return {"result": value}


def to_contents(items: _typing.Sequence[types.Message]) -> list[dict[str, _typing.Any]]:
    """
    Convert vendor-neutral history items into Gemini ``contents``.

    Function calls and their outputs are grouped so that parallel calls
    from one model turn share a single content entry.
    """
    contents: list[dict[str, _typing.Any]] = []
    call_names: dict[str, str] = {}

    def add(role: str, part: dict[str, _typing.Any], *, merge: bool) -> None:
        if merge and contents and contents[-1]["role"] == role and contents[-1].get("_merge"):
            contents[-1]["parts"].append(part)
            return
        entry: dict[str, _typing.Any] = {"role": role, "parts": [part]}
        if merge:
            entry["_merge"] = True
        contents.append(entry)

    for item in items:
        item_type = item.get("type")
        if item_type == "function_call":
            call_id = item.get("call_id") or item.get("id") or ""
            call_names[call_id] = item.get("name", "")
            call = types.ToolCall(name=item.get("name", ""), call_id=call_id, arguments=item.get("arguments"))
            add("model", {"functionCall": {"name": call.name, "args": call.parsed_arguments()}}, merge=True)
        elif item_type == "function_call_output":
            call_id = item.get("call_id", "")
            output = item.get("output")
            response = function_response_payload(output if isinstance(output, str) else _json.dumps(output))
            add(
                "user",
                {"functionResponse": {"name": call_names.get(call_id, call_id), "response": response}},
                merge=True,
            )
        else:
            role = "model" if item.get("role") == "assistant" else "user"
            add(role, {"text": base.content_text(item.get("content"))}, merge=False)

    for entry in contents:
        entry.pop("_merge", None)
    if not contents:
        contents.append({"role": "user", "parts": [{"text": ""}]})
    return contents


class GeminiAdapter(base.ProviderAdapter):
    """Adapter for ``models/{model}:generateContent`` and its streaming form."""

    early_tool_call_return = True
    schema_dialect = schema.GEMINI_DIALECT

    def __init__(
        self,
        *,
        model: str = _constants.DEFAULT_GOOGLE_MODEL,
        api_key: str | None = None,
        endpoint: str = _constants.DEFAULT_GOOGLE_ENDPOINT,
    ) -> None:
        super().__init__(model=model, api_key=api_key, endpoint=endpoint)

    @property
    def name(self) -> str:
        return "google"

    # -------------------------------------------------------------------------
    # Request side
    # -------------------------------------------------------------------------

    def start_conversation(
        self,
        store: session.ConversationStore,
        input_items: _typing.Sequence[types.InputItem] | str,
        *,
        system: str | None = None,
    ) -> session.HistoryState:
        context = store.build_request_context(input_items)
        if context.continuation_token:
            _logger.warning(
                "Thread carries a continuation token that Gemini cannot use; "
                "only the new input is sent"
            )
        system_text, rest = base.split_system_messages(context.input, system)
        return session.HistoryState(items=to_contents(rest), system=system_text)

    def build_request(
        self,
        state: session.ConversationState,
        tools: _typing.Sequence[types.ToolDefinition],
        options: types.GenerationOptions,
        *,
        stream: bool,
    ) -> base.RequestSpec:
        if not isinstance(state, session.HistoryState):
            raise TypeError("Gemini adapter requires HistoryState")

        body: dict[str, _typing.Any] = {"contents": list(state.items)}
        if state.system:
            body["systemInstruction"] = {"parts": [{"text": state.system}]}

        if tools:
            body["tools"] = [
                {
                    "functionDeclarations": [
                        {
                            "name": tool.name,
                            "description": tool.description,
                            "parametersJsonSchema": tool.parameters,
                        }
                        for tool in self.sanitize_tools(tools)
                    ]
                }
            ]
            body["toolConfig"] = {"functionCallingConfig": {"mode": "AUTO"}}

        generation: dict[str, _typing.Any] = {}
        if options.temperature is not None:
            generation["temperature"] = options.temperature
        if options.max_output_tokens is not None:
            generation["maxOutputTokens"] = options.max_output_tokens
        output_schema = options.output_schema()
        if output_schema is not None:
            generation["responseMimeType"] = "application/json"
            generation["responseJsonSchema"] = schema.sanitize_schema(
                output_schema[1], self.schema_dialect
            )
        if generation:
            body["generationConfig"] = generation

        method = "streamGenerateContent?alt=sse" if stream else "generateContent"
        headers = {"x-goog-api-key": self._api_key} if self._api_key else {}
        return base.RequestSpec(
            url=f"{self._endpoint}/{self._model}:{method}", body=body, headers=headers
        )

    # -------------------------------------------------------------------------
    # Response side
    # -------------------------------------------------------------------------

    def parse_response(self, data: dict[str, _typing.Any], *, iteration: int) -> types.ModelTurn:
        self.check_stream_event(data)
        return types.ModelTurn(
            raw=data,
            tool_calls=self.extract_tool_calls(data, iteration=iteration),
            usage=self.parse_usage(data) or types.Usage(),
            finish_reason=self.stream_finish_reason(data),
            response_id=data.get("responseId"),
        )

    def extract_tool_calls(
        self, data: dict[str, _typing.Any], *, iteration: int
    ) -> list[types.ToolCall]:
        calls = []
        for index, part in enumerate(_parts(data)):
            function_call = part.get("functionCall")
            if not isinstance(function_call, dict) or not function_call.get("name"):
                continue
            vendor_id = function_call.get("id") or None
            calls.append(
                types.ToolCall(
                    name=function_call["name"],
                    call_id=vendor_id or f"gemini_call_{iteration}_{index}_{self._nonce}",
                    arguments=function_call.get("args"),
                    vendor_id=vendor_id,
                )
            )
        return calls

    def parse_usage(self, data: dict[str, _typing.Any]) -> types.Usage | None:
        meta = data.get("usageMetadata")
        if not isinstance(meta, dict):
            return None
        input_tokens = int(meta.get("promptTokenCount") or 0)
        output_tokens = int(meta.get("candidatesTokenCount") or 0)
        return types.Usage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=int(meta.get("totalTokenCount") or input_tokens + output_tokens),
            cached_input_tokens=int(meta.get("cachedContentTokenCount") or 0),
        )

    def extract_text(self, turn: types.ModelTurn) -> str | None:
        # A streamed snapshot holds only its own chunk; the accumulated text
        # is the whole answer.
        if turn.streamed and turn.accumulated_text:
            return turn.accumulated_text
        text = _answer_text(_parts(turn.raw))
        if text is not None:
            return text
        return turn.accumulated_text or None

    # -------------------------------------------------------------------------
    # Stream side
    # -------------------------------------------------------------------------

    def check_stream_event(self, event: dict[str, _typing.Any]) -> None:
        error = event.get("error")
        if isinstance(error, dict):
            raise errors.ProviderResponseError(
                f"Gemini error {error.get('code', '')}: {error.get('message', 'unknown error')}",
                payload=event,
            )
        feedback = event.get("promptFeedback")
        if isinstance(feedback, dict) and feedback.get("blockReason"):
            raise errors.ProviderResponseError(
                f"Prompt blocked: {feedback['blockReason']}", payload=event
            )

    def stream_text_delta(
        self,
        event: dict[str, _typing.Any],
        text: accumulator.TextAccumulator,
    ) -> str:
        chunk = _answer_text(_parts(event))
        return text.ingest(chunk) if chunk else ""

    def stream_event_has_content(self, event: dict[str, _typing.Any]) -> bool:
        return bool(_parts(event))

    def stream_finish_reason(self, event: dict[str, _typing.Any]) -> str | None:
        reason = _first_candidate(event).get("finishReason")
        return reason if isinstance(reason, str) and reason else None

    def finish_stream(self, state: reader.StreamState, *, iteration: int) -> types.ModelTurn:
        snapshot = (
            state.early_return
            or state.last_with_tool_call
            or state.last_with_content
            or state.last_event
        )
        if snapshot is None:
            raise errors.IncompleteStreamError("No parsable SSE events received")

        turn = self.parse_response(snapshot, iteration=iteration)
        if state.usage is not None:
            turn.usage = state.usage
        turn.finish_reason = state.finish_reason or turn.finish_reason
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
        if not isinstance(state, session.HistoryState):
            raise TypeError("Gemini adapter requires HistoryState")

        parts = (_first_candidate(turn.raw).get("content") or {}).get("parts")
        if isinstance(parts, list) and parts:
            state.append({"role": "model", "parts": parts})

        store.append_to_history(
            [
                {
                    "type": "function_call",
                    "call_id": call.call_id,
                    "name": call.name,
                    "arguments": _json.dumps(call.parsed_arguments()),
                }
                for call in turn.tool_calls
            ]
        )

    def record_tool_results(
        self,
        state: session.ConversationState,
        turn: types.ModelTurn,
        results: _typing.Sequence[types.ToolResult],
        store: session.ConversationStore,
    ) -> None:
        if not isinstance(state, session.HistoryState):
            raise TypeError("Gemini adapter requires HistoryState")

        vendor_ids = {call.call_id: call.vendor_id for call in turn.tool_calls}
        parts = []
        for result in results:
            function_response: dict[str, _typing.Any] = {
                "name": result.name,
                "response": function_response_payload(result.output),
            }
            if vendor_ids.get(result.call_id):
                function_response["id"] = vendor_ids[result.call_id]
            parts.append({"functionResponse": function_response})
        if parts:
            state.append({"role": "user", "parts": parts})

        store.append_to_history(
            [
                {"type": "function_call_output", "call_id": result.call_id, "output": result.output}
                for result in results
            ]
        )
