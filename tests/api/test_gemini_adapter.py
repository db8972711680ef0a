"""Tests for the Gemini adapter."""

import json as _json

import pytest as _pytest

import agentloop.api.providers.google as google
import agentloop.api.providers.google.adapter as google_adapter
import agentloop.api.types as api_types
import agentloop.errors as errors
import agentloop.session as session
import tests.conftest as conftest


@_pytest.fixture
def adapter() -> google.GeminiAdapter:
    return google.GeminiAdapter(model="gemini-test", api_key="g-key")


class TestBuildRequest:
    """Tests for request translation."""

    def test_url_auth_and_system_instruction(self, adapter: google.GeminiAdapter) -> None:
        state = adapter.start_conversation(session.Thread(), "Hello", system="Be brief.")

        streaming = adapter.build_request(state, [], api_types.GenerationOptions(), stream=True)
        plain = adapter.build_request(state, [], api_types.GenerationOptions(), stream=False)

        assert streaming.url == (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            "gemini-test:streamGenerateContent?alt=sse"
        )
        assert plain.url.endswith("/gemini-test:generateContent")
        assert streaming.headers == {"x-goog-api-key": "g-key"}
        assert streaming.body["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
        assert streaming.body["contents"] == [{"role": "user", "parts": [{"text": "Hello"}]}]

    def test_tools_are_sanitized(self, adapter: google.GeminiAdapter) -> None:
        tool = api_types.ToolDefinition(
            name="lookup",
            parameters={"type": "object", "properties": {"q": {"type": ["string", "null"]}}},
        )
        state = adapter.start_conversation(session.Thread(), "hi")
        request = adapter.build_request(state, [tool], api_types.GenerationOptions(), stream=True)

        declaration = request.body["tools"][0]["functionDeclarations"][0]
        assert declaration["name"] == "lookup"
        assert declaration["parametersJsonSchema"]["properties"]["q"] == {
            "type": "string",
            "nullable": True,
        }
        assert request.body["toolConfig"] == {"functionCallingConfig": {"mode": "AUTO"}}

    def test_generation_config(self, adapter: google.GeminiAdapter) -> None:
        state = adapter.start_conversation(session.Thread(), "hi")
        options = api_types.GenerationOptions(
            temperature=0.5,
            max_output_tokens=64,
            structured_output={"type": "object", "properties": {"a": {"const": 1}}},
        )
        request = adapter.build_request(state, [], options, stream=False)

        assert request.body["generationConfig"] == {
            "temperature": 0.5,
            "maxOutputTokens": 64,
            "responseMimeType": "application/json",
            "responseJsonSchema": {"type": "object", "properties": {"a": {"enum": [1]}}},
        }

    def test_empty_input_has_placeholder_content(self, adapter: google.GeminiAdapter) -> None:
        state = adapter.start_conversation(session.Thread(), [])
        request = adapter.build_request(state, [], api_types.GenerationOptions(), stream=False)
        assert request.body["contents"] == [{"role": "user", "parts": [{"text": ""}]}]


class TestToContents:
    """Tests for history conversion."""

    def test_parallel_calls_share_contents(self) -> None:
        items = [
            {"role": "user", "content": "go"},
            {"type": "function_call", "call_id": "a", "name": "one", "arguments": '{"x": 1}'},
            {"type": "function_call", "call_id": "b", "name": "two", "arguments": "{}"},
            {"type": "function_call_output", "call_id": "a", "output": '{"ok": true}'},
            {"type": "function_call_output", "call_id": "b", "output": "plain"},
            {"role": "assistant", "content": "done"},
        ]
        contents = google_adapter.to_contents(items)

        assert contents == [
            {"role": "user", "parts": [{"text": "go"}]},
            {
                "role": "model",
                "parts": [
                    {"functionCall": {"name": "one", "args": {"x": 1}}},
                    {"functionCall": {"name": "two", "args": {}}},
                ],
            },
            {
                "role": "user",
                "parts": [
                    {"functionResponse": {"name": "one", "response": {"ok": True}}},
                    {"functionResponse": {"name": "two", "response": {"result": "plain"}}},
                ],
            },
            {"role": "model", "parts": [{"text": "done"}]},
        ]

    @_pytest.mark.parametrize(
        ("output", "expected"),
        [
            ('{"a": 1}', {"a": 1}),
            ("[1, 2]", {"result": [1, 2]}),
            ("not json", {"result": "not json"}),
        ],
    )
    def test_function_response_payload(self, output: str, expected: dict) -> None:
        assert google_adapter.function_response_payload(output) == expected


class TestParseResponse:
    """Tests for response parsing."""

    def test_synthesized_call_ids_are_unique_and_stable(self, adapter: google.GeminiAdapter) -> None:
        event = {
            "candidates": [
                {
                    "content": {
                        "role": "model",
                        "parts": [
                            {"functionCall": {"name": "a", "args": {}}},
                            {"functionCall": {"name": "b", "args": {}}},
                        ],
                    }
                }
            ]
        }
        first = adapter.extract_tool_calls(event, iteration=2)
        again = adapter.extract_tool_calls(event, iteration=2)
        other = google.GeminiAdapter().extract_tool_calls(event, iteration=2)

        assert [c.call_id for c in first] == [c.call_id for c in again]
        assert first[0].call_id != first[1].call_id
        assert first[0].call_id.startswith("gemini_call_2_0_")
        assert first[0].call_id != other[0].call_id

    def test_vendor_call_id_is_kept(self, adapter: google.GeminiAdapter) -> None:
        calls = adapter.extract_tool_calls(conftest.gemini_call("a", {}, call_id="v1"), iteration=0)
        assert calls[0].call_id == "v1"
        assert calls[0].vendor_id == "v1"

    def test_usage(self, adapter: google.GeminiAdapter) -> None:
        usage = adapter.parse_usage(
            {
                "usageMetadata": {
                    "promptTokenCount": 7,
                    "candidatesTokenCount": 3,
                    "totalTokenCount": 12,
                    "cachedContentTokenCount": 2,
                }
            }
        )
        assert usage == api_types.Usage(input_tokens=7, output_tokens=3, total_tokens=12, cached_input_tokens=2)

    def test_thought_parts_are_not_answer_text(self, adapter: google.GeminiAdapter) -> None:
        data = {
            "candidates": [
                {
                    "content": {
                        "role": "model",
                        "parts": [{"text": "thinking...", "thought": True}, {"text": "Answer"}],
                    },
                    "finishReason": "STOP",
                }
            ]
        }
        turn = adapter.parse_response(data, iteration=0)
        assert adapter.output_text(turn) == "Answer"
        assert turn.finish_reason == "STOP"

    def test_blocked_prompt(self, adapter: google.GeminiAdapter) -> None:
        with _pytest.raises(errors.ProviderResponseError, match="SAFETY"):
            adapter.parse_response({"promptFeedback": {"blockReason": "SAFETY"}}, iteration=0)

    def test_error_payload(self, adapter: google.GeminiAdapter) -> None:
        with _pytest.raises(errors.ProviderResponseError, match="quota"):
            adapter.parse_response({"error": {"code": 429, "message": "quota exceeded"}}, iteration=0)


class TestRecording:
    """Tests for conversation recording."""

    def test_model_parts_appended_verbatim(self, adapter: google.GeminiAdapter) -> None:
        thread = session.Thread()
        state = adapter.start_conversation(thread, "hi")
        part = {"functionCall": {"name": "lookup", "args": {"q": "x"}}, "thoughtSignature": "opaque=="}
        data = {"candidates": [{"content": {"role": "model", "parts": [part]}}]}
        turn = adapter.parse_response(data, iteration=0)

        adapter.record_model_output(state, turn, thread)
        adapter.record_tool_results(
            state,
            turn,
            [api_types.ToolResult(call_id=turn.tool_calls[0].call_id, name="lookup", output='{"hits": 1}')],
            thread,
        )

        assert state.items[-2] == {"role": "model", "parts": [part]}
        assert state.items[-1] == {
            "role": "user",
            "parts": [{"functionResponse": {"name": "lookup", "response": {"hits": 1}}}],
        }
        history = thread.get_history()
        assert history[1]["type"] == "function_call"
        assert _json.loads(history[1]["arguments"]) == {"q": "x"}
        assert history[2] == {
            "type": "function_call_output",
            "call_id": turn.tool_calls[0].call_id,
            "output": '{"hits": 1}',
        }

    def test_vendor_id_echoed_in_function_response(self, adapter: google.GeminiAdapter) -> None:
        thread = session.Thread()
        state = adapter.start_conversation(thread, "hi")
        turn = adapter.parse_response(conftest.gemini_call("a", {}, call_id="v1"), iteration=0)
        adapter.record_tool_results(
            state, turn, [api_types.ToolResult(call_id="v1", name="a", output="ok")], thread
        )
        assert state.items[-1]["parts"][0]["functionResponse"]["id"] == "v1"

    def test_thread_history_is_resent(self, adapter: google.GeminiAdapter) -> None:
        """Without server state, a follow-up run sends the whole thread."""
        thread = session.Thread(
            history=[
                {"role": "user", "content": "first"},
                {"role": "assistant", "content": "reply"},
            ]
        )
        state = adapter.start_conversation(thread, "second")
        assert [c["role"] for c in state.items] == ["user", "model", "user"]
