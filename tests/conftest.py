"""
Shared pytest fixtures for agentloop tests.

This file is automatically loaded by pytest. Fixtures and helpers defined
here are available to all test files; helpers are imported with
``import tests.conftest as conftest``.
"""

import json as _json
import pathlib as _pathlib
import typing as _typing

import httpx as _httpx
import pytest as _pytest

import agentloop.api.transport as transport
import agentloop.api.types as api_types
import agentloop.config as config

# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR = [
    "OPENAI_API_KEY",
    "GOOGLE_API_KEY",
    "GEMINI_API_KEY",
    "AGENTLOOP_CONFIG_FILE",
    "AGENTLOOP_ENV_FILE",
]


# =============================================================================
# Environment
# =============================================================================


@_pytest.fixture
def isolated_env(
    monkeypatch: _pytest.MonkeyPatch, tmp_path: _pathlib.Path
) -> _pathlib.Path:
    """
    Isolate tests from the user's environment and config files.

    Clears provider keys and AGENTLOOP_* variables, points the user config
    directory at an empty temp dir, and runs the test from tmp_path so no
    project config is picked up.

    Usage:
        def test_something(isolated_env):
            ...
    """
    import os as _os

    for key in list(_os.environ):
        if key.startswith("AGENTLOOP_") or key in ENV_KEYS_TO_CLEAR:
            monkeypatch.delenv(key, raising=False)
    user_dir = tmp_path / "user-config"
    user_dir.mkdir()
    monkeypatch.setenv("AGENTLOOP_CONFIG_DIR", str(user_dir))
    monkeypatch.chdir(tmp_path)
    return tmp_path


@_pytest.fixture
def clean_settings(isolated_env: _pathlib.Path) -> config.Settings:
    """Settings with defaults only (no env, no YAML)."""
    return config.Settings.construct_without_dotenv()


# =============================================================================
# SSE and HTTP helpers
# =============================================================================


def sse_event(payload: dict[str, _typing.Any] | str, *, crlf: bool = False) -> bytes:
    """Encode one SSE event carrying a JSON (or raw string) payload."""
    data = payload if isinstance(payload, str) else _json.dumps(payload)
    newline = "\r\n" if crlf else "\n"
    return f"data: {data}{newline}{newline}".encode()


def sse_body(payloads: _typing.Sequence[dict[str, _typing.Any] | str], *, crlf: bool = False) -> bytes:
    return b"".join(sse_event(p, crlf=crlf) for p in payloads)


async def aiter_chunks(
    data: bytes, size: int | None = None
) -> _typing.AsyncIterator[bytes]:
    """Yield data in chunks of ``size`` bytes (all at once when None)."""
    if size is None:
        yield data
        return
    for i in range(0, len(data), size):
        yield data[i : i + size]


async def aiter_then_hang(data: bytes) -> _typing.AsyncIterator[bytes]:
    """Yield data, then never finish (a stream the server keeps open)."""
    import asyncio as _asyncio

    yield data
    await _asyncio.Event().wait()


Responder = _typing.Callable[[_httpx.Request], _httpx.Response]


class RecordingTransport:
    """
    An HttpTransport over httpx.MockTransport that records every request.

    ``responses`` are returned in order; each is an httpx.Response or a
    callable taking the request.
    """

    def __init__(self, responses: _typing.Sequence[_httpx.Response | Responder]) -> None:
        self.requests: list[_httpx.Request] = []
        self._responses = list(responses)
        self.transport = transport.HttpTransport(
            client=_httpx.AsyncClient(transport=_httpx.MockTransport(self._handle))
        )

    def _handle(self, request: _httpx.Request) -> _httpx.Response:
        self.requests.append(request)
        if not self._responses:
            raise AssertionError(f"Unexpected request #{len(self.requests)} to {request.url}")
        response = self._responses.pop(0)
        return response(request) if callable(response) else response

    @property
    def bodies(self) -> list[dict[str, _typing.Any]]:
        return [_json.loads(request.content) for request in self.requests]


def json_response(body: dict[str, _typing.Any], status_code: int = 200) -> _httpx.Response:
    return _httpx.Response(status_code, json=body)


def sse_response(
    payloads: _typing.Sequence[dict[str, _typing.Any] | str],
    *,
    hang: bool = False,
) -> _httpx.Response:
    body = sse_body(payloads)
    return _httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content=aiter_then_hang(body) if hang else body,
    )


# =============================================================================
# Vendor payload builders
# =============================================================================


def openai_message(text: str) -> dict[str, _typing.Any]:
    return {
        "type": "message",
        "role": "assistant",
        "content": [{"type": "output_text", "text": text}],
    }


def openai_function_call(name: str, call_id: str, arguments: dict[str, _typing.Any]) -> dict[str, _typing.Any]:
    return {
        "type": "function_call",
        "id": f"fc_{call_id}",
        "call_id": call_id,
        "name": name,
        "arguments": _json.dumps(arguments),
    }


def openai_response(
    response_id: str,
    output: list[dict[str, _typing.Any]],
    usage: dict[str, int] | None = None,
) -> dict[str, _typing.Any]:
    return {
        "id": response_id,
        "object": "response",
        "status": "completed",
        "output": output,
        "usage": usage or {"input_tokens": 1, "output_tokens": 1, "total_tokens": 2},
    }


def gemini_text(text: str, *, finish: str | None = None, usage: dict[str, int] | None = None) -> dict[str, _typing.Any]:
    candidate: dict[str, _typing.Any] = {"content": {"role": "model", "parts": [{"text": text}]}}
    if finish:
        candidate["finishReason"] = finish
    event: dict[str, _typing.Any] = {"candidates": [candidate]}
    if usage:
        event["usageMetadata"] = usage
    return event


def gemini_call(name: str, args: dict[str, _typing.Any], *, call_id: str | None = None) -> dict[str, _typing.Any]:
    function_call: dict[str, _typing.Any] = {"name": name, "args": args}
    if call_id:
        function_call["id"] = call_id
    return {"candidates": [{"content": {"role": "model", "parts": [{"functionCall": function_call}]}}]}


def gemini_usage(prompt: int, candidates: int) -> dict[str, _typing.Any]:
    return {
        "usageMetadata": {
            "promptTokenCount": prompt,
            "candidatesTokenCount": candidates,
            "totalTokenCount": prompt + candidates,
        }
    }


# =============================================================================
# Tool helpers
# =============================================================================


ECHO_TOOL = api_types.ToolDefinition(
    name="local_echo",
    description="Echo the value back",
    parameters={
        "type": "object",
        "properties": {"value": {"type": "string"}},
        "required": ["value"],
    },
)


class FakeRemoteClient:
    """A RemoteToolClient serving fixed tools, recording calls and closes."""

    def __init__(
        self,
        server_name: str,
        tools: _typing.Sequence[str | api_types.ToolDefinition] = (),
        *,
        result: _typing.Any = None,
        error: Exception | None = None,
    ) -> None:
        self._server_name = server_name
        self._tools = [
            tool if isinstance(tool, api_types.ToolDefinition) else api_types.ToolDefinition(name=tool)
            for tool in tools
        ]
        self._result = result if result is not None else {"content": [{"type": "text", "text": "ok"}]}
        self._error = error
        self.calls: list[tuple[str, dict[str, _typing.Any]]] = []
        self.close_count = 0

    @property
    def server_name(self) -> str:
        return self._server_name

    async def list_tools(self) -> list[api_types.ToolDefinition]:
        return list(self._tools)

    async def call_tool(self, name: str, arguments: dict[str, _typing.Any]) -> _typing.Any:
        self.calls.append((name, arguments))
        if self._error is not None:
            raise self._error
        return self._result

    async def close(self) -> None:
        self.close_count += 1
