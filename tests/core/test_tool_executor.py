"""Tests for core/tool_executor.py."""

import asyncio as _asyncio
import json as _json

import pytest as _pytest

import agentloop.api.types as api_types
import agentloop.core.tool_executor as tool_executor
import agentloop.tools.base as tools_base
import agentloop.tools.registry as tools_registry
import tests.conftest as conftest


async def _registry(
    handlers: dict, clients: list | None = None
) -> tools_registry.ToolRegistry:
    toolset = tools_base.LocalToolset(
        tools=[api_types.ToolDefinition(name=name) for name in handlers],
        handlers=handlers,
    )
    return await tools_registry.ToolRegistry.build(local=toolset, clients=clients or [])


def _call(name: str, call_id: str = "call_1", arguments: object = "{}") -> api_types.ToolCall:
    return api_types.ToolCall(name=name, call_id=call_id, arguments=arguments)


class TestFormatting:
    """Tests for output formatting."""

    def test_string_passes_through(self) -> None:
        assert tool_executor.format_local_output("ping") == "ping"

    def test_none_is_ok(self) -> None:
        assert _json.loads(tool_executor.format_local_output(None)) == {"ok": True}

    def test_values_are_json(self) -> None:
        assert _json.loads(tool_executor.format_local_output({"n": 1})) == {"n": 1}

    def test_error_output(self) -> None:
        output = tool_executor.format_error_output(ValueError("bad input"))
        assert _json.loads(output) == {
            "ok": False,
            "error": {"name": "ValueError", "message": "bad input"},
        }


class TestToolExecutor:
    """Tests for ToolExecutor."""

    @_pytest.mark.asyncio
    async def test_local_sync_and_async_handlers(self) -> None:
        async def async_handler(arguments: dict) -> dict:
            return {"doubled": arguments["n"] * 2}

        registry = await _registry({"echo": lambda a: a["value"], "double": async_handler})
        executor = tool_executor.ToolExecutor(registry)

        results = await executor.execute_batch(
            [_call("echo", "a", '{"value": "ping"}'), _call("double", "b", {"n": 2})]
        )

        assert [(r.call_id, r.output, r.is_error) for r in results] == [
            ("a", "ping", False),
            ("b", '{"doubled": 4}', False),
        ]

    @_pytest.mark.asyncio
    async def test_results_keep_call_order(self) -> None:
        """A slow first call still comes back first."""

        async def slow(arguments: dict) -> str:
            await _asyncio.sleep(0.05)
            return "slow"

        registry = await _registry({"slow": slow, "fast": lambda a: "fast"})
        executor = tool_executor.ToolExecutor(registry)

        results = await executor.execute_batch([_call("slow", "1"), _call("fast", "2")])
        assert [r.output for r in results] == ["slow", "fast"]

    @_pytest.mark.asyncio
    async def test_handler_exception_becomes_error_result(self) -> None:
        def boom(arguments: dict) -> str:
            raise RuntimeError("kaboom")

        registry = await _registry({"boom": boom})
        result = await tool_executor.ToolExecutor(registry).execute(_call("boom"))

        assert result.is_error is True
        assert _json.loads(result.output)["error"] == {"name": "RuntimeError", "message": "kaboom"}

    @_pytest.mark.asyncio
    async def test_unknown_tool(self) -> None:
        registry = await _registry({})
        result = await tool_executor.ToolExecutor(registry).execute(_call("missing"))

        assert result.is_error is True
        assert _json.loads(result.output)["error"]["name"] == "UnknownToolError"

    @_pytest.mark.asyncio
    async def test_invalid_arguments_become_empty_object(self) -> None:
        seen: list[dict] = []
        registry = await _registry({"probe": lambda a: seen.append(a)})
        result = await tool_executor.ToolExecutor(registry).execute(_call("probe", arguments="{oops"))

        assert seen == [{}]
        assert _json.loads(result.output) == {"ok": True}

    @_pytest.mark.asyncio
    async def test_remote_result_is_sanitized(self) -> None:
        client = conftest.FakeRemoteClient(
            "docs", ["search"], result={"content": [{"type": "text", "text": "x" * 40}]}
        )
        registry = await _registry({}, clients=[client])
        executor = tool_executor.ToolExecutor(registry, text_max_chars=10)

        result = await executor.execute(_call("search", arguments='{"q": "a"}'))

        assert client.calls == [("search", {"q": "a"})]
        payload = _json.loads(result.output)
        assert payload["content"][0]["text"].startswith("x" * 10)
        assert "__sanitizer" in payload["_meta"]
        assert result.is_error is False

    @_pytest.mark.asyncio
    async def test_remote_is_error_flag(self) -> None:
        client = conftest.FakeRemoteClient(
            "docs", ["search"], result={"content": [{"type": "text", "text": "nope"}], "isError": True}
        )
        registry = await _registry({}, clients=[client])
        result = await tool_executor.ToolExecutor(registry).execute(_call("search"))
        assert result.is_error is True

    @_pytest.mark.asyncio
    async def test_remote_exception_becomes_error_result(self) -> None:
        client = conftest.FakeRemoteClient("docs", ["search"], error=ConnectionError("server gone"))
        registry = await _registry({}, clients=[client])
        result = await tool_executor.ToolExecutor(registry).execute(_call("search"))

        assert result.is_error is True
        assert "server gone" in result.output

    @_pytest.mark.asyncio
    async def test_metrics_recorded(self) -> None:
        registry = await _registry({"echo": lambda a: "x"})
        executor = tool_executor.ToolExecutor(registry)
        await executor.execute_batch([_call("echo", "1"), _call("echo", "2")])

        metrics = executor.metrics.get("echo")
        assert metrics is not None
        assert metrics.call_count == 2
        assert metrics.success_count == 2
        summary = executor.metrics.summary()
        assert summary["total_calls"] == 2
        assert summary["total_failures"] == 0
        assert summary["tools_used"] == 1
