"""Tests for tools/registry.py and local tool validation."""

import pytest as _pytest

import agentloop.api.types as api_types
import agentloop.config as config
import agentloop.errors as errors
import agentloop.tools.base as tools_base
import agentloop.tools.registry as tools_registry
import tests.conftest as conftest


def _echo(arguments: dict) -> str:
    return arguments.get("value", "")


def _toolset(*names: str) -> tools_base.LocalToolset:
    return tools_base.LocalToolset(
        tools=[api_types.ToolDefinition(name=name) for name in names],
        handlers={name: _echo for name in names},
    )


class TestLocalToolset:
    """Tests for LocalToolset.validate."""

    def test_accepts_function_dicts(self) -> None:
        toolset = tools_base.LocalToolset(
            tools=[
                {
                    "type": "function",
                    "name": "local_echo",
                    "description": "Echo",
                    "parameters": {"type": "object", "properties": {}},
                }
            ],
            handlers={"local_echo": _echo},
        )
        [tool] = toolset.validate()
        assert tool.name == "local_echo"
        assert tool.definition.description == "Echo"

    def test_duplicate_name(self) -> None:
        toolset = tools_base.LocalToolset(
            tools=[api_types.ToolDefinition(name="x"), api_types.ToolDefinition(name="x")],
            handlers={"x": _echo},
        )
        with _pytest.raises(errors.ToolSetupError, match="Duplicate local tool name: x"):
            toolset.validate()

    def test_missing_handler(self) -> None:
        toolset = tools_base.LocalToolset(tools=[api_types.ToolDefinition(name="x")])
        with _pytest.raises(errors.ToolSetupError, match="Missing local tool handler: x"):
            toolset.validate()

    def test_handler_not_callable(self) -> None:
        toolset = tools_base.LocalToolset(
            tools=[api_types.ToolDefinition(name="x")], handlers={"x": "nope"}  # type: ignore[dict-item]
        )
        with _pytest.raises(errors.ToolSetupError, match="not callable"):
            toolset.validate()

    def test_unsupported_type(self) -> None:
        toolset = tools_base.LocalToolset(tools=[{"type": "web_search"}])
        with _pytest.raises(errors.ToolSetupError, match="Unsupported local tool type"):
            toolset.validate()


class TestBuild:
    """Tests for ToolRegistry.build."""

    @_pytest.mark.asyncio
    async def test_local_and_remote(self) -> None:
        client = conftest.FakeRemoteClient("docs", ["search"])
        registry = await tools_registry.ToolRegistry.build(local=_toolset("local_echo"), clients=[client])
        async with registry:
            assert registry.list_names() == ["local_echo", "search"]
            assert [d.name for d in registry.definitions()] == ["search", "local_echo"]
            assert registry.get_local("local_echo") is not None
            assert registry.get_remote("search") is not None
            assert "search" in registry
            assert len(registry) == 2
        assert client.close_count == 1

    @_pytest.mark.asyncio
    async def test_local_remote_collision_closes_clients(self) -> None:
        client = conftest.FakeRemoteClient("docs", ["x"])
        with _pytest.raises(
            errors.ToolSetupError, match="Tool name collision between MCP and local tools: x"
        ):
            await tools_registry.ToolRegistry.build(local=_toolset("x"), clients=[client])
        assert client.close_count == 1

    @_pytest.mark.asyncio
    async def test_collision_across_servers(self) -> None:
        first = conftest.FakeRemoteClient("alpha", ["x"])
        second = conftest.FakeRemoteClient("beta", ["x"])
        with _pytest.raises(
            errors.ToolSetupError, match=r"Tool name collision across MCP servers: x \(alpha, beta\)"
        ):
            await tools_registry.ToolRegistry.build(clients=[first, second])
        assert first.close_count == 1
        assert second.close_count == 1

    @_pytest.mark.asyncio
    async def test_invalid_local_tools_close_given_clients(self) -> None:
        client = conftest.FakeRemoteClient("docs", ["search"])
        broken = tools_base.LocalToolset(tools=[api_types.ToolDefinition(name="x")])

        with _pytest.raises(errors.ToolSetupError, match="Missing local tool handler: x"):
            await tools_registry.ToolRegistry.build(local=broken, clients=[client])

        assert client.close_count == 1

    @_pytest.mark.asyncio
    async def test_invalid_local_tools_fail_before_connecting(self) -> None:
        connected: list[str] = []

        async def connect(server: config.McpServerConfig) -> conftest.FakeRemoteClient:
            connected.append(server.name)
            return conftest.FakeRemoteClient(server.name, ["search"])

        broken = tools_base.LocalToolset(tools=[api_types.ToolDefinition(name="x")])
        with _pytest.raises(errors.ToolSetupError):
            await tools_registry.ToolRegistry.build(
                local=broken,
                servers=[config.McpServerConfig(name="docs", command="docs-server")],
                connect=connect,
            )
        assert connected == []

    @_pytest.mark.asyncio
    async def test_connection_failure_wrapped_and_earlier_clients_closed(self) -> None:
        opened: list[conftest.FakeRemoteClient] = []

        async def connect(server: config.McpServerConfig) -> conftest.FakeRemoteClient:
            if server.name == "broken":
                raise ConnectionError("no such server")
            client = conftest.FakeRemoteClient(server.name, [f"{server.name}_tool"])
            opened.append(client)
            return client

        servers = [
            config.McpServerConfig(name="ok", command="ok-server"),
            config.McpServerConfig(name="broken", command="broken-server"),
        ]
        with _pytest.raises(
            errors.ToolSetupError, match="Failed to connect to MCP server 'broken': no such server"
        ):
            await tools_registry.ToolRegistry.build(servers=servers, connect=connect)
        assert [c.close_count for c in opened] == [1]

    @_pytest.mark.asyncio
    async def test_close_is_idempotent_and_tolerates_failures(self) -> None:
        class FailingClose(conftest.FakeRemoteClient):
            async def close(self) -> None:
                await super().close()
                raise RuntimeError("already gone")

        failing = FailingClose("alpha", ["a"])
        healthy = conftest.FakeRemoteClient("beta", ["b"])
        registry = await tools_registry.ToolRegistry.build(clients=[failing, healthy])

        await registry.close()
        await registry.close()

        assert failing.close_count == 1
        assert healthy.close_count == 1
