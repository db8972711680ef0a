"""
Tool registry for one agent run.

The registry maps each tool name to exactly one execution strategy: a
local handler, or a remote client. It is built once at the start of a
run, before any model request, and closed at the end of it. Building
fails fast on any name collision or missing handler.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import typing as _typing

import agentloop.api.types as api_types
import agentloop.config.types as config_types
import agentloop.errors as errors
import agentloop.tools.base as base

_logger = _logging.getLogger(__name__)

RemoteConnector = _typing.Callable[
    [config_types.McpServerConfig], _typing.Awaitable[base.RemoteToolClient]
]


@_dataclasses.dataclass
class RemoteTool:
    """A tool served by a remote client."""

    definition: api_types.ToolDefinition
    client: base.RemoteToolClient

    @property
    def name(self) -> str:
        return self.definition.name


async def connect_mcp(config: config_types.McpServerConfig) -> base.RemoteToolClient:
    """Default connector: an MCP client for the server config."""
    import agentloop.tools.mcp as mcp

    return await mcp.McpToolClient.connect(config)


class ToolRegistry:
    """
    Registry of the tools available to one run.

    Use ToolRegistry.build() and close it with ``async with``:

        async with await ToolRegistry.build(local=toolset, servers=servers) as registry:
            ...
    """

    def __init__(self) -> None:
        self._local: dict[str, base.LocalTool] = {}
        self._remote: dict[str, RemoteTool] = {}
        self._clients: list[base.RemoteToolClient] = []
        self._closed = False

    @classmethod
    async def build(
        cls,
        *,
        local: base.LocalToolset | None = None,
        servers: _typing.Sequence[config_types.McpServerConfig] = (),
        clients: _typing.Sequence[base.RemoteToolClient] = (),
        connect: RemoteConnector | None = None,
    ) -> ToolRegistry:
        """
        Build and validate the registry for a run.

        Local tools are validated first, so a broken local setup fails
        without contacting any server. The registry takes ownership of
        ``clients`` as soon as it is called and of every client it
        connects; if building fails, all of them are closed before the
        error propagates.

        Args:
            local: Local tool declarations and handlers.
            servers: MCP servers to connect to.
            clients: Already-connected remote clients.
            connect: Connector for ``servers`` (defaults to MCP).

        Raises:
            ToolSetupError: On a collision, missing handler, or failed connection.
        """
        connect = connect or connect_mcp

        registry = cls()
        registry._clients.extend(clients)
        try:
            local_tools = local.validate() if local is not None else []
            for tool in local_tools:
                registry.add_local(tool)
            for client in clients:
                registry.add_remote(client, await client.list_tools())
            for server in servers:
                try:
                    client = await connect(server)
                except Exception as e:
                    raise errors.ToolSetupError(
                        f"Failed to connect to MCP server '{server.name}': {e}"
                    ) from e
                registry._clients.append(client)
                registry.add_remote(client, await client.list_tools())
        except BaseException:
            await registry.close()
            raise

        _logger.debug(
            "Tool registry built: %d local, %d remote from %d server(s)",
            len(registry._local),
            len(registry._remote),
            len(registry._clients),
        )
        return registry

    def add_local(self, tool: base.LocalTool) -> None:
        """
        Register a local tool.

        Raises:
            ToolSetupError: If the name is already taken.
        """
        if tool.name in self._local:
            raise errors.ToolSetupError(f"Duplicate local tool name: {tool.name}")
        if tool.name in self._remote:
            raise errors.ToolSetupError(
                f"Tool name collision between MCP and local tools: {tool.name}"
            )
        self._local[tool.name] = tool

    def add_remote(
        self,
        client: base.RemoteToolClient,
        definitions: _typing.Sequence[api_types.ToolDefinition],
    ) -> None:
        """
        Register the tools of one remote client.

        Raises:
            ToolSetupError: If a name is already taken by a local tool or
                another server.
        """
        for definition in definitions:
            if definition.name in self._local:
                raise errors.ToolSetupError(
                    f"Tool name collision between MCP and local tools: {definition.name}"
                )
            existing = self._remote.get(definition.name)
            if existing is not None:
                raise errors.ToolSetupError(
                    f"Tool name collision across MCP servers: {definition.name} "
                    f"({existing.client.server_name}, {client.server_name})"
                )
            self._remote[definition.name] = RemoteTool(definition=definition, client=client)

    def get_local(self, name: str) -> base.LocalTool | None:
        return self._local.get(name)

    def get_remote(self, name: str) -> RemoteTool | None:
        return self._remote.get(name)

    def definitions(self) -> list[api_types.ToolDefinition]:
        """Tool definitions for the model: remote tools first, then local."""
        return [tool.definition for tool in self._remote.values()] + [
            tool.definition for tool in self._local.values()
        ]

    def list_names(self) -> list[str]:
        return sorted([*self._remote, *self._local])

    async def close(self) -> None:
        """
        Close every remote client exactly once.

        A client failing to close is logged and does not stop the others
        from being closed.
        """
        if self._closed:
            return
        self._closed = True
        await close_clients(self._clients)

    async def __aenter__(self) -> ToolRegistry:
        return self

    async def __aexit__(self, *exc_info: _typing.Any) -> None:
        await self.close()

    def __len__(self) -> int:
        return len(self._local) + len(self._remote)

    def __contains__(self, name: str) -> bool:
        return name in self._local or name in self._remote


async def close_clients(clients: _typing.Iterable[base.RemoteToolClient]) -> None:
    """Close each client once, logging (not raising) close failures."""
    for client in clients:
        try:
            await client.close()
        except Exception as e:
            _logger.warning("Failed to close tool server '%s': %s", client.server_name, e)
