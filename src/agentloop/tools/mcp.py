"""
MCP (Model Context Protocol) tool server client.

McpToolClient connects to one server over stdio, SSE or streamable
HTTP, lists its tools and calls them. Each client owns an
AsyncExitStack holding the transport and session; close() unwinds it.
"""

from __future__ import annotations

import asyncio as _asyncio
import contextlib as _contextlib
import logging as _logging
import typing as _typing

import mcp as _mcp
import mcp.client.sse as _mcp_sse
import mcp.client.stdio as _mcp_stdio
import mcp.client.streamable_http as _mcp_http

import agentloop.api.types as api_types
import agentloop.config.types as config_types

_logger = _logging.getLogger(__name__)


def _open_transport(config: config_types.McpServerConfig) -> _typing.AsyncContextManager[_typing.Any]:
    if config.type == "stdio":
        params = _mcp.StdioServerParameters(
            command=config.command or "",
            args=list(config.args),
            env=config.env,
        )
        return _mcp_stdio.stdio_client(params)
    if config.type == "sse":
        return _mcp_sse.sse_client(config.url or "", headers=config.headers)
    return _mcp_http.streamablehttp_client(config.url or "", headers=config.headers)


class McpToolClient:
    """
    A connected MCP server.

    Usage:
        client = await McpToolClient.connect(config)
        try:
            tools = await client.list_tools()
            result = await client.call_tool("search", {"q": "x"})
        finally:
            await client.close()
    """

    def __init__(
        self,
        config: config_types.McpServerConfig,
        session: _mcp.ClientSession,
        stack: _contextlib.AsyncExitStack,
    ) -> None:
        self._config = config
        self._session = session
        self._stack = stack
        self._closed = False

    @classmethod
    async def connect(cls, config: config_types.McpServerConfig) -> McpToolClient:
        """
        Open the transport, start a session and run the initialize handshake.

        Raises:
            TimeoutError: If initialization exceeds config.init_timeout.
            Exception: Whatever the transport raises on connection failure.
        """
        stack = _contextlib.AsyncExitStack()
        try:
            streams = await stack.enter_async_context(_open_transport(config))
            read_stream, write_stream = streams[0], streams[1]
            session = await stack.enter_async_context(_mcp.ClientSession(read_stream, write_stream))
            await _asyncio.wait_for(session.initialize(), timeout=config.init_timeout)
        except BaseException:
            await stack.aclose()
            raise

        _logger.info("Connected to MCP server '%s' (%s)", config.name, config.type)
        return cls(config, session, stack)

    @property
    def server_name(self) -> str:
        return self._config.name

    async def list_tools(self) -> list[api_types.ToolDefinition]:
        """List the server's tools, filtered by the config's allowed_tools."""
        result = await self._session.list_tools()
        allowed = set(self._config.allowed_tools) if self._config.allowed_tools is not None else None

        definitions = []
        for tool in result.tools:
            if allowed is not None and tool.name not in allowed:
                continue
            definitions.append(
                api_types.ToolDefinition(
                    name=tool.name,
                    description=tool.description or "",
                    parameters=dict(tool.inputSchema or {"type": "object", "properties": {}}),
                )
            )
        return definitions

    async def call_tool(self, name: str, arguments: dict[str, _typing.Any]) -> dict[str, _typing.Any]:
        """Call a tool and return the CallToolResult as a JSON-ready dict."""
        result = await self._session.call_tool(name, arguments)
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)

    async def close(self) -> None:
        """Close the session and transport. Later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        await self._stack.aclose()
        _logger.debug("Closed MCP server '%s'", self._config.name)
