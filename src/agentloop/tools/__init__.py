"""
Tool system for agentloop.

A run's tools come from two places: local tools (declarations plus
Python handlers) and remote tools served by MCP servers. The registry
merges both, rejects name collisions, and owns the remote connections.

Usage:
    from agentloop.tools import LocalTool, LocalToolset, ToolRegistry

    toolset = LocalToolset(tools=[echo_definition], handlers={"echo": echo})
    async with await ToolRegistry.build(local=toolset) as registry:
        ...
"""

from agentloop.tools.base import (
    LocalTool,
    LocalToolset,
    MetricsCollector,
    RemoteToolClient,
    ToolHandler,
    ToolMetrics,
)
from agentloop.tools.registry import RemoteTool, ToolRegistry, connect_mcp
from agentloop.tools.results import SanitizedResult, sanitize_tool_result

__all__ = [
    # Local tools
    "LocalTool",
    "LocalToolset",
    "ToolHandler",
    # Remote tools
    "McpToolClient",
    "RemoteTool",
    "RemoteToolClient",
    "connect_mcp",
    # Registry
    "ToolRegistry",
    # Results
    "SanitizedResult",
    "sanitize_tool_result",
    # Metrics
    "MetricsCollector",
    "ToolMetrics",
]


import typing as _typing


# The MCP client pulls in the mcp SDK; load it only when asked for
def __getattr__(name: str) -> _typing.Any:
    if name == "McpToolClient":
        from agentloop.tools.mcp import McpToolClient

        return McpToolClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
