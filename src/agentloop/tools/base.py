"""
Base types for the tool system.

A run exposes two kinds of tools to the model: local tools, backed by a
Python callable supplied by the caller, and remote tools, served by a
connected tool server through a RemoteToolClient.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import datetime as _datetime
import typing as _typing

import agentloop.api.types as api_types
import agentloop.errors as errors

ToolHandler = _typing.Callable[[dict[str, _typing.Any]], _typing.Any]
"""Local tool handler: takes the arguments dict, returns (or awaits to) a
string or any JSON-serializable value."""


@_typing.runtime_checkable
class RemoteToolClient(_typing.Protocol):
    """A connected remote tool server."""

    @property
    def server_name(self) -> str: ...

    async def list_tools(self) -> list[api_types.ToolDefinition]: ...

    async def call_tool(self, name: str, arguments: dict[str, _typing.Any]) -> _typing.Any: ...

    async def close(self) -> None: ...


@_dataclasses.dataclass
class LocalTool:
    """A validated local tool."""

    definition: api_types.ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name


@_dataclasses.dataclass
class LocalToolset:
    """
    Local tools as supplied by a caller: declarations plus a handler map.

    Declarations may be ToolDefinition objects or OpenAI-style function
    tool dicts (``{"type": "function", "name": ..., "parameters": ...}``).
    """

    tools: list[api_types.ToolDefinition | dict[str, _typing.Any]] = _dataclasses.field(
        default_factory=list
    )
    handlers: dict[str, ToolHandler] = _dataclasses.field(default_factory=dict)

    def validate(self) -> list[LocalTool]:
        """
        Check the declarations against the handlers.

        Returns:
            The tools in declaration order.

        Raises:
            ToolSetupError: On a non-function tool, a duplicate name, a
                missing handler, or a handler that is not callable.
        """
        validated: list[LocalTool] = []
        seen: set[str] = set()
        for tool in self.tools:
            if isinstance(tool, dict):
                if tool.get("type", "function") != "function":
                    raise errors.ToolSetupError(
                        f"Unsupported local tool type: {tool.get('type')!r}"
                    )
                try:
                    definition = api_types.ToolDefinition.from_dict(tool)
                except ValueError as e:
                    raise errors.ToolSetupError(str(e)) from e
            else:
                definition = tool

            if definition.name in seen:
                raise errors.ToolSetupError(f"Duplicate local tool name: {definition.name}")
            seen.add(definition.name)

            handler = self.handlers.get(definition.name)
            if handler is None:
                raise errors.ToolSetupError(f"Missing local tool handler: {definition.name}")
            if not callable(handler):
                raise errors.ToolSetupError(
                    f"Local tool handler is not callable: {definition.name}"
                )
            validated.append(LocalTool(definition=definition, handler=handler))
        return validated


@_dataclasses.dataclass
class ToolMetrics:
    """
    Metrics for a single tool's usage.

    Tracks call counts, durations, and success rates across a run.
    """

    tool_name: str
    call_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_duration_ms: float = 0.0
    last_used: str | None = None  # ISO timestamp

    @property
    def success_rate(self) -> float:
        """Success rate as a percentage (0.0 to 100.0)."""
        if self.call_count == 0:
            return 0.0
        return (self.success_count / self.call_count) * 100.0

    @property
    def average_duration_ms(self) -> float:
        if self.call_count == 0:
            return 0.0
        return self.total_duration_ms / self.call_count

    def record_call(self, success: bool, duration_ms: float) -> None:
        self.call_count += 1
        if success:
            self.success_count += 1
        else:
            self.failure_count += 1
        self.total_duration_ms += duration_ms
        self.last_used = _datetime.datetime.now(_datetime.UTC).isoformat()

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "tool_name": self.tool_name,
            "call_count": self.call_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "total_duration_ms": self.total_duration_ms,
            "average_duration_ms": self.average_duration_ms,
            "success_rate": self.success_rate,
            "last_used": self.last_used,
        }


class MetricsCollector:
    """Collects per-tool metrics for every call the executor makes."""

    def __init__(self) -> None:
        self._metrics: dict[str, ToolMetrics] = {}

    def record(self, tool_name: str, success: bool, duration_ms: float) -> None:
        if tool_name not in self._metrics:
            self._metrics[tool_name] = ToolMetrics(tool_name=tool_name)
        self._metrics[tool_name].record_call(success, duration_ms)

    def get(self, tool_name: str) -> ToolMetrics | None:
        return self._metrics.get(tool_name)

    def to_dict(self) -> dict[str, dict[str, _typing.Any]]:
        return {name: m.to_dict() for name, m in self._metrics.items()}

    def summary(self) -> dict[str, _typing.Any]:
        """Get a summary of all metrics."""
        total_calls = sum(m.call_count for m in self._metrics.values())
        total_success = sum(m.success_count for m in self._metrics.values())
        return {
            "total_calls": total_calls,
            "total_success": total_success,
            "total_failures": total_calls - total_success,
            "total_duration_ms": sum(m.total_duration_ms for m in self._metrics.values()),
            "tools_used": len(self._metrics),
        }
