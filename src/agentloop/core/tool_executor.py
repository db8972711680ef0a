"""
Tool execution for the agent loop.

ToolExecutor runs the batch of tool calls from one model response. The
calls run concurrently; every call produces exactly one result, in the
order the calls were given. A failing call yields a structured error
result for the model instead of raising.
"""

import asyncio as _asyncio
import inspect as _inspect
import json as _json
import logging as _logging
import time as _time
import typing as _typing

import agentloop.api.types as api_types
import agentloop.constants as _constants
import agentloop.errors as errors
import agentloop.logging as agentloop_logging
import agentloop.tools.base as tools_base
import agentloop.tools.registry as tools_registry
import agentloop.tools.results as tools_results

_logger = _logging.getLogger(__name__)


def format_local_output(value: _typing.Any) -> str:
    """Strings pass through; None becomes ``{"ok": true}``; the rest is JSON."""
    if isinstance(value, str):
        return value
    if value is None:
        value = {"ok": True}
    return _json.dumps(value, ensure_ascii=False, default=str)


def format_error_output(error: BaseException) -> str:
    return _json.dumps(
        {"ok": False, "error": {"name": type(error).__name__, "message": str(error)}},
        ensure_ascii=False,
    )


class ToolExecutor:
    """
    Executes tool calls against a registry.

    Tool metrics are always collected during execution.
    """

    def __init__(
        self,
        registry: tools_registry.ToolRegistry,
        *,
        logger: agentloop_logging.ConversationLogger | None = None,
        text_max_chars: int = _constants.DEFAULT_TOOL_TEXT_MAX_CHARS,
        binary_max_chars: int = _constants.DEFAULT_TOOL_BINARY_MAX_CHARS,
    ) -> None:
        """
        Initialize the tool executor.

        Args:
            registry: Tools available to the run.
            logger: Optional JSONL run logger.
            text_max_chars: Truncation limit for remote result text blocks.
            binary_max_chars: Omission threshold for remote binary payloads.
        """
        self._registry = registry
        self._logger = logger
        self._text_max_chars = text_max_chars
        self._binary_max_chars = binary_max_chars
        self._metrics = tools_base.MetricsCollector()

    @property
    def metrics(self) -> tools_base.MetricsCollector:
        return self._metrics

    async def execute_batch(
        self, calls: _typing.Sequence[api_types.ToolCall]
    ) -> list[api_types.ToolResult]:
        """Run all calls concurrently; results come back in call order."""
        if not calls:
            return []
        return list(await _asyncio.gather(*(self.execute(call) for call in calls)))

    async def execute(self, call: api_types.ToolCall) -> api_types.ToolResult:
        """
        Execute a single tool call.

        Args:
            call: The normalized call from the model.

        Returns:
            The result; errors are reported in it rather than raised.
        """
        arguments = call.parsed_arguments()
        if self._logger:
            self._logger.log_tool_call(call.name, arguments, tool_id=call.call_id)
        _logger.debug("tool.call.request %s (%s) %s", call.name, call.call_id, arguments)

        start_time = _time.perf_counter()
        try:
            async with agentloop_logging.log_timed(
                _logger, "tool.call", tool=call.name, call_id=call.call_id
            ):
                output, is_error = await self._dispatch(call.name, arguments)
        except Exception as e:
            output, is_error = format_error_output(e), True

        duration_ms = (_time.perf_counter() - start_time) * 1000
        self._metrics.record(call.name, not is_error, duration_ms)
        if self._logger:
            self._logger.log_tool_result(
                call.name,
                success=not is_error,
                output=output,
                tool_id=call.call_id,
                duration_ms=duration_ms,
            )
        return api_types.ToolResult(
            call_id=call.call_id, name=call.name, output=output, is_error=is_error
        )

    async def _dispatch(self, name: str, arguments: dict[str, _typing.Any]) -> tuple[str, bool]:
        local = self._registry.get_local(name)
        if local is not None:
            value = local.handler(arguments)
            if _inspect.isawaitable(value):
                value = await value
            return format_local_output(value), False

        remote = self._registry.get_remote(name)
        if remote is not None:
            raw = await remote.client.call_tool(name, arguments)
            sanitized = tools_results.sanitize_tool_result(
                raw,
                text_max_chars=self._text_max_chars,
                binary_max_chars=self._binary_max_chars,
            )
            if sanitized.changed:
                _logger.debug("Sanitized result of remote tool %s", name)
            is_error = isinstance(raw, dict) and bool(raw.get("isError"))
            if isinstance(sanitized.sanitized, str):
                return sanitized.sanitized, is_error
            return _json.dumps(sanitized.sanitized, ensure_ascii=False, default=str), is_error

        raise errors.UnknownToolError(f"Unknown tool: {name}")
