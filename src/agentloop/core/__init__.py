"""
Core run logic for agentloop.

The agent loop and tool execution are vendor-neutral: they work against
agentloop.api.base.ProviderAdapter and agentloop.tools.ToolRegistry.
"""

from agentloop.core.loop import AgentLoop, AgentResult, LoopState, ProgressCallback
from agentloop.core.tool_executor import (
    ToolExecutor,
    format_error_output,
    format_local_output,
)

__all__ = [
    # Loop
    "AgentLoop",
    "AgentResult",
    "LoopState",
    "ProgressCallback",
    # Tool execution
    "ToolExecutor",
    "format_error_output",
    "format_local_output",
]
