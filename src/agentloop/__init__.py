"""
agentloop - streaming tool-calling agent runs

Runs a model in a loop with local and MCP tools against the OpenAI
Responses API or Google Gemini, streaming text as it arrives and
returning as soon as a complete tool call has been seen.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("agentloop")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)

from agentloop.agent import call_agent  # noqa: E402
from agentloop.api.types import GenerationOptions, ToolDefinition  # noqa: E402
from agentloop.config import McpServerConfig, Settings  # noqa: E402
from agentloop.core import AgentResult  # noqa: E402
from agentloop.errors import AgentLoopError, ToolSetupError  # noqa: E402
from agentloop.session import Thread  # noqa: E402
from agentloop.tools import LocalToolset  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "AgentLoopError",
    "AgentResult",
    "GenerationOptions",
    "LocalToolset",
    "McpServerConfig",
    "Settings",
    "Thread",
    "ToolDefinition",
    "ToolSetupError",
    "call_agent",
]
