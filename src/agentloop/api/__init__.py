"""
Vendor APIs for agentloop.

Provides a single adapter interface over the supported vendors:
- OpenAI Responses API (server-side conversation continuation)
- Google Gemini generateContent (client-side history, early tool-call return)

The HTTP transport, the schema sanitizer and the vendor-neutral types
used by the agent loop live here as well.
"""

from agentloop.api.types import (
    GenerationOptions,
    InputItem,
    Message,
    ModelTurn,
    StreamEvent,
    ToolCall,
    ToolDefinition,
    ToolResult,
    Usage,
)

__all__ = [
    # Types
    "GenerationOptions",
    "InputItem",
    "Message",
    "ModelTurn",
    "StreamEvent",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    "Usage",
    # Lazily loaded
    "GeminiAdapter",
    "HttpTransport",
    "OpenAIResponsesAdapter",
    "ProviderAdapter",
    "create_adapter",
    "get_available_providers",
    "sanitize_schema",
]


import typing as _typing


# Lazy imports: adapters depend on agentloop.session, which imports the types above
def __getattr__(name: str) -> _typing.Any:
    if name == "ProviderAdapter":
        from agentloop.api.base import ProviderAdapter

        return ProviderAdapter
    if name == "OpenAIResponsesAdapter":
        from agentloop.api.providers.openai import OpenAIResponsesAdapter

        return OpenAIResponsesAdapter
    if name == "GeminiAdapter":
        from agentloop.api.providers.google import GeminiAdapter

        return GeminiAdapter
    if name == "HttpTransport":
        from agentloop.api.transport import HttpTransport

        return HttpTransport
    if name in ("create_adapter", "get_available_providers"):
        import agentloop.api.factory as factory

        return getattr(factory, name)
    if name == "sanitize_schema":
        from agentloop.api.schema import sanitize_schema

        return sanitize_schema
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
