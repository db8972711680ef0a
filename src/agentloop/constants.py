"""
Shared constants for agentloop.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Provider/Model defaults
DEFAULT_PROVIDER = "openai"
"""Default vendor adapter."""

DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"
"""Default model for the OpenAI Responses API."""

DEFAULT_GOOGLE_MODEL = "gemini-2.5-flash"
"""Default model for the Gemini API."""

DEFAULT_OPENAI_ENDPOINT = "https://api.openai.com/v1"
"""Base URL for the OpenAI Responses API (``/responses`` is appended)."""

DEFAULT_GOOGLE_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models"
"""Base URL for Gemini models (``/{model}:{method}`` is appended)."""

# Agent loop defaults
DEFAULT_MAX_LOOPS = 10
"""Default maximum number of model requests in one agent run."""

MAX_EXTRA_EVENTS_AFTER_TOOL_CALL = 3
"""Events read after an incomplete tool call before giving up on more.

Some streams emit a function call in a non-terminal event and follow it
with events carrying only usage or a finish reason. When the call's
arguments are not yet a complete object, at most this many further
events are read before the last captured call is used.
"""

DEFAULT_HTTP_TIMEOUT = 600.0
"""Default HTTP timeout in seconds for model requests."""

DEFAULT_MCP_INIT_TIMEOUT = 30.0
"""Seconds to wait for an MCP server to finish its initialize handshake."""

# Tool result sanitization
DEFAULT_TOOL_TEXT_MAX_CHARS = 12_000
"""Maximum characters kept from a single text block of a remote tool result.

Longer text is truncated and the original length is recorded in the
sanitizer metadata so the model knows output was cut.
"""

DEFAULT_TOOL_BINARY_MAX_CHARS = 2_000
"""Base64 payloads longer than this are omitted from remote tool results."""

BINARY_SAMPLE_CHARS = 64_000
"""Leading characters of an omitted binary payload that are fingerprinted."""

# Error preview lengths
ERROR_BODY_PREVIEW_CHARS = 2_000
"""Characters of an unparseable response body included in error messages."""
