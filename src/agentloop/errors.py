"""
Exception hierarchy for agentloop.

Fatal conditions of an agent run are raised as subclasses of
AgentLoopError. Tool execution failures are never raised: they are
converted into error results and fed back to the model.
"""

import typing as _typing


class AgentLoopError(Exception):
    """Base class for all agentloop errors."""


class TransportError(AgentLoopError):
    """HTTP request failed or returned a non-2xx status.

    Carries the vendor status and body so callers can inspect the
    original error payload.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str | None = None,
        body: str | None = None,
        payload: _typing.Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body
        self.payload = payload


class ProviderResponseError(AgentLoopError):
    """The vendor returned something that cannot be used.

    Raised for empty or invalid JSON bodies, error events inside a
    stream, tool calls without an id, and invalid structured output.
    """

    def __init__(self, message: str, *, payload: _typing.Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class IncompleteResponseError(ProviderResponseError):
    """The vendor marked the response incomplete (e.g. max tokens)."""

    def __init__(self, reason: str, *, payload: _typing.Any = None) -> None:
        super().__init__(f"Response incomplete: {reason}", payload=payload)
        self.reason = reason


class IncompleteStreamError(AgentLoopError):
    """The event stream ended without a usable terminal event."""


class NoOutputTextError(AgentLoopError):
    """No text output could be found in the final response."""


class ToolSetupError(AgentLoopError):
    """The tool registry could not be built.

    Raised before any model request for name collisions, missing or
    invalid local handlers, and remote servers that fail to connect.
    """


class RunAbortedError(AgentLoopError):
    """The caller's abort signal fired while the run was in flight."""


class UnknownToolError(AgentLoopError, LookupError):
    """The model called a tool that is not in the registry.

    Converted into an error result like any other tool failure.
    """
