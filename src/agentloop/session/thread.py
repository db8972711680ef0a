"""
Conversation threads.

A Thread keeps a conversation across agent runs: the vendor-neutral
history of messages, tool calls and tool outputs, plus the server
continuation token for vendors that support one. The agent loop only
talks to the ConversationStore protocol, so callers may plug in their
own persistence.
"""

from __future__ import annotations

import copy as _copy
import dataclasses as _dataclasses
import datetime as _datetime
import json as _json
import pathlib as _pathlib
import secrets as _secrets
import string as _string
import typing as _typing

import agentloop.api.types as api_types


def generate_thread_id() -> str:
    """Generate a thread ID (12 character lowercase alphanumeric)."""
    alphabet = _string.ascii_lowercase + _string.digits
    return "".join(_secrets.choice(alphabet) for _ in range(12))


def normalize_input(items: _typing.Sequence[api_types.InputItem] | str) -> list[api_types.Message]:
    """Turn caller input into a list of message dicts.

    A bare string, or a string inside the list, becomes a user message.
    """
    if isinstance(items, str):
        items = [items]
    normalized: list[api_types.Message] = []
    for item in items:
        if isinstance(item, str):
            normalized.append({"role": "user", "content": item})
        elif isinstance(item, dict):
            normalized.append(dict(item))
        else:
            raise TypeError(f"Unsupported input item: {type(item).__name__}")
    return normalized


@_dataclasses.dataclass
class RequestContext:
    """What to send on the first request of a run."""

    input: list[api_types.Message]
    continuation_token: str | None = None


@_typing.runtime_checkable
class ConversationStore(_typing.Protocol):
    """Persisted conversation boundary used by the agent loop."""

    def append_to_history(self, items: _typing.Sequence[api_types.Message]) -> None: ...

    def update_continuation_token(self, token: str | None) -> None: ...

    def build_request_context(
        self, next_input: _typing.Sequence[api_types.InputItem] | str
    ) -> RequestContext: ...


@_dataclasses.dataclass
class Thread:
    """
    In-memory conversation thread.

    History items use the Responses API item shapes:
    ``{"role", "content"}`` messages, ``{"type": "function_call", ...}``
    and ``{"type": "function_call_output", ...}``. Items are copied on
    the way in and out, so callers cannot mutate stored history.
    """

    id: str = _dataclasses.field(default_factory=generate_thread_id)
    continuation_token: str | None = None
    history: list[api_types.Message] = _dataclasses.field(default_factory=list)
    updated_at: str = _dataclasses.field(
        default_factory=lambda: _datetime.datetime.now(_datetime.UTC).isoformat()
    )

    def _touch(self) -> None:
        self.updated_at = _datetime.datetime.now(_datetime.UTC).isoformat()

    def append_to_history(self, items: _typing.Sequence[api_types.Message]) -> None:
        """Append items to the end of the history."""
        if not items:
            return
        self.history.extend(_copy.deepcopy(list(items)))
        self._touch()

    def get_history(self) -> list[api_types.Message]:
        return _copy.deepcopy(self.history)

    def set_history(self, items: _typing.Sequence[api_types.Message]) -> None:
        self.history = _copy.deepcopy(list(items))
        self._touch()

    def update_continuation_token(self, token: str | None) -> None:
        """Record the latest server response id. Empty values are ignored."""
        if not token:
            return
        self.continuation_token = token
        self._touch()

    def build_request_context(
        self, next_input: _typing.Sequence[api_types.InputItem] | str
    ) -> RequestContext:
        """
        Record the next input and return what the first request should send.

        With a continuation token the server already holds the earlier
        turns, so only the new input is sent. Without one the whole
        history (now including the new input) is sent.
        """
        new_items = normalize_input(next_input)
        self.append_to_history(new_items)
        if self.continuation_token:
            return RequestContext(
                input=_copy.deepcopy(new_items),
                continuation_token=self.continuation_token,
            )
        return RequestContext(input=self.get_history())

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "continuation_token": self.continuation_token,
            "history": _copy.deepcopy(self.history),
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, _typing.Any]) -> Thread:
        """Create from dictionary."""
        kwargs: dict[str, _typing.Any] = {
            "continuation_token": data.get("continuation_token"),
            "history": _copy.deepcopy(list(data.get("history") or [])),
        }
        if data.get("id"):
            kwargs["id"] = data["id"]
        if data.get("updated_at"):
            kwargs["updated_at"] = data["updated_at"]
        return cls(**kwargs)

    def to_json(self) -> str:
        return _json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> Thread:
        return cls.from_dict(_json.loads(text))

    def save(self, path: _pathlib.Path) -> None:
        """Write the thread to a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(_json.dumps(self.to_dict(), indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: _pathlib.Path) -> Thread:
        """Load a thread from a JSON file."""
        return cls.from_json(path.read_text(encoding="utf-8"))
