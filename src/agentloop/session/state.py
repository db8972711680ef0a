"""
Per-run conversation state.

A vendor either resubmits the whole conversation on every request
(HistoryState) or resumes a server-side exchange by token and sends only
what is new (ContinuationState). An adapter uses exactly one of them.
"""

import dataclasses as _dataclasses
import typing as _typing


@_dataclasses.dataclass
class HistoryState:
    """Append-only list of vendor-shaped items resubmitted on each request."""

    items: list[dict[str, _typing.Any]] = _dataclasses.field(default_factory=list)
    system: str | None = None
    """System text sent alongside the history on every request."""

    def append(self, *items: dict[str, _typing.Any]) -> None:
        self.items.extend(items)


@_dataclasses.dataclass
class ContinuationState:
    """Server continuation token plus the input not yet sent."""

    token: str | None = None
    """Id of the last server response; None before the first request."""

    pending: list[dict[str, _typing.Any]] = _dataclasses.field(default_factory=list)
    """Items to send with the next request."""

    system: str | None = None
    """System text; servers do not carry it across continued responses."""


ConversationState = _typing.Union[HistoryState, ContinuationState]
