"""Conversation threads and per-run conversation state."""

from agentloop.session.state import ContinuationState, ConversationState, HistoryState
from agentloop.session.thread import (
    ConversationStore,
    RequestContext,
    Thread,
    generate_thread_id,
    normalize_input,
)

__all__ = [
    "ContinuationState",
    "ConversationState",
    "ConversationStore",
    "HistoryState",
    "RequestContext",
    "Thread",
    "generate_thread_id",
    "normalize_input",
]
