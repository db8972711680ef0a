"""
Logging for agentloop.

Provides JSONL run logs for debugging and analysis, timed-operation
logging, and logger setup for applications.
"""

from agentloop.logging.conversation_logger import ConversationLogger
from agentloop.logging.helpers import configure_logging, log_timed

__all__ = ["ConversationLogger", "configure_logging", "log_timed"]
