"""Google Gemini adapter."""

from agentloop.api.providers.google.adapter import GeminiAdapter

__all__ = ["GeminiAdapter"]
