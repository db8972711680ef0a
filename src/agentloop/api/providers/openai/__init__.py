"""OpenAI Responses API adapter."""

from agentloop.api.providers.openai.adapter import OpenAIResponsesAdapter

__all__ = ["OpenAIResponsesAdapter"]
