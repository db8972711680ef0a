"""
Adapter factory.

Creates the vendor adapter for a provider name, taking model, endpoint
and API key from Settings unless they are given explicitly.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import agentloop.api.base as base
import agentloop.api.providers.google as google
import agentloop.api.providers.openai as openai

if _typing.TYPE_CHECKING:
    import agentloop.config as config

_logger = _logging.getLogger(__name__)

PROVIDER_ADAPTERS: dict[str, type[base.ProviderAdapter]] = {
    "openai": openai.OpenAIResponsesAdapter,
    "google": google.GeminiAdapter,
}
"""Adapter classes by provider name."""

PROVIDER_ALIASES: dict[str, str] = {"gemini": "google"}

PROVIDER_KEY_ENV_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
}


def normalize_provider(provider: str) -> str:
    """
    Resolve a provider name or alias.

    Raises:
        ValueError: If the provider is unknown.
    """
    name = PROVIDER_ALIASES.get(provider.lower(), provider.lower())
    if name not in PROVIDER_ADAPTERS:
        available = ", ".join(sorted(PROVIDER_ADAPTERS))
        raise ValueError(f"Unknown provider: {provider!r}. Available: {available}")
    return name


def create_adapter(
    provider: str | None = None,
    settings: config.Settings | None = None,
    *,
    model: str | None = None,
    api_key: str | None = None,
    endpoint: str | None = None,
) -> base.ProviderAdapter:
    """
    Create a vendor adapter.

    Args:
        provider: Provider name ("openai", "google"); defaults to the
            settings' default provider.
        settings: Settings to read model, endpoint and key from.
        model: Model override.
        api_key: API key override.
        endpoint: Endpoint override.

    Returns:
        The adapter instance.

    Raises:
        ValueError: If the provider is unknown.
    """
    if settings is None:
        import agentloop.config as config

        settings = config.Settings()

    name = normalize_provider(provider or settings.providers.default)
    section = settings.providers.get_provider_config(name)
    key = api_key if api_key is not None else settings.get_api_key(name)
    if key is None:
        _logger.warning("No API key configured for provider '%s'", name)

    return PROVIDER_ADAPTERS[name](
        model=model or section.model,
        api_key=key,
        endpoint=endpoint or section.endpoint,
    )


def get_available_providers(settings: config.Settings) -> list[dict[str, _typing.Any]]:
    """Describe each provider and whether a key is configured."""
    return [
        {
            "name": name,
            "default_model": settings.providers.get_provider_config(name).model,
            "endpoint": settings.providers.get_provider_config(name).endpoint,
            "key_env_var": PROVIDER_KEY_ENV_VARS[name],
            "key_configured": settings.get_api_key(name) is not None,
        }
        for name in PROVIDER_ADAPTERS
    ]
