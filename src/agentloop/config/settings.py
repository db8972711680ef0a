"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with AGENTLOOP_ prefix
3. .env file (if AGENTLOOP_ENV_FILE names one)
4. Layered YAML config files (see agentloop.config.sources)

Nested config uses double underscore delimiter:
  AGENTLOOP_LOOP__MAX_LOOPS=5
  AGENTLOOP_PROVIDERS__GOOGLE__MODEL=gemini-2.5-pro

A Settings instance is passed explicitly to call_agent() and the
adapter factory; nothing in agentloop reads or mutates process-wide
state after it is constructed.
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import agentloop.config.sources as sources
import agentloop.config.types as types


def _get_env_file() -> str | None:
    """Return AGENTLOOP_ENV_FILE if it names an existing file."""
    env_file = _os.environ.get("AGENTLOOP_ENV_FILE")
    if env_file and _pathlib.Path(env_file).exists():
        return env_file
    return None


class Settings(_pydantic_settings.BaseSettings):
    """Application settings."""

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="AGENTLOOP_",
        env_nested_delimiter="__",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        extra="allow",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args), highest
        2. env_settings (AGENTLOOP_* env vars)
        3. dotenv_settings (.env file)
        4. YAML layers
        5. defaults via Field definitions, lowest
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.LayeredYamlSettingsSource(settings_cls, _pathlib.Path.cwd()),
            file_secret_settings,
        )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings without loading a .env file (test isolation)."""
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    # =========================================================================
    # Nested config sections
    # =========================================================================

    loop: types.LoopConfig = _pydantic.Field(default_factory=types.LoopConfig)
    """Agent loop settings (max_loops, streaming)."""

    providers: types.ProvidersConfig = _pydantic.Field(default_factory=types.ProvidersConfig)
    """Provider settings (default provider, per-provider model and endpoint)."""

    http: types.HttpConfig = _pydantic.Field(default_factory=types.HttpConfig)
    """HTTP transport settings."""

    tools: types.ToolsConfig = _pydantic.Field(default_factory=types.ToolsConfig)
    """Tool settings (MCP servers, result limits)."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Logging settings."""

    # =========================================================================
    # API keys (loaded from the vendors' usual env vars, without prefix)
    # =========================================================================

    openai_api_key: _pydantic.SecretStr | None = _pydantic.Field(
        default=None,
        description="OpenAI API key",
        validation_alias="OPENAI_API_KEY",
    )

    google_api_key: _pydantic.SecretStr | None = _pydantic.Field(
        default=None,
        description="Google Gemini API key",
        validation_alias=_pydantic.AliasChoices("GOOGLE_API_KEY", "GEMINI_API_KEY"),
    )

    @property
    def provider(self) -> str:
        """Default provider (alias to providers.default)."""
        return self.providers.default

    @property
    def max_loops(self) -> int:
        """Loop limit (alias to loop.max_loops)."""
        return self.loop.max_loops

    def get_api_key(self, provider: str | None = None) -> str | None:
        """
        Get the API key for a provider.

        A key in the provider's config section wins over the vendor's
        environment variable.

        Args:
            provider: Provider name; defaults to providers.default.

        Returns:
            The key, or None if none is configured.
        """
        name = provider or self.providers.default
        section = self.providers.get_provider_config(name)
        if section.api_key is not None:
            return section.api_key.get_secret_value()
        flat = self.openai_api_key if name == "openai" else self.google_api_key
        return flat.get_secret_value() if flat is not None else None

    def collect_all_extra_fields(self) -> dict[str, _typing.Any]:
        """
        Collect unknown keys from every config section as dotted paths.

        Top-level extras are not reported: pydantic-settings keeps every
        ``AGENTLOOP_*`` variable there, including the config-location ones.
        """
        result: dict[str, _typing.Any] = {}
        for field_name in ("loop", "providers", "http", "tools", "logging"):
            section: types.ConfigBase = getattr(self, field_name)
            result.update(section.collect_all_extra_fields(prefix=field_name))
        return result
