"""Configuration type definitions for agentloop settings.

These are the "config section" models nested within the main Settings
class. All sections use ``extra="allow"`` so unknown keys are kept and
can be audited with ``collect_all_extra_fields()``.
"""

import typing as _typing

import pydantic as _pydantic

import agentloop.constants as _constants


class ConfigBase(_pydantic.BaseModel):
    """Base class for all config types."""

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but are not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(self, prefix: str = "") -> dict[str, _typing.Any]:
        """
        Recursively collect extra fields from this config and nested configs.

        Returns a flat dict with dotted paths as keys, e.g.
        ``{"loop.max_loop": 3, "tools.mcp_servers.0.comand": "x"}``.
        Unknown keys usually mean a typo or an outdated config key.
        """
        result: dict[str, _typing.Any] = {}
        for key, value in self.get_extra_fields().items():
            result[f"{prefix}.{key}" if prefix else key] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            child_prefix = f"{prefix}.{field_name}" if prefix else field_name
            if isinstance(value, ConfigBase):
                result.update(value.collect_all_extra_fields(child_prefix))
            elif isinstance(value, list):
                for index, item in enumerate(value):
                    if isinstance(item, ConfigBase):
                        result.update(item.collect_all_extra_fields(f"{child_prefix}.{index}"))
        return result


class LoopConfig(ConfigBase):
    """
    Agent loop settings.

    YAML section: loop.*
    """

    max_loops: int = _pydantic.Field(default=_constants.DEFAULT_MAX_LOOPS, ge=1)
    """Maximum number of model requests in one run."""

    extra_events_after_tool_call: int = _pydantic.Field(
        default=_constants.MAX_EXTRA_EVENTS_AFTER_TOOL_CALL, ge=0
    )
    """Events read after an incomplete streamed tool call before proceeding."""

    stream: bool = True
    """Request streaming responses."""


class ProviderInstanceConfig(ConfigBase):
    """Settings for one vendor."""

    model: str
    endpoint: str
    api_key: _pydantic.SecretStr | None = None
    """API key. When unset, the vendor's usual environment variable is used."""


_PROVIDER_DEFAULTS: dict[str, dict[str, str]] = {
    "openai": {
        "model": _constants.DEFAULT_OPENAI_MODEL,
        "endpoint": _constants.DEFAULT_OPENAI_ENDPOINT,
    },
    "google": {
        "model": _constants.DEFAULT_GOOGLE_MODEL,
        "endpoint": _constants.DEFAULT_GOOGLE_ENDPOINT,
    },
}


class ProvidersConfig(ConfigBase):
    """
    Provider settings.

    YAML section: providers.*
    """

    default: _typing.Literal["openai", "google"] = _constants.DEFAULT_PROVIDER
    """Provider used when none is given explicitly."""

    openai: ProviderInstanceConfig = _pydantic.Field(
        default_factory=lambda: ProviderInstanceConfig(**_PROVIDER_DEFAULTS["openai"])
    )

    google: ProviderInstanceConfig = _pydantic.Field(
        default_factory=lambda: ProviderInstanceConfig(**_PROVIDER_DEFAULTS["google"])
    )

    @_pydantic.model_validator(mode="before")
    @classmethod
    def _fill_vendor_defaults(cls, data: _typing.Any) -> _typing.Any:
        # Partial sections (e.g. only a model override) keep the vendor endpoint.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name, defaults in _PROVIDER_DEFAULTS.items():
            section = data.get(name)
            if isinstance(section, dict):
                data[name] = {**defaults, **section}
        return data

    def get_provider_config(self, name: str) -> ProviderInstanceConfig:
        """Return the config for a provider by name.

        Raises:
            ValueError: If the provider is unknown.
        """
        if name == "openai":
            return self.openai
        if name in ("google", "gemini"):
            return self.google
        raise ValueError(f"Unknown provider: {name!r} (expected 'openai' or 'google')")


class HttpConfig(ConfigBase):
    """
    HTTP transport settings.

    YAML section: http.*
    """

    timeout: float = _pydantic.Field(default=_constants.DEFAULT_HTTP_TIMEOUT, gt=0)
    """Request timeout in seconds."""


class McpServerConfig(ConfigBase):
    """One remote MCP tool server."""

    name: str
    type: _typing.Literal["stdio", "sse", "streamable_http"] = "stdio"

    # stdio
    command: str | None = None
    args: list[str] = _pydantic.Field(default_factory=list)
    env: dict[str, str] | None = None

    # sse / streamable_http
    url: str | None = None
    headers: dict[str, str] | None = None

    allowed_tools: list[str] | None = None
    """If set, only these tools of the server are exposed to the model."""

    init_timeout: float = _pydantic.Field(default=_constants.DEFAULT_MCP_INIT_TIMEOUT, gt=0)

    @_pydantic.model_validator(mode="after")
    def _check_transport_fields(self) -> "McpServerConfig":
        if self.type == "stdio" and not self.command:
            raise ValueError(f"MCP server '{self.name}': stdio transport requires 'command'")
        if self.type in ("sse", "streamable_http") and not self.url:
            raise ValueError(f"MCP server '{self.name}': {self.type} transport requires 'url'")
        return self


class ToolsConfig(ConfigBase):
    """
    Tool settings.

    YAML section: tools.*
    """

    mcp_servers: list[McpServerConfig] = _pydantic.Field(default_factory=list)
    """Remote tool servers connected at the start of each run."""

    text_max_chars: int = _pydantic.Field(default=_constants.DEFAULT_TOOL_TEXT_MAX_CHARS, ge=1)
    """Text blocks of remote tool results are truncated beyond this length."""

    binary_max_chars: int = _pydantic.Field(
        default=_constants.DEFAULT_TOOL_BINARY_MAX_CHARS, ge=0
    )
    """Binary payloads of remote tool results longer than this are omitted."""


class LoggingConfig(ConfigBase):
    """
    Logging settings.

    YAML section: logging.*
    """

    level: _typing.Literal["debug", "info", "warning", "error"] = "warning"
    """Log level for the agentloop logger hierarchy."""

    enabled: bool = False
    """Write a JSONL event log for each run."""

    dir: str | None = None
    """Directory for JSONL run logs. None = use default."""

    private: bool = True
    """Lock log directory to owner-only (drwx------)."""
