"""
Configuration module for agentloop.

Uses pydantic-settings for environment variable and YAML loading.
"""

from agentloop.config.settings import Settings
from agentloop.config.types import (
    HttpConfig,
    LoggingConfig,
    LoopConfig,
    McpServerConfig,
    ProviderInstanceConfig,
    ProvidersConfig,
    ToolsConfig,
)

__all__ = [
    "HttpConfig",
    "LoggingConfig",
    "LoopConfig",
    "McpServerConfig",
    "ProviderInstanceConfig",
    "ProvidersConfig",
    "Settings",
    "ToolsConfig",
]
