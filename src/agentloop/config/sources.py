"""Custom pydantic-settings source for layered YAML configuration.

Configuration layers (in precedence order, highest first):
1. Environment variables (handled by pydantic-settings)
2. Explicit file: AGENTLOOP_CONFIG_FILE
3. Project config: .agentloop/config.yaml in the working directory
4. User config: ~/.config/agentloop/config.yaml (or AGENTLOOP_CONFIG_DIR)

Nested mappings merge across layers; other values override.
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic.fields as _pydantic_fields
import pydantic_settings as _pydantic_settings
import yaml as _yaml

ENV_CONFIG_DIR = "AGENTLOOP_CONFIG_DIR"
"""Environment variable overriding the user config directory."""

ENV_CONFIG_FILE = "AGENTLOOP_CONFIG_FILE"
"""Environment variable naming an explicit config file."""


class ConfigFileError(Exception):
    """Error loading or parsing a configuration file."""

    def __init__(self, path: _pathlib.Path, message: str) -> None:
        self.path = path
        super().__init__(f"Error in config file {path}: {message}")


def get_user_config_path() -> _pathlib.Path:
    """Path to the user config file, respecting AGENTLOOP_CONFIG_DIR."""
    config_dir_env = _os.environ.get(ENV_CONFIG_DIR)
    if config_dir_env:
        return _pathlib.Path(config_dir_env) / "config.yaml"
    return _pathlib.Path.home() / ".config" / "agentloop" / "config.yaml"


def get_project_config_path(project_root: _pathlib.Path) -> _pathlib.Path:
    return project_root / ".agentloop" / "config.yaml"


def deep_merge(
    base: dict[str, _typing.Any], override: dict[str, _typing.Any]
) -> dict[str, _typing.Any]:
    """Merge two mappings; nested dicts merge, anything else is replaced."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_yaml_file(path: _pathlib.Path) -> dict[str, _typing.Any] | None:
    """
    Load a YAML config file.

    Returns:
        Parsed mapping, or None if the file is empty.

    Raises:
        ConfigFileError: If the file cannot be read, is malformed YAML,
            or is not a mapping at the top level.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigFileError(path, f"cannot read file: {e}") from e

    try:
        parsed = _yaml.safe_load(content)
    except _yaml.YAMLError as e:
        raise ConfigFileError(path, f"invalid YAML: {e}") from e

    if parsed is None:
        return None
    if not isinstance(parsed, dict):
        raise ConfigFileError(
            path, f"config must be a YAML mapping (dict), got {type(parsed).__name__}"
        )
    return parsed


class LayeredYamlSettingsSource(_pydantic_settings.PydanticBaseSettingsSource):
    """Settings source merging the user, project and explicit YAML layers."""

    def __init__(
        self,
        settings_cls: type[_pydantic_settings.BaseSettings],
        project_root: _pathlib.Path | None = None,
        *,
        user_config_path: _pathlib.Path | None = None,
        config_file: _pathlib.Path | None = None,
    ) -> None:
        """
        Initialize the settings source.

        Args:
            settings_cls: The Settings class being populated.
            project_root: Directory holding ``.agentloop/config.yaml``.
            user_config_path: Override path for the user config (for testing).
            config_file: Explicit config file (defaults to AGENTLOOP_CONFIG_FILE).
        """
        super().__init__(settings_cls)
        self._project_root = project_root
        self._user_config_path = user_config_path
        if config_file is None and _os.environ.get(ENV_CONFIG_FILE):
            config_file = _pathlib.Path(_os.environ[ENV_CONFIG_FILE])
        self._config_file = config_file
        self._loaded_layers: list[tuple[str, _pathlib.Path]] = []
        self._merged = self._load_layers()

    def _load_layers(self) -> dict[str, _typing.Any]:
        candidates: list[tuple[str, _pathlib.Path, bool]] = [
            ("user", self._user_config_path or get_user_config_path(), False),
        ]
        if self._project_root is not None:
            candidates.append(("project", get_project_config_path(self._project_root), False))
        if self._config_file is not None:
            candidates.append(("explicit", self._config_file, True))

        merged: dict[str, _typing.Any] = {}
        for layer_name, path, required in candidates:
            if not path.exists():
                if required:
                    raise ConfigFileError(path, "file not found")
                continue
            content = load_yaml_file(path)
            if content:
                merged = deep_merge(merged, content)
                self._loaded_layers.append((layer_name, path))
        return merged

    def get_loaded_layers(self) -> list[tuple[str, _pathlib.Path]]:
        """Layers that were loaded, lowest precedence first."""
        return list(self._loaded_layers)

    def get_field_value(
        self,
        field: _pydantic_fields.FieldInfo,  # noqa: ARG002 - required by pydantic-settings interface
        field_name: str,
    ) -> tuple[_typing.Any, str, bool]:
        value = self._merged.get(field_name)
        return value, field_name, isinstance(value, (dict, list))

    def __call__(self) -> dict[str, _typing.Any]:
        return dict(self._merged)
