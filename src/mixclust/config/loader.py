"""Configuration loader for Mixclust.

This module handles loading configuration from multiple sources:
1. Default values (lowest priority)
2. User config file (~/.config/mixclust/config.toml)
3. Project config file (./mixclust.toml, or an explicit path)
4. Environment variables (MIXCLUST_* prefix)
5. Programmatic overrides (highest priority)
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

import tomli_w

from .schema import MixclustConfig
from .validation import ConfigValidationError, validate_config

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

# Default paths
USER_CONFIG_DIR = Path.home() / ".config" / "mixclust"
USER_CONFIG_PATH = USER_CONFIG_DIR / "config.toml"
PROJECT_CONFIG_NAME = "mixclust.toml"
ENV_PREFIX = "MIXCLUST_"

# Known section names (first level)
SECTIONS = {"clustering", "data", "logging"}

# Settings given as comma-separated lists in environment variables
LIST_KEYS = {"categorical_columns"}


def _parse_env_value(value: str) -> Any:
    """Parse an environment variable value to appropriate Python type."""
    # Handle booleans
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    # Handle None
    if value.lower() in ("none", "null", ""):
        return None

    # Try numeric types
    try:
        if "." in value or "e" in value.lower():
            return float(value)
        return int(value)
    except ValueError:
        pass

    # Return as string
    return value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class ConfigLoader:
    """Load configuration from multiple sources with priority handling."""

    def __init__(
        self,
        project_path: Optional[Path] = None,
        user_config_path: Optional[Path] = None,
        config_file: Optional[Path] = None,
    ):
        """Initialize the configuration loader.

        Args:
            project_path: Directory searched for mixclust.toml (default: cwd)
            user_config_path: Optional override for user config path
            config_file: Explicit project config file, replaces mixclust.toml
        """
        self.project_path = Path(project_path) if project_path else Path.cwd()
        self.user_config_path = Path(user_config_path) if user_config_path else USER_CONFIG_PATH
        self.config_file = Path(config_file) if config_file else None

    @property
    def project_config_path(self) -> Path:
        if self.config_file is not None:
            return self.config_file
        return self.project_path / PROJECT_CONFIG_NAME

    def load(self) -> MixclustConfig:
        """Load configuration from all sources with priority handling.

        Priority (highest to lowest):
        1. Environment variables (MIXCLUST_*)
        2. Project config (./mixclust.toml or the explicit file)
        3. User config (~/.config/mixclust/config.toml)
        4. Default values

        Returns:
            Merged MixclustConfig instance

        Raises:
            FileNotFoundError: If an explicit config file does not exist
        """
        if self.config_file is not None and not self.config_file.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_file}")

        # Start with defaults
        config_dict: dict[str, Any] = {}

        # Load user config
        if self.user_config_path.exists():
            user_data = self._load_toml(self.user_config_path)
            if user_data:
                config_dict = _deep_merge(config_dict, user_data)
                logger.debug(f"Loaded user config from {self.user_config_path}")

        # Load project config
        project_config_path = self.project_config_path
        if project_config_path.exists():
            project_data = self._load_toml(project_config_path)
            if project_data:
                config_dict = _deep_merge(config_dict, project_data)
                logger.debug(f"Loaded project config from {project_config_path}")

        # Apply environment variable overrides
        env_overrides = self._load_env_vars()
        if env_overrides:
            config_dict = _deep_merge(config_dict, env_overrides)
            logger.debug("Applied environment variable overrides")

        return MixclustConfig.from_dict(config_dict)

    def _load_toml(self, path: Path) -> Optional[dict[str, Any]]:
        """Load a TOML configuration file.

        Args:
            path: Path to the TOML file

        Returns:
            Parsed configuration dict or None if failed
        """
        try:
            with open(path, "rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Failed to load TOML config from {path}: {e}")
            return None

    def _load_env_vars(self) -> dict[str, Any]:
        """Load configuration from environment variables.

        Environment variables are prefixed with MIXCLUST_ and use underscores
        to separate the section from the key. For example:
        - MIXCLUST_CLUSTERING_MAX_CANDIDATE_K -> clustering.max_candidate_k
        - MIXCLUST_DATA_ID_COLUMN -> data.id_column

        Returns:
            Configuration dictionary from environment variables
        """
        result: dict[str, Any] = {}

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            parts = key[len(ENV_PREFIX):].lower().split("_")
            nested = self._build_nested_dict(parts, value)
            result = _deep_merge(result, nested)

        return result

    def _build_nested_dict(self, parts: list[str], raw_value: str) -> dict[str, Any]:
        """Build a nested dictionary from key parts.

        The first part names the section; the remaining parts are joined back
        with underscores to form the key, since keys contain underscores too.

        Args:
            parts: List of key parts from splitting on underscores
            raw_value: Unparsed environment variable value

        Returns:
            Nested dictionary, empty for unknown sections
        """
        if len(parts) < 2 or parts[0] not in SECTIONS:
            logger.debug(f"Ignoring environment variable for unknown setting: {'_'.join(parts)}")
            return {}

        key = "_".join(parts[1:])
        if key in LIST_KEYS:
            value: Any = [item.strip() for item in raw_value.split(",") if item.strip()]
        else:
            value = _parse_env_value(raw_value)
        return {parts[0]: {key: value}}

    def save_project_config(self, config: MixclustConfig) -> Path:
        """Save configuration to the project config file.

        Args:
            config: Configuration to save

        Returns:
            Path written
        """
        config_path = self.project_config_path
        config_path.parent.mkdir(parents=True, exist_ok=True)
        self._save_toml(config_path, config.to_dict())
        logger.info(f"Saved project config to {config_path}")
        return config_path

    def save_user_config(self, config: MixclustConfig) -> Path:
        """Save configuration to the user config file.

        Args:
            config: Configuration to save

        Returns:
            Path written
        """
        self.user_config_path.parent.mkdir(parents=True, exist_ok=True)
        self._save_toml(self.user_config_path, config.to_dict())
        logger.info(f"Saved user config to {self.user_config_path}")
        return self.user_config_path

    def _save_toml(self, path: Path, data: dict[str, Any]) -> None:
        """Save configuration as TOML.

        Args:
            path: Path to save to
            data: Configuration data
        """
        # TOML has no null; unset values fall back to defaults on load
        filtered_data = self._filter_none_values(data)
        with open(path, "wb") as f:
            tomli_w.dump(filtered_data, f)

    def _filter_none_values(self, data: dict[str, Any]) -> dict[str, Any]:
        """Recursively filter out None values from a dictionary."""
        result = {}
        for key, value in data.items():
            if value is None:
                continue
            elif isinstance(value, dict):
                filtered = self._filter_none_values(value)
                if filtered:
                    result[key] = filtered
            else:
                result[key] = value
        return result


def load_config(
    project_path: Optional[Path] = None,
    user_config_path: Optional[Path] = None,
    config_file: Optional[Path] = None,
) -> MixclustConfig:
    """Load Mixclust configuration from all sources.

    This is the main entry point for loading configuration.

    Args:
        project_path: Optional directory holding mixclust.toml
        user_config_path: Optional override for user config path
        config_file: Optional explicit project config file

    Returns:
        Merged MixclustConfig instance
    """
    loader = ConfigLoader(project_path, user_config_path, config_file)
    return loader.load()


def get_default_config() -> MixclustConfig:
    """Get a MixclustConfig with all default values.

    Returns:
        MixclustConfig with defaults
    """
    return MixclustConfig()


def save_config(config: MixclustConfig, path: Path) -> Path:
    """Validate and write a configuration as TOML.

    Args:
        config: Configuration to save
        path: Destination file

    Returns:
        Path written

    Raises:
        ConfigValidationError: If the configuration is invalid
    """
    result = validate_config(config)
    if not result.valid:
        raise ConfigValidationError(
            "Refusing to save invalid configuration", result.errors, result.warnings
        )
    return ConfigLoader(config_file=Path(path)).save_project_config(config)
