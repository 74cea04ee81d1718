"""Configuration schema dataclasses for Mixclust.

This module defines all configuration options as typed dataclasses,
providing a single source of truth for default values and types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..clustering.cluster_config import ClusteringConfig


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class DataConfig:
    """Tabular input settings."""

    # Column excluded from clustering and kept as record identifier (empty = none)
    id_column: Optional[str] = "id"

    # Drop every row holding a missing value before clustering
    drop_missing: bool = False

    # Columns treated as categorical even when their values look numeric
    categorical_columns: list[str] = field(default_factory=list)

    delimiter: str = ","

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if len(self.delimiter) != 1:
            raise ValueError("delimiter must be a single character")
        if self.id_column == "":
            self.id_column = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id_column": self.id_column or "",
            "drop_missing": self.drop_missing,
            "categorical_columns": list(self.categorical_columns),
            "delimiter": self.delimiter,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DataConfig:
        """Create from dictionary."""
        return cls(
            id_column=data.get("id_column", "id"),
            drop_missing=data.get("drop_missing", False),
            categorical_columns=list(data.get("categorical_columns", [])),
            delimiter=data.get("delimiter", ","),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    file: Optional[str] = None
    console: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.level.upper() not in LogLevel.__members__:
            raise ValueError(
                f"level must be one of {', '.join(LogLevel.__members__)}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "level": self.level,
            "format": self.format,
            "file": self.file,
            "console": self.console,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoggingConfig:
        """Create from dictionary."""
        return cls(
            level=data.get("level", "INFO"),
            format=data.get(
                "format", "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
            ),
            file=data.get("file"),
            console=data.get("console", True),
        )


@dataclass
class MixclustConfig:
    """Main configuration container for Mixclust.

    Configuration is loaded from multiple sources with the following priority:
    1. Programmatic (highest) - Direct API calls and CLI flags
    2. Environment Variables - MIXCLUST_* prefixed
    3. Project Config - ./mixclust.toml or an explicit --config file
    4. User Config - ~/.config/mixclust/config.toml
    5. Defaults (lowest) - Built-in defaults
    """

    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    data: DataConfig = field(default_factory=DataConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "clustering": self.clustering.to_dict(),
            "data": self.data.to_dict(),
            "logging": self.logging.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MixclustConfig:
        """Create configuration from dictionary."""
        return cls(
            clustering=ClusteringConfig.from_dict(data.get("clustering", {})),
            data=DataConfig.from_dict(data.get("data", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    def get_nested(self, key: str, default: Any = None) -> Any:
        """Get a nested configuration value using dot notation.

        Args:
            key: Dot-separated key path (e.g., "clustering.restarts")
            default: Default value if key not found

        Returns:
            The configuration value or default
        """
        obj: Any = self
        for part in key.split("."):
            if hasattr(obj, part):
                obj = getattr(obj, part)
            else:
                return default
        return obj

    def set_nested(self, key: str, value: Any) -> None:
        """Set a nested configuration value using dot notation.

        Raises:
            KeyError: If the key does not name an existing setting
        """
        parts = key.split(".")
        obj: Any = self
        for part in parts[:-1]:
            if hasattr(obj, part):
                obj = getattr(obj, part)
            else:
                raise KeyError(f"Invalid configuration key: {key}")
        if not hasattr(obj, parts[-1]):
            raise KeyError(f"Invalid configuration key: {key}")
        setattr(obj, parts[-1], value)
