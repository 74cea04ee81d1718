"""Configuration system for Mixclust.

This module provides a unified, hierarchical configuration system that
consolidates all settings into a single source of truth.

Configuration Sources (Priority Order):
1. Programmatic (highest) - Direct API calls and CLI flags
2. Environment Variables - MIXCLUST_* prefixed variables
3. Project Config - ./mixclust.toml (or --config PATH)
4. User Config - ~/.config/mixclust/config.toml (global)
5. Defaults (lowest) - Built-in defaults

Example Usage:
    from mixclust.config import load_config

    config = load_config()
    print(config.clustering.max_candidate_k)  # 10
    print(config.data.id_column)              # "id"

Environment Variables:
    All settings can be overridden with MIXCLUST_ prefixed variables:
    - MIXCLUST_CLUSTERING_RESTARTS=50
    - MIXCLUST_DATA_CATEGORICAL_COLUMNS=region,segment
    - MIXCLUST_LOGGING_LEVEL=DEBUG
"""

from ..clustering.cluster_config import ClusteringConfig
from .loader import (
    ConfigLoader,
    get_default_config,
    load_config,
    save_config,
)
from .logging_setup import configure_logging
from .schema import (
    DataConfig,
    LoggingConfig,
    LogLevel,
    MixclustConfig,
)
from .validation import (
    ConfigValidationError,
    ValidationError,
    ValidationResult,
    validate_config,
    validate_value,
)

__all__ = [
    # Main config class
    "MixclustConfig",
    # Section configs
    "ClusteringConfig",
    "DataConfig",
    "LoggingConfig",
    # Enums
    "LogLevel",
    # Loader
    "ConfigLoader",
    "load_config",
    "save_config",
    "get_default_config",
    # Logging
    "configure_logging",
    # Validation
    "validate_config",
    "validate_value",
    "ValidationError",
    "ValidationResult",
    "ConfigValidationError",
]
