"""Configuration validation for Mixclust.

This module provides validation utilities for configuration values.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .schema import LogLevel, MixclustConfig


@dataclass
class ValidationError:
    """Represents a configuration validation error."""

    key: str
    message: str
    value: Any = None

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.key}: {self.message} (got: {self.value!r})"
        return f"{self.key}: {self.message}"


@dataclass
class ValidationResult:
    """Result of configuration validation."""

    valid: bool
    errors: list[ValidationError]
    warnings: list[ValidationError]

    def __bool__(self) -> bool:
        return self.valid


class ConfigValidationError(Exception):
    """Raised when configuration validation fails during a save operation.

    Attributes:
        errors: List of ValidationError objects describing what failed
        warnings: List of ValidationError objects for non-fatal issues
    """

    def __init__(
        self,
        message: str,
        errors: list[ValidationError],
        warnings: Optional[list[ValidationError]] = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors
        self.warnings = warnings or []

    def __str__(self) -> str:
        lines = [super().__str__()]
        if self.errors:
            lines.append("Errors:")
            for error in self.errors:
                lines.append(f"  - {error}")
        if self.warnings:
            lines.append("Warnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")
        return "\n".join(lines)


def validate_config(config: MixclustConfig) -> ValidationResult:
    """Validate a configuration instance.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with errors and warnings
    """
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []

    _validate_clustering(config, errors, warnings)
    _validate_data(config, errors, warnings)
    _validate_logging(config, errors, warnings)

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _validate_clustering(
    config: MixclustConfig,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    """Validate clustering configuration."""
    clustering = config.clustering

    for key, message in clustering.validation_errors().items():
        errors.append(
            ValidationError(f"clustering.{key}", message, getattr(clustering, key))
        )

    if (
        clustering.chosen_k is not None
        and clustering.chosen_k >= 1
        and clustering.chosen_k > clustering.max_candidate_k
    ):
        warnings.append(
            ValidationError(
                "clustering.chosen_k",
                "is larger than max_candidate_k and was never scored by the advisor",
                clustering.chosen_k,
            )
        )

    if clustering.compute_gap and 1 <= clustering.reference_resamples < 10:
        warnings.append(
            ValidationError(
                "clustering.reference_resamples",
                "few reference datasets give a noisy gap statistic",
                clustering.reference_resamples,
            )
        )

    if 1 <= clustering.restarts < 5:
        warnings.append(
            ValidationError(
                "clustering.restarts",
                "few restarts make k-prototypes sensitive to initialization",
                clustering.restarts,
            )
        )


def _validate_data(
    config: MixclustConfig,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    """Validate tabular input configuration."""
    data = config.data

    if len(data.delimiter) != 1:
        errors.append(
            ValidationError("data.delimiter", "must be a single character", data.delimiter)
        )

    if data.id_column is not None and data.id_column in data.categorical_columns:
        warnings.append(
            ValidationError(
                "data.categorical_columns",
                "lists the identifier column, which is never clustered on",
                data.id_column,
            )
        )


def _validate_logging(
    config: MixclustConfig,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    """Validate logging configuration."""
    logging_cfg = config.logging

    valid_levels = set(LogLevel.__members__)
    if logging_cfg.level.upper() not in valid_levels:
        errors.append(
            ValidationError(
                "logging.level",
                f"must be one of {sorted(valid_levels)}",
                logging_cfg.level,
            )
        )

    if logging_cfg.file and not Path(logging_cfg.file).expanduser().parent.exists():
        warnings.append(
            ValidationError(
                "logging.file",
                "parent directory does not exist and will be created",
                logging_cfg.file,
            )
        )


def validate_value(key: str, value: Any) -> Optional[ValidationError]:
    """Validate a single configuration value.

    Args:
        key: Configuration key (dot notation)
        value: Value to validate

    Returns:
        ValidationError if invalid, None if valid
    """
    validators = {
        "clustering.max_candidate_k": lambda v: (
            None if v >= 2 else ValidationError(key, "must be at least 2", v)
        ),
        "clustering.chosen_k": lambda v: (
            None if v is None or v >= 1 else ValidationError(key, "must be at least 1", v)
        ),
        "clustering.restarts": lambda v: (
            None if v >= 1 else ValidationError(key, "must be at least 1", v)
        ),
        "clustering.max_iterations": lambda v: (
            None if v >= 1 else ValidationError(key, "must be at least 1", v)
        ),
        "clustering.reference_resamples": lambda v: (
            None if v >= 1 else ValidationError(key, "must be at least 1", v)
        ),
        "clustering.balancing_weight": lambda v: (
            None if v is None or v >= 0 else ValidationError(key, "must be non-negative", v)
        ),
        "clustering.parallel_workers": lambda v: (
            None
            if v == -1 or v >= 1
            else ValidationError(key, "must be -1 or a positive integer", v)
        ),
        "data.delimiter": lambda v: (
            None if len(v) == 1 else ValidationError(key, "must be a single character", v)
        ),
        "logging.level": lambda v: (
            None
            if v.upper() in LogLevel.__members__
            else ValidationError(key, "must be a valid log level", v)
        ),
    }

    if key in validators:
        return validators[key](value)

    return None
