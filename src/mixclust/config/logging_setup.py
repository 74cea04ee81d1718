"""Install log handlers on the mixclust package logger."""

import logging
from pathlib import Path
from typing import Optional

from .schema import LoggingConfig

PACKAGE_LOGGER = "mixclust"


def configure_logging(config: LoggingConfig, verbose: bool = False) -> logging.Logger:
    """
    Configure the ``mixclust`` logger from a LoggingConfig.

    Handlers installed by an earlier call are replaced, so calling this
    twice does not duplicate output. The root logger is left alone.

    Args:
        config: Logging settings
        verbose: Force DEBUG regardless of ``config.level``

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    level = logging.DEBUG if verbose else getattr(logging, config.level.upper())
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)

    if config.console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    log_file: Optional[Path] = Path(config.file).expanduser() if config.file else None
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    logger.debug(f"Logging configured at level {logging.getLevelName(level)}")
    return logger
