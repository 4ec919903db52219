"""Logging configuration for peerlink."""

import logging
from pathlib import Path

from peerlink.config import Config

TIMING_LOGGER = "peerlink.timing"

# Module-level logger cache
_logger: logging.Logger | None = None


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(config: Config) -> logging.Logger:
    """Set up logging based on configuration.

    Args:
        config: Configuration object with log settings.

    Returns:
        Configured logger instance.
    """
    global _logger

    if _logger is not None:
        return _logger

    logger = logging.getLogger("peerlink")
    logger.setLevel(_level(config.log_level))

    # Handshake timing can be tuned apart from the package level
    if config.timing_log_level:
        logging.getLogger(TIMING_LOGGER).setLevel(_level(config.timing_log_level))

    logger.handlers.clear()

    # 2025-01-27 10:30:45 [INFO] message
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    formatter.datefmt = "%Y-%m-%d %H:%M:%S"

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger.propagate = False

    _logger = logger
    return logger


def reset_logging() -> None:
    """Reset logging state. Used for testing."""
    global _logger
    if _logger is not None:
        for handler in _logger.handlers:
            handler.close()
        _logger.handlers.clear()
        _logger.propagate = True
        _logger = None
    logging.getLogger(TIMING_LOGGER).setLevel(logging.NOTSET)
