from __future__ import annotations

import logging
from typing import Optional

ROOT_LOGGER_NAME = "certxmlenc"

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the certxmlenc namespace."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach a stream handler to the package logger (once) and set its level.

    The level defaults to XmlEncryptionSettings.log_level.
    Applications with their own logging setup should not call this.
    """
    if level is None:
        from certxmlenc.core.settings import get_settings

        level = get_settings().log_level

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())

    if not any(getattr(h, "_certxmlenc", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._certxmlenc = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
