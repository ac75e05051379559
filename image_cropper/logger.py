import logging
import os
import sys

LEVEL_ENV = "IMAGE_CROPPER_LOG_LEVEL"
CATS_ENV = "IMAGE_CROPPER_LOG_CATS"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_FORMAT = logging.Formatter(fmt="[%(asctime)s] %(levelname)s: %(message)s", datefmt="%H:%M:%S")


class _CategoryFilter(logging.Filter):
    """Pass only records whose last logger-name segment is in ``allowed``."""

    def __init__(self, allowed: set[str]) -> None:
        super().__init__()
        self.allowed = allowed

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.rsplit(".", 1)[-1] in self.allowed


def _stderr_handler(logger: logging.Logger) -> logging.StreamHandler:
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) is sys.stderr:
            return handler
    handler = logging.StreamHandler(stream=sys.stderr)
    logger.addHandler(handler)
    return handler


def setup_logger(level: int = logging.INFO, name: str = "image_cropper") -> logging.Logger:
    """Configure the package logger; safe to call repeatedly.

    The level and category environment variables are re-read on every call,
    so the CLI can set them after modules have already created their loggers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_LEVELS.get((os.getenv(LEVEL_ENV) or "").strip().lower(), level))

    handler = _stderr_handler(logger)
    handler.setFormatter(_FORMAT)
    handler.filters.clear()
    cats = {c.strip() for c in (os.getenv(CATS_ENV) or "").split(",") if c.strip()}
    if cats:
        handler.addFilter(_CategoryFilter(cats))

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base.getChild(name) if name else base
