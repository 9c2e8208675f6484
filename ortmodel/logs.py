"""Package loggers configured from the `logging` config section.

The handler is installed lazily by ``ensure_logging()`` the first time a
model is constructed; embedding applications may call ``configure_logging()``
themselves to pick a level or format up front.
"""
from __future__ import annotations

import json
import logging

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_ROOT_NAME = "ortmodel"


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(
            {
                "ts": record.created,
                "level": record.levelname.lower(),
                "logger": record.name,
                "message": record.getMessage(),
            },
            ensure_ascii=False,
        )


def configure_logging(level: str | None = None, fmt: str | None = None) -> logging.Logger:
    """Attach a single stream handler to the package root logger.

    Explicit arguments win over the config section. Calling again replaces
    the handler installed by a previous call.
    """
    if level is None or fmt is None:
        from ortmodel.config import get_config  # local import (cycle)

        cfg = get_config().logging
        level = level or cfg.level
        fmt = fmt or cfg.format
    root = logging.getLogger(_ROOT_NAME)
    for h in list(root.handlers):
        if getattr(h, "_ortmodel_handler", False):
            root.removeHandler(h)
    h = logging.StreamHandler()
    h._ortmodel_handler = True  # type: ignore[attr-defined]
    if fmt == "json":
        h.setFormatter(_JsonFormatter())
    else:
        h.setFormatter(
            logging.Formatter("[%(levelname)s] %(name)s: %(message)s")
        )
    root.addHandler(h)
    root.setLevel(_LEVELS.get(level, logging.INFO))
    return root


def ensure_logging() -> logging.Logger:
    """Install the configured handler once, on first use of the package."""
    root = logging.getLogger(_ROOT_NAME)
    if any(getattr(h, "_ortmodel_handler", False) for h in root.handlers):
        return root
    return configure_logging()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_ROOT_NAME}.{name}")


__all__ = ["configure_logging", "ensure_logging", "get_logger"]
