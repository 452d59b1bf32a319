"""Logging setup for the engine and the HTTP front-end.

Environment overrides:
  - FLEETEXT_LOG_LEVEL: explicit level name or number
  - FLEETEXT_DEBUG: truthy -> DEBUG

Background installations log through :func:`operation_logger`, so every
line of one flow carries its ``host:port:artifact`` key.
"""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
# Chatty below WARNING; raised only when DEBUG is in effect.
NOISY_LOGGERS = ("urllib3", "uvicorn.access")


def parse_level(value: object, fallback: int = logging.INFO) -> int:
    if isinstance(value, int):
        return value
    text = str(value or "").strip()
    if not text:
        return fallback
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    return level if isinstance(level, int) else fallback


def env_level(env: Optional[Mapping[str, str]] = None) -> Optional[int]:
    """Level forced by the environment, or None when nothing is set."""
    env = os.environ if env is None else env
    explicit = env.get("FLEETEXT_LOG_LEVEL")
    if explicit and explicit.strip():
        return parse_level(explicit)
    if str(env.get("FLEETEXT_DEBUG", "")).strip().lower() in {"1", "true", "yes", "on"}:
        return logging.DEBUG
    return None


def configure_root(
    default_level: int | str = logging.INFO,
    env: Optional[Mapping[str, str]] = None,
) -> int:
    """Install the root handler once and apply the effective level."""
    forced = env_level(env)
    effective = forced if forced is not None else parse_level(default_level)

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=effective, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    root.setLevel(effective)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if effective <= logging.DEBUG else logging.WARNING
        )
    return effective


class _OperationAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[{self.extra['operation']}] {msg}", kwargs


def operation_logger(logger: logging.Logger, key: str) -> logging.LoggerAdapter:
    """Wrap ``logger`` so each message is prefixed with the operation key."""
    return _OperationAdapter(logger, {"operation": key})


__all__ = ["configure_root", "env_level", "operation_logger", "parse_level"]
