"""Logging setup for the ``fullcontrol`` logger tree.

Every handler installed here formats through :class:`SecretMaskingFormatter`,
so deploy tokens and git credentials registered with :func:`register_secret`
never reach the console or the log file, whichever module logged them.
"""

from __future__ import annotations

import logging as py_logging
import os
import sys
import threading
from pathlib import Path
from typing import TextIO

from fullcontrol.security import mask_secrets

LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "WARNING": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
LOG_LEVEL_ENV = "FULLCONTROL_LOG_LEVEL"
DEFAULT_LOG_PATH = Path("~/.config/fullcontrol/logs/fullcontrol.log")
_FALLBACK_LOG_PATH = Path(".fullcontrol/logs/fullcontrol.log")
_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s"

_secrets_lock = threading.Lock()
_secrets: set[str] = set()


def register_secret(value: str | None) -> None:
    """Mask ``value`` in every record formatted by fullcontrol handlers."""
    secret = (value or "").strip()
    if len(secret) < 4:
        return
    with _secrets_lock:
        _secrets.add(secret)


def registered_secrets() -> tuple[str, ...]:
    with _secrets_lock:
        # longest first so a token containing another is masked whole
        return tuple(sorted(_secrets, key=len, reverse=True))


def clear_secrets() -> None:
    with _secrets_lock:
        _secrets.clear()


class SecretMaskingFormatter(py_logging.Formatter):
    def format(self, record: py_logging.LogRecord) -> str:
        return mask_secrets(super().format(record), secrets=registered_secrets())


def resolve_level(level: str | None) -> int:
    """Map a level name to a logging level; ``None`` reads ``FULLCONTROL_LOG_LEVEL``."""
    name = level if level is not None else os.getenv(LOG_LEVEL_ENV, "INFO")
    normalized = name.strip().upper()
    if normalized == "WARNING":
        normalized = "WARN"
    return LOG_LEVELS.get(normalized, py_logging.INFO)


def default_log_path() -> Path:
    try:
        resolved = DEFAULT_LOG_PATH.expanduser()
    except RuntimeError:
        resolved = (Path.cwd() / _FALLBACK_LOG_PATH).resolve()
    else:
        if not resolved.is_absolute():
            resolved = resolved.resolve()
    return resolved


def _file_handler(log_file: str | Path, formatter: py_logging.Formatter) -> py_logging.Handler | None:
    log_path = Path(log_file).expanduser()
    if not log_path.is_absolute():
        log_path = log_path.resolve()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = py_logging.FileHandler(log_path, encoding="utf-8")
    except OSError as exc:
        print(f"fullcontrol: file logging disabled ({log_path}: {exc})", file=sys.stderr)
        return None
    handler.setLevel(py_logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: str | None = None,
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    resolved = resolve_level(level)

    logger = py_logging.getLogger("fullcontrol")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    formatter = SecretMaskingFormatter(_FORMAT)

    console = py_logging.StreamHandler(stream or sys.stderr)
    console.setLevel(resolved)
    console.setFormatter(formatter)
    logger.addHandler(console)

    file_handler = _file_handler(log_file, formatter) if log_file else None
    if file_handler is not None:
        logger.addHandler(file_handler)
    # the file handler records DEBUG even when the console is quieter
    logger.setLevel(py_logging.DEBUG if file_handler is not None else resolved)

    logger.propagate = False
    return logger
