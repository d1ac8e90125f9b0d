"""XDG config loading/saving and live configuration store."""

from __future__ import annotations

import logging as py_logging
import os
import sys
import threading
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from fullcontrol.constants import (
    DEFAULT_BUILD_COMMAND,
    DEFAULT_COMMAND_TIMEOUT_MS,
    DEFAULT_DEV_COMMAND,
    DEFAULT_START_COMMAND,
    DEFAULT_TEST_COMMAND,
    MAX_COMMAND_TIMEOUT_MS,
    MIN_COMMAND_TIMEOUT_MS,
)
from fullcontrol.errors import ExitCode, FullControlError
from fullcontrol.permissions import PermissionSet

logger = py_logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/fullcontrol/config.toml").expanduser()
DEPLOY_TOKEN_ENV = "FULLCONTROL_DEPLOY_TOKEN"
LEGACY_DEPLOY_TOKEN_ENV = "VERCEL_TOKEN"

_BOOL_FIELDS = (
    "terminal_enabled",
    "file_operations_enabled",
    "build_enabled",
    "deploy_enabled",
    "git_enabled",
    "auto_execute_commands",
)
_STR_FIELDS = (
    "project_path",
    "deploy_token",
)
_COMMAND_FIELDS = (
    "build_command",
    "test_command",
    "dev_command",
    "start_command",
)


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    terminal_enabled: bool = True
    file_operations_enabled: bool = True
    build_enabled: bool = True
    deploy_enabled: bool = True
    git_enabled: bool = True
    auto_execute_commands: bool = False
    max_command_timeout_ms: int = Field(
        default=DEFAULT_COMMAND_TIMEOUT_MS,
        ge=MIN_COMMAND_TIMEOUT_MS,
        le=MAX_COMMAND_TIMEOUT_MS,
    )
    project_path: str = ""
    deploy_token: str = ""
    build_command: str = Field(default=DEFAULT_BUILD_COMMAND, min_length=1)
    test_command: str = Field(default=DEFAULT_TEST_COMMAND, min_length=1)
    dev_command: str = Field(default=DEFAULT_DEV_COMMAND, min_length=1)
    start_command: str = Field(default=DEFAULT_START_COMMAND, min_length=1)

    @property
    def permissions(self) -> PermissionSet:
        return PermissionSet(
            terminal=self.terminal_enabled,
            file_operations=self.file_operations_enabled,
            build=self.build_enabled,
            deploy=self.deploy_enabled,
            git=self.git_enabled,
        )


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _env_deploy_token() -> str:
    return os.getenv(DEPLOY_TOKEN_ENV, "").strip() or os.getenv(LEGACY_DEPLOY_TOKEN_ENV, "").strip()


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _toml_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return f'"{_escape(value)}"'
    raise TypeError(f"Unsupported TOML scalar type: {type(value)!r}")


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()

    for name in _BOOL_FIELDS:
        value = raw.get(name)
        if isinstance(value, bool):
            setattr(cfg, name, value)

    for name in _STR_FIELDS:
        value = raw.get(name)
        if isinstance(value, str):
            setattr(cfg, name, value.strip())

    for name in _COMMAND_FIELDS:
        value = raw.get(name)
        if isinstance(value, str) and value.strip():
            setattr(cfg, name, value.strip())

    timeout = raw.get("max_command_timeout_ms")
    if (
        isinstance(timeout, int)
        and not isinstance(timeout, bool)
        and MIN_COMMAND_TIMEOUT_MS <= timeout <= MAX_COMMAND_TIMEOUT_MS
    ):
        cfg.max_command_timeout_ms = timeout

    env_token = _env_deploy_token()
    if env_token:
        cfg.deploy_token = env_token

    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _sanitize({})
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        logger.warning("Config file unreadable, using defaults path=%s", resolved)
        return _sanitize({})
    if not isinstance(raw, dict):
        return _sanitize({})
    return _sanitize(raw)


def save_config(config: AppConfig, path: str | Path | None = None) -> Path:
    resolved = get_config_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)

    lines = [f"{name} = {_toml_scalar(getattr(config, name))}" for name in _BOOL_FIELDS]
    lines.append(f"max_command_timeout_ms = {_toml_scalar(config.max_command_timeout_ms)}")
    lines.append(f"project_path = {_toml_scalar(config.project_path)}")
    env_token = _env_deploy_token()
    if config.deploy_token and config.deploy_token != env_token:
        lines.append(f"deploy_token = {_toml_scalar(config.deploy_token)}")
    lines.extend(f"{name} = {_toml_scalar(getattr(config, name))}" for name in _COMMAND_FIELDS)

    resolved.write_text("\n".join(lines) + "\n", encoding="utf-8")
    with suppress(OSError):
        resolved.chmod(0o600)
    return resolved


ConfigListener = Callable[[AppConfig], None]


class ConfigStore:
    """Owns the live configuration; every update is merged, validated and persisted."""

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        config: AppConfig | None = None,
        persist: bool = True,
    ) -> None:
        self.path = get_config_path(path)
        self.persist = persist
        self._config = config if config is not None else load_config(self.path)
        self._listeners: list[ConfigListener] = []
        self._lock = threading.Lock()

    def get_config(self) -> AppConfig:
        return self._config.model_copy()

    def permissions(self) -> PermissionSet:
        return self._config.permissions

    def update_config(self, **updates: object) -> AppConfig:
        unknown = sorted(set(updates) - set(AppConfig.model_fields))
        if unknown:
            raise FullControlError(
                f"Unknown configuration fields: {', '.join(unknown)}",
                code=ExitCode.CONFIG_ERROR,
                hint="Use one of: " + ", ".join(AppConfig.model_fields),
            )
        with self._lock:
            try:
                merged = AppConfig.model_validate({**self._config.model_dump(), **updates})
            except ValidationError as exc:
                raise FullControlError(
                    "Invalid configuration update.",
                    code=ExitCode.CONFIG_ERROR,
                    hint=str(exc.errors()[0].get("msg", "")) if exc.errors() else "",
                ) from exc
            self._config = merged
            if self.persist:
                save_config(merged, self.path)
            listeners = list(self._listeners)
        logger.info("Configuration updated fields=%s", ",".join(sorted(updates)))
        snapshot = merged.model_copy()
        for listener in listeners:
            listener(snapshot)
        return snapshot

    def on_change(self, listener: ConfigListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe
