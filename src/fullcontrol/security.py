"""Log sanitization and credential masking."""

from __future__ import annotations

import shlex

from fullcontrol.constants import (
    AUTH_HEADER_PATTERN,
    DEFAULT_LOG_TRUNCATE_LIMIT,
    GH_TOKEN_PATTERN,
    TERMINAL_LOG_TRUNCATE_LIMIT,
    URL_CREDENTIAL_PATTERN,
)


def truncate_log(value: str, limit: int = DEFAULT_LOG_TRUNCATE_LIMIT) -> str:
    """Truncate log text to the specified limit with ellipsis."""
    value = value.strip()
    if len(value) <= limit:
        return value
    return value[: max(0, limit - 3)] + "..."


def mask_secrets(value: str, *, secrets: tuple[str, ...] = ()) -> str:
    """Mask auth headers, URL credentials and explicitly known secret values."""
    if not value:
        return ""
    masked = AUTH_HEADER_PATTERN.sub(r"\1 ***", value)
    masked = URL_CREDENTIAL_PATTERN.sub(r"\1***:***@", masked)
    masked = GH_TOKEN_PATTERN.sub("***", masked)
    for secret in secrets:
        if secret and len(secret) >= 4:
            masked = masked.replace(secret, "***")
    return masked


def sanitize_log_text(value: str, limit: int = DEFAULT_LOG_TRUNCATE_LIMIT) -> str:
    """Mask sensitive values and return a bounded-length log string."""
    return truncate_log(mask_secrets(value), limit)


def sanitize_terminal_log_text(value: str) -> str:
    return sanitize_log_text(value, limit=TERMINAL_LOG_TRUNCATE_LIMIT)


def command_for_log(args: list[str]) -> str:
    """Return a shell-safe command string bounded for logging."""
    if not args:
        return ""
    return truncate_log(" ".join(shlex.quote(part) for part in args))
