"""Shared constants for directive execution."""

from __future__ import annotations

import re

# =============================================================================
# TIMEOUT CONSTANTS
# =============================================================================

DEFAULT_COMMAND_TIMEOUT_MS: int = 60_000
MIN_COMMAND_TIMEOUT_MS: int = 100
MAX_COMMAND_TIMEOUT_MS: int = 3_600_000
GIT_COMMAND_TIMEOUT_SECONDS: int = 120
DEPLOY_HTTP_TIMEOUT_SECONDS: int = 30
ERROR_RESET_SECONDS: float = 3.0

# =============================================================================
# DEFAULT COMMANDS
# =============================================================================

DEFAULT_BUILD_COMMAND: str = "npm run build"
DEFAULT_TEST_COMMAND: str = "npm test"
DEFAULT_DEV_COMMAND: str = "npm run dev"
DEFAULT_START_COMMAND: str = "npm start"
DEV_PROCESS_NAME: str = "dev"
APP_PROCESS_NAME: str = "app"
DEFAULT_GIT_REMOTE: str = "origin"
DEFAULT_GIT_BRANCH: str = "main"
DEFAULT_GIT_LOG_DEPTH: int = 20

# =============================================================================
# LIMIT CONSTANTS
# =============================================================================

TERMINAL_LOG_TRUNCATE_LIMIT: int = 320
DEFAULT_LOG_TRUNCATE_LIMIT: int = 700
MAX_RECORDED_EVENTS: int = 1000
DEPLOY_MAX_FILE_BYTES: int = 2_000_000
DEPLOY_SKIPPED_DIRS: frozenset[str] = frozenset({".git", "node_modules", "__pycache__", ".venv", "dist", ".next"})

# =============================================================================
# REGEX PATTERNS (compiled at module level)
# =============================================================================

AUTH_HEADER_PATTERN: re.Pattern[str] = re.compile(
    r"(Authorization:\s*(?:Bearer|Basic))\s+\S+",
    re.IGNORECASE,
)

URL_CREDENTIAL_PATTERN: re.Pattern[str] = re.compile(
    r"(https?://)([^/\s:@]+):([^@\s]+)@",
)

GH_TOKEN_PATTERN: re.Pattern[str] = re.compile(
    r"\bgh[pousr]_[A-Za-z0-9_]{36,}\b",
)
