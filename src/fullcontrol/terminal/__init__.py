"""Terminal session hosting and command execution."""

from .process_host import LocalTerminalRunner, build_shell_command
from .sessions import SessionManager, timeout_marker

__all__ = [
    "build_shell_command",
    "LocalTerminalRunner",
    "SessionManager",
    "timeout_marker",
]
