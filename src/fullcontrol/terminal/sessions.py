"""Ephemeral command sessions and the named long-running process registry."""

from __future__ import annotations

import logging as py_logging
import threading
import time
from dataclasses import dataclass, field

from fullcontrol.collaborators import ExitCallback, OutputCallback, Session, TerminalRunner, Unsubscribe
from fullcontrol.constants import DEFAULT_COMMAND_TIMEOUT_MS
from fullcontrol.errors import ExitCode, FullControlError
from fullcontrol.results import TerminalCommandResult
from fullcontrol.security import sanitize_terminal_log_text

logger = py_logging.getLogger(__name__)

_RESERVED = ""


@dataclass
class _PendingCommand:
    chunks: list[str] = field(default_factory=list)
    done: threading.Event = field(default_factory=threading.Event)
    exit_code: int | None = None

    def output(self) -> str:
        return "".join(self.chunks)


def timeout_marker(timeout_ms: int) -> str:
    return f"[Command timed out after {timeout_ms} ms]"


class SessionManager:
    def __init__(self, runner: TerminalRunner, *, default_timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS) -> None:
        self._runner = runner
        self.default_timeout_ms = default_timeout_ms
        self._named: dict[str, str] = {}
        self._pending: dict[str, _PendingCommand] = {}
        self._lock = threading.Lock()
        self._subscriptions = [
            runner.on_output(self._handle_output),
            runner.on_exit(self._handle_exit),
        ]

    # -- session passthrough --------------------------------------------------

    def create(self, cwd: str | None = None) -> Session:
        return self._runner.create_session(cwd=cwd)

    def write(self, session_id: str, data: str) -> None:
        self._runner.write(session_id, data)

    def on_output(self, callback: OutputCallback) -> Unsubscribe:
        return self._runner.on_output(callback)

    def on_exit(self, callback: ExitCallback) -> Unsubscribe:
        return self._runner.on_exit(callback)

    def resize(self, session_id: str, cols: int, rows: int) -> None:
        self._runner.resize(session_id, cols, rows)

    def close(self, session_id: str) -> None:
        self._runner.close(session_id)

    # -- one-shot commands ----------------------------------------------------

    def execute_command(
        self,
        command: str,
        cwd: str | None = None,
        timeout_ms: int | None = None,
    ) -> TerminalCommandResult:
        """Run ``command`` in a fresh shell and wait for it to exit.

        The session is always closed afterwards. When ``timeout_ms`` elapses
        first, the shell is force-closed and the result carries exit code -1
        with a timeout marker appended to whatever output was captured.
        """
        timeout = timeout_ms or self.default_timeout_ms
        started = time.monotonic()
        session = self._runner.create_session(cwd=cwd)
        pending = _PendingCommand()
        with self._lock:
            self._pending[session.session_id] = pending

        try:
            self._runner.write(session.session_id, f"{command}\n")
            self._runner.write(session.session_id, "exit\n")
            finished = pending.done.wait(timeout / 1000)
        finally:
            with self._lock:
                self._pending.pop(session.session_id, None)
            self._runner.close(session.session_id)

        duration_ms = int((time.monotonic() - started) * 1000)
        output = pending.output()
        if not finished:
            logger.warning(
                "Command timed out code=%s timeout_ms=%s command=%s",
                ExitCode.TIMEOUT_ERROR.name,
                timeout,
                sanitize_terminal_log_text(command),
            )
            marker = timeout_marker(timeout)
            return TerminalCommandResult(
                success=False,
                output=f"{output}\n{marker}" if output else marker,
                exit_code=-1,
                duration_ms=duration_ms,
                command=command,
            )

        exit_code = pending.exit_code if pending.exit_code is not None else -1
        logger.debug(
            "Command finished exit_code=%s duration_ms=%s command=%s",
            exit_code,
            duration_ms,
            sanitize_terminal_log_text(command),
        )
        return TerminalCommandResult(
            success=exit_code == 0,
            output=output,
            exit_code=exit_code,
            duration_ms=duration_ms,
            command=command,
        )

    # -- named processes ------------------------------------------------------

    def start_named(self, name: str, command: str, cwd: str | None = None) -> Session:
        with self._lock:
            if name in self._named:
                raise FullControlError(
                    f"Process already running: {name}",
                    code=ExitCode.VALIDATION_ERROR,
                    hint=f"Stop '{name}' before starting it again.",
                )
            self._named[name] = _RESERVED

        try:
            session = self._runner.create_session(cwd=cwd)
        except Exception:
            with self._lock:
                self._named.pop(name, None)
            raise

        with self._lock:
            reserved = self._named.get(name) == _RESERVED
            if reserved:
                self._named[name] = session.session_id
        if not reserved:
            self._runner.close(session.session_id)
            raise FullControlError(
                f"Process start was cancelled: {name}",
                code=ExitCode.VALIDATION_ERROR,
                hint=f"'{name}' was stopped or restarted while it was starting.",
            )
        try:
            self._runner.write(session.session_id, f"{command}\n")
        except Exception:
            with self._lock:
                if self._named.get(name) == session.session_id:
                    del self._named[name]
            self._runner.close(session.session_id)
            raise
        logger.info("Named process started name=%s command=%s", name, sanitize_terminal_log_text(command))
        return session

    def stop_named(self, name: str) -> bool:
        with self._lock:
            session_id = self._named.pop(name, None)
        if not session_id:
            return False
        self._runner.close(session_id)
        logger.info("Named process stopped name=%s", name)
        return True

    def active_processes(self) -> dict[str, str]:
        with self._lock:
            return {name: session_id for name, session_id in self._named.items() if session_id}

    def stop_all(self) -> None:
        with self._lock:
            names = list(self._named)
        for name in names:
            self.stop_named(name)

    def close_all(self) -> None:
        """Stop named processes and detach from the runner."""
        self.stop_all()
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    # -- runner callbacks -----------------------------------------------------

    def _handle_output(self, session_id: str, data: str) -> None:
        with self._lock:
            pending = self._pending.get(session_id)
            if pending is not None:
                pending.chunks.append(data)

    def _handle_exit(self, session_id: str, exit_code: int) -> None:
        with self._lock:
            pending = self._pending.get(session_id)
            exited = [name for name, owner in self._named.items() if owner == session_id]
            for name in exited:
                del self._named[name]
        for name in exited:
            logger.info("Named process exited name=%s code=%s", name, exit_code)
        if pending is not None:
            pending.exit_code = exit_code
            pending.done.set()
