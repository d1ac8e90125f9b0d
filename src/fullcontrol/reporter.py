"""Execution events, subscribers and command history."""

from __future__ import annotations

import logging as py_logging
import threading
from collections import deque
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from fullcontrol.constants import MAX_RECORDED_EVENTS
from fullcontrol.directives.models import Directive
from fullcontrol.errors import ExitCode
from fullcontrol.results import CommandHistoryEntry, Result, TerminalCommandResult
from fullcontrol.security import sanitize_log_text, sanitize_terminal_log_text

logger = py_logging.getLogger(__name__)


class EventKind(str, Enum):
    DIRECTIVE_RESOLVED = "directive-resolved"
    TERMINAL_OUTPUT = "terminal-output"
    PROGRESS = "progress"
    CONFIG_CHANGED = "config-changed"
    STATUS_CHANGED = "status-changed"


@dataclass(frozen=True)
class ExecutionEvent:
    kind: EventKind
    domain: str
    step: str
    message: str
    directive: Directive | None = None
    result: Result | None = None
    code: ExitCode | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventCallback = Callable[[ExecutionEvent], None]


def _result_error(result: Result) -> str:
    error = getattr(result, "error", None)
    return str(error) if error else "failed"


class Reporter:
    def __init__(self, *, max_events: int = MAX_RECORDED_EVENTS) -> None:
        self._subscribers: list[EventCallback] = []
        self._events: deque[ExecutionEvent] = deque(maxlen=max_events)
        self._history: list[CommandHistoryEntry] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock, suppress(ValueError):
                self._subscribers.remove(callback)

        return _unsubscribe

    def emit(self, event: ExecutionEvent) -> None:
        if event.kind == EventKind.TERMINAL_OUTPUT:
            logger.debug(
                "runtime-event domain=%s step=%s message=%s",
                event.domain,
                event.step,
                sanitize_terminal_log_text(event.message),
            )
        else:
            level = py_logging.INFO if event.code in (None, ExitCode.SUCCESS) else py_logging.WARNING
            logger.log(
                level,
                "runtime-event domain=%s step=%s message=%s",
                event.domain,
                event.step,
                sanitize_log_text(event.message),
            )
        with self._lock:
            self._events.append(event)
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.warning("Event subscriber failed kind=%s", event.kind.value, exc_info=True)

    def progress(self, domain: str, step: str, message: str) -> None:
        self.emit(ExecutionEvent(kind=EventKind.PROGRESS, domain=domain, step=step, message=message))

    def terminal_output(self, session_id: str, data: str) -> None:
        self.emit(ExecutionEvent(kind=EventKind.TERMINAL_OUTPUT, domain="terminal", step=session_id, message=data))

    def resolved(self, directive: Directive, result: Result, *, code: ExitCode | None = None) -> None:
        outcome = "ok" if result.success else _result_error(result)
        resolved_code = code if code is not None else (ExitCode.SUCCESS if result.success else ExitCode.RUNTIME_ERROR)
        self.emit(
            ExecutionEvent(
                kind=EventKind.DIRECTIVE_RESOLVED,
                domain=directive.domain.value,
                step=directive.kind.value,
                message=f"{directive.describe()}: {outcome}",
                directive=directive,
                result=result,
                code=resolved_code,
            )
        )

    def record_command(self, command: str, result: TerminalCommandResult) -> CommandHistoryEntry:
        entry = CommandHistoryEntry(command=command, result=result)
        with self._lock:
            self._history.append(entry)
        return entry

    def command_history(self) -> list[CommandHistoryEntry]:
        with self._lock:
            return list(self._history)

    def clear_command_history(self) -> None:
        with self._lock:
            self._history.clear()
        logger.info("runtime-event domain=terminal step=clear-history message=Command history cleared.")

    def list_events(self) -> list[ExecutionEvent]:
        with self._lock:
            return list(self._events)

    def clear_events(self) -> None:
        with self._lock:
            self._events.clear()
