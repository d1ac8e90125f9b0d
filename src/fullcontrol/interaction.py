"""Interaction status state machine for a single request/response cycle."""

from __future__ import annotations

import logging as py_logging
import threading
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from fullcontrol.constants import ERROR_RESET_SECONDS
from fullcontrol.errors import ExitCode, FullControlError

logger = py_logging.getLogger(__name__)


class InteractionStatus(str, Enum):
    IDLE = "idle"
    THINKING = "thinking"
    STREAMING = "streaming"
    APPLYING = "applying"
    ERROR = "error"


@dataclass(frozen=True)
class StatusChange:
    previous: InteractionStatus
    current: InteractionStatus
    trigger: str
    error: str = ""


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]
StatusListener = Callable[[StatusChange], None]


def _default_timer(seconds: float, callback: Callable[[], None]) -> Timer:
    timer = threading.Timer(seconds, callback)
    timer.daemon = True
    return timer


_TRANSITIONS: dict[str, dict[InteractionStatus, InteractionStatus]] = {
    "send": {InteractionStatus.IDLE: InteractionStatus.THINKING},
    "token_received": {
        InteractionStatus.THINKING: InteractionStatus.STREAMING,
        InteractionStatus.STREAMING: InteractionStatus.STREAMING,
    },
    "stream_completed": {
        InteractionStatus.STREAMING: InteractionStatus.APPLYING,
        InteractionStatus.THINKING: InteractionStatus.APPLYING,
    },
    "directives_resolved": {InteractionStatus.APPLYING: InteractionStatus.IDLE},
    "fail": {
        InteractionStatus.THINKING: InteractionStatus.ERROR,
        InteractionStatus.STREAMING: InteractionStatus.ERROR,
        InteractionStatus.APPLYING: InteractionStatus.ERROR,
    },
}


class InteractionTracker:
    """Tracks idle -> thinking -> streaming -> applying -> idle, with an error detour.

    An error state resets itself to idle after ``error_reset_seconds`` unless a
    ``cancel`` gets there first.
    """

    def __init__(
        self,
        *,
        error_reset_seconds: float = ERROR_RESET_SECONDS,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        self.error_reset_seconds = error_reset_seconds
        self._timer_factory = timer_factory or _default_timer
        self._status = InteractionStatus.IDLE
        self._last_error = ""
        self._reset_timer: Timer | None = None
        self._listeners: list[StatusListener] = []
        self._lock = threading.RLock()

    @property
    def status(self) -> InteractionStatus:
        return self._status

    @property
    def last_error(self) -> str:
        return self._last_error

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    def send(self) -> InteractionStatus:
        return self._apply("send")

    def token_received(self) -> InteractionStatus:
        return self._apply("token_received")

    def stream_completed(self) -> InteractionStatus:
        return self._apply("stream_completed")

    def directives_resolved(self) -> InteractionStatus:
        return self._apply("directives_resolved")

    def fail(self, error: str = "") -> InteractionStatus:
        status = self._apply("fail", error=error)
        with self._lock:
            self._cancel_timer()
            timer = self._timer_factory(self.error_reset_seconds, self._reset_after_error)
            self._reset_timer = timer
        timer.start()
        return status

    def cancel(self) -> InteractionStatus:
        with self._lock:
            self._cancel_timer()
            change = self._set(InteractionStatus.IDLE, "cancel")
        self._notify(change)
        return InteractionStatus.IDLE

    def _apply(self, trigger: str, *, error: str = "") -> InteractionStatus:
        with self._lock:
            target = _TRANSITIONS[trigger].get(self._status)
            if target is None:
                raise FullControlError(
                    f"Invalid status transition: {trigger} from {self._status.value}",
                    code=ExitCode.VALIDATION_ERROR,
                    hint="Cancel the current interaction before starting a new step.",
                )
            if trigger == "fail":
                self._last_error = error
            change = self._set(target, trigger, error=error)
        self._notify(change)
        return target

    def _set(self, target: InteractionStatus, trigger: str, *, error: str = "") -> StatusChange | None:
        if target == self._status:
            return None
        change = StatusChange(previous=self._status, current=target, trigger=trigger, error=error)
        self._status = target
        logger.debug("interaction-status %s -> %s trigger=%s", change.previous.value, target.value, trigger)
        return change

    def _notify(self, change: StatusChange | None) -> None:
        if change is None:
            return
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.warning("Status listener failed trigger=%s", change.trigger, exc_info=True)

    def _cancel_timer(self) -> None:
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None

    def _reset_after_error(self) -> None:
        with self._lock:
            self._reset_timer = None
            if self._status != InteractionStatus.ERROR:
                return
            change = self._set(InteractionStatus.IDLE, "error_reset")
        self._notify(change)
