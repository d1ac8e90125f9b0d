"""Polling for remote state that settles over time, such as a deployment build."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


class StillPending(Exception):
    """The remote side has not settled yet; ``state`` is what it reported."""

    def __init__(self, state: str) -> None:
        super().__init__(state)
        self.state = state


class PollFailed(Exception):
    """The remote side settled into a failure, or could not be queried."""


@dataclass(frozen=True)
class PollPolicy:
    max_polls: int = 90
    interval_seconds: float = 2.0
    backoff: float = 1.0
    max_interval_seconds: float = 10.0

    def intervals(self) -> Iterator[float]:
        """Yield the pause before each poll after the first."""
        interval = self.interval_seconds
        for _ in range(self.max_polls - 1):
            yield interval
            interval = min(interval * self.backoff, self.max_interval_seconds)


def poll_until_settled(
    check: Callable[[], T],
    *,
    policy: PollPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``check`` until it returns, raises :class:`PollFailed`, or polls run out.

    ``check`` is always called at least once. When every poll reports
    :class:`StillPending`, the last one is re-raised so callers see the final state.
    """
    try:
        return check()
    except StillPending as exc:
        pending = exc
    for interval in policy.intervals():
        sleep(interval)
        try:
            return check()
        except StillPending as exc:
            pending = exc
    raise pending
