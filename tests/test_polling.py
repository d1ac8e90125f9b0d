from __future__ import annotations

import pytest

from fullcontrol.polling import PollFailed, PollPolicy, StillPending, poll_until_settled


def test_polls_until_check_settles() -> None:
    states = iter(["QUEUED", "BUILDING", "READY"])
    pauses: list[float] = []

    def check() -> str:
        state = next(states)
        if state != "READY":
            raise StillPending(state)
        return state

    result = poll_until_settled(check, policy=PollPolicy(max_polls=5, interval_seconds=0.5), sleep=pauses.append)

    assert result == "READY"
    assert pauses == [0.5, 0.5]


def test_failure_stops_polling_immediately() -> None:
    calls = {"count": 0}

    def check() -> str:
        calls["count"] += 1
        raise PollFailed("Deployment ended in state ERROR")

    with pytest.raises(PollFailed):
        poll_until_settled(check, policy=PollPolicy(max_polls=5), sleep=lambda _: None)

    assert calls["count"] == 1


def test_exhausted_polls_raise_last_pending_state() -> None:
    states = iter(["QUEUED", "BUILDING", "BUILDING"])

    def check() -> str:
        raise StillPending(next(states))

    with pytest.raises(StillPending) as exc_info:
        poll_until_settled(check, policy=PollPolicy(max_polls=3), sleep=lambda _: None)

    assert exc_info.value.state == "BUILDING"


def test_zero_polls_still_checks_once() -> None:
    assert poll_until_settled(lambda: "READY", policy=PollPolicy(max_polls=0), sleep=lambda _: None) == "READY"


def test_intervals_back_off_up_to_the_cap() -> None:
    policy = PollPolicy(max_polls=5, interval_seconds=1.0, backoff=3.0, max_interval_seconds=5.0)

    assert list(policy.intervals()) == [1.0, 3.0, 5.0, 5.0]
