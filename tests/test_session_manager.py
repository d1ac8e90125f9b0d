from __future__ import annotations

import threading

import pytest

from fullcontrol.errors import ExitCode, FullControlError
from fullcontrol.terminal.sessions import SessionManager, timeout_marker


def test_execute_command_collects_output_and_closes_session(make_runner) -> None:
    runner = make_runner({"npm test": ("3 passing\n", 0)})
    manager = SessionManager(runner)

    result = manager.execute_command("npm test", cwd="/project", timeout_ms=1000)

    assert result.success
    assert result.exit_code == 0
    assert result.output == "3 passing\n"
    assert result.command == "npm test"
    assert runner.writes == [("s1", "npm test\n"), ("s1", "exit\n")]
    assert runner.sessions[0].cwd == "/project"
    assert runner.closed == ["s1"]


def test_non_zero_exit_is_failure(make_runner) -> None:
    runner = make_runner({"false": ("boom\n", 1)})
    manager = SessionManager(runner)

    result = manager.execute_command("false", timeout_ms=1000)

    assert not result.success
    assert result.exit_code == 1
    assert result.error == "boom\n"


def test_timeout_force_closes_and_marks_output(make_runner) -> None:
    runner = make_runner({"sleep 100": "hang"})
    manager = SessionManager(runner)

    result = manager.execute_command("sleep 100", timeout_ms=50)

    assert not result.success
    assert result.exit_code == -1
    assert result.output == timeout_marker(50)
    assert result.output == "[Command timed out after 50 ms]"
    assert runner.closed == ["s1"]


def test_default_timeout_is_used_when_none_given(make_runner) -> None:
    runner = make_runner({"hang": "hang"})
    manager = SessionManager(runner, default_timeout_ms=30)

    result = manager.execute_command("hang")

    assert result.output.endswith("[Command timed out after 30 ms]")


def test_write_failure_still_closes_session(make_runner) -> None:
    runner = make_runner({"bad": "raise"})
    manager = SessionManager(runner)

    with pytest.raises(RuntimeError):
        manager.execute_command("bad", timeout_ms=100)

    assert runner.closed == ["s1"]


def test_start_named_twice_fails_until_stopped(make_runner) -> None:
    runner = make_runner()
    manager = SessionManager(runner)

    manager.start_named("dev", "npm run dev")
    with pytest.raises(FullControlError) as exc_info:
        manager.start_named("dev", "npm run dev")

    assert exc_info.value.code == ExitCode.VALIDATION_ERROR
    assert len(runner.sessions) == 1

    assert manager.stop_named("dev") is True
    manager.start_named("dev", "npm run dev")

    assert manager.active_processes() == {"dev": "s2"}


def test_stop_unknown_name_returns_false(make_runner) -> None:
    manager = SessionManager(make_runner())

    assert manager.stop_named("ghost") is False


def test_process_exit_drops_named_mapping(make_runner) -> None:
    runner = make_runner()
    manager = SessionManager(runner)
    session = manager.start_named("app", "npm start")

    runner.finish(session.session_id, 1)

    assert manager.active_processes() == {}
    assert manager.stop_named("app") is False


def test_start_named_rolls_back_when_write_fails(make_runner) -> None:
    runner = make_runner({"explode": "raise"})
    manager = SessionManager(runner)

    with pytest.raises(RuntimeError):
        manager.start_named("app", "explode")

    assert manager.active_processes() == {}
    assert runner.closed == ["s1"]



def test_start_named_yields_when_reservation_is_taken_over(make_runner) -> None:
    runner = make_runner()
    manager = SessionManager(runner)
    create_session = runner.create_session
    restarted: list[str] = []

    def _create_with_restart(*, cwd=None):
        session = create_session(cwd=cwd)
        if not restarted:
            restarted.append(session.session_id)
            manager.stop_named("dev")
            manager.start_named("dev", "npm run dev -- --port 3001")
        return session

    runner.create_session = _create_with_restart

    with pytest.raises(FullControlError) as exc_info:
        manager.start_named("dev", "npm run dev")

    assert exc_info.value.code == ExitCode.VALIDATION_ERROR
    assert manager.active_processes() == {"dev": "s2"}
    assert runner.closed == ["s1"]


def test_stop_all_and_close_all(make_runner) -> None:
    runner = make_runner()
    manager = SessionManager(runner)
    manager.start_named("a", "x")
    manager.start_named("b", "y")

    manager.close_all()

    assert manager.active_processes() == {}
    assert sorted(runner.closed) == ["s1", "s2"]


def test_concurrent_start_named_admits_exactly_one(make_runner) -> None:
    runner = make_runner()
    manager = SessionManager(runner)
    barrier = threading.Barrier(8)
    outcomes: list[str] = []
    lock = threading.Lock()

    def _start() -> None:
        barrier.wait()
        try:
            manager.start_named("dev", "npm run dev")
        except FullControlError:
            outcome = "rejected"
        else:
            outcome = "started"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=_start) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("started") == 1
    assert outcomes.count("rejected") == 7


def test_passthrough_methods_delegate_to_runner(make_runner) -> None:
    runner = make_runner()
    manager = SessionManager(runner)
    seen: list[tuple[str, str]] = []
    manager.on_output(lambda session_id, data: seen.append((session_id, data)))

    session = manager.create(cwd="/tmp")
    manager.resize(session.session_id, 120, 40)
    manager.write(session.session_id, "echo hi\n")
    manager.write(session.session_id, "exit\n")
    manager.close(session.session_id)

    assert runner.resized == [("s1", 120, 40)]
    assert seen == [("s1", "ran echo hi\n")]
    assert runner.closed == ["s1"]
