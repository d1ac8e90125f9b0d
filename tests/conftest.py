from __future__ import annotations

import logging as py_logging
from pathlib import Path

import pytest

from fullcontrol.collaborators import DeployOutcome, GitCredentials, Session
from fullcontrol.logging import clear_secrets

_SECURITY_TEST_FILES = {
    "test_security.py",
    "test_file_store.py",
    "test_git_backend.py",
}


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        name = path.name

        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)

        if name in _SECURITY_TEST_FILES:
            item.add_marker(pytest.mark.security)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in (
        "FULLCONTROL_DEPLOY_TOKEN",
        "VERCEL_TOKEN",
        "FULLCONTROL_GIT_TOKEN",
        "FULLCONTROL_GIT_USERNAME",
        "FULLCONTROL_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    logger = py_logging.getLogger("fullcontrol")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(py_logging.NOTSET)
    clear_secrets()


class FakeTerminalRunner:
    """Scripted shell: each command maps to (output, exit_code), "hang", or "raise"."""

    def __init__(self, script: dict[str, object] | None = None) -> None:
        self.script = dict(script or {})
        self.sessions: list[Session] = []
        self.writes: list[tuple[str, str]] = []
        self.closed: list[str] = []
        self.resized: list[tuple[str, int, int]] = []
        self.commands: list[str] = []
        self._pending: dict[str, list[str]] = {}
        self._alive: set[str] = set()
        self._output: list = []
        self._exit: list = []

    def create_session(self, *, cwd: str | None = None) -> Session:
        session = Session(session_id=f"s{len(self.sessions) + 1}", cwd=cwd)
        self.sessions.append(session)
        self._pending[session.session_id] = []
        self._alive.add(session.session_id)
        return session

    def write(self, session_id: str, data: str) -> None:
        self.writes.append((session_id, data))
        lines = self._pending.setdefault(session_id, [])
        if data != "exit\n":
            command = data.rstrip("\n")
            if self.script.get(command) == "raise":
                raise RuntimeError(f"write failed: {command}")
            lines.append(command)
            self.commands.append(command)
            return
        behaviour: object = ("", 0)
        for command in lines:
            behaviour = self.script.get(command, (f"ran {command}\n", 0))
        if behaviour == "hang":
            return
        output, code = behaviour  # type: ignore[misc]
        if output:
            for callback in list(self._output):
                callback(session_id, output)
        self._finish(session_id, int(code))

    def on_output(self, callback):
        self._output.append(callback)
        return lambda: self._output.remove(callback)

    def on_exit(self, callback):
        self._exit.append(callback)
        return lambda: self._exit.remove(callback)

    def close(self, session_id: str) -> None:
        self.closed.append(session_id)
        if session_id in self._alive:
            self._finish(session_id, -15)

    def resize(self, session_id: str, cols: int, rows: int) -> None:
        self.resized.append((session_id, cols, rows))

    def finish(self, session_id: str, code: int = 0) -> None:
        """Simulate a process exiting on its own."""
        self._finish(session_id, code)

    def _finish(self, session_id: str, code: int) -> None:
        self._alive.discard(session_id)
        for callback in list(self._exit):
            callback(session_id, code)


class SpyFileStore:
    def __init__(self, tree: dict[str, str] | None = None, fail_on: set[str] | None = None) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.tree = dict(tree or {})
        self.fail_on = set(fail_on or ())

    def _record(self, *call: str) -> None:
        self.calls.append(call)
        if call[1] in self.fail_on:
            raise OSError(f"cannot touch {call[1]}")

    def write(self, path: str, content: str) -> None:
        self._record("write", path, content)

    def delete(self, path: str) -> None:
        self._record("delete", path)

    def rename(self, old_path: str, new_path: str) -> None:
        self._record("rename", old_path, new_path)

    def mkdir(self, path: str) -> None:
        self._record("mkdir", path)

    def rmdir(self, path: str) -> None:
        self._record("rmdir", path)

    def read_tree(self) -> dict[str, str]:
        self.calls.append(("read_tree",))
        return dict(self.tree)


class SpyGitBackend:
    def __init__(self) -> None:
        self.calls: list[tuple[object, ...]] = []
        self.credentials: list[GitCredentials | None] = []

    def init(self) -> None:
        self.calls.append(("init",))

    def status(self):
        self.calls.append(("status",))
        return [{"status": " M", "path": "a.ts"}]

    def add(self, path: str) -> None:
        self.calls.append(("add", path))

    def add_all(self) -> None:
        self.calls.append(("add_all",))

    def commit(self, message: str) -> str:
        self.calls.append(("commit", message))
        return "abc123"

    def checkout(self, branch: str, create: bool = False) -> None:
        self.calls.append(("checkout", branch, create))

    def create_branch(self, name: str) -> None:
        self.calls.append(("create_branch", name))

    def push(self, remote: str, branch: str, credentials: GitCredentials | None = None) -> None:
        self.calls.append(("push", remote, branch))
        self.credentials.append(credentials)

    def pull(self, remote: str, branch: str, credentials: GitCredentials | None = None) -> None:
        self.calls.append(("pull", remote, branch))
        self.credentials.append(credentials)

    def log(self, depth: int):
        self.calls.append(("log", depth))
        return []

    def diff(self, path: str) -> str:
        self.calls.append(("diff", path))
        return f"diff {path}"

    def branches(self) -> list[str]:
        return ["main"]


class SpyDeployBackend:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[dict[str, object]] = []
        self.error = error

    def deploy(self, files, project_name, token, *, env=None, on_progress=None) -> DeployOutcome:
        self.calls.append({"files": dict(files), "project": project_name, "token": token, "env": env})
        if on_progress is not None:
            on_progress("Deployment state: READY")
        if self.error is not None:
            raise self.error
        return DeployOutcome(url="https://my-app.vercel.app", deployment_id="dpl_1", state="READY")


@pytest.fixture
def fake_runner() -> FakeTerminalRunner:
    return FakeTerminalRunner()


@pytest.fixture
def spy_files() -> SpyFileStore:
    return SpyFileStore(tree={"index.html": "<h1>hi</h1>"})


@pytest.fixture
def spy_git() -> SpyGitBackend:
    return SpyGitBackend()


@pytest.fixture
def spy_deploy() -> SpyDeployBackend:
    return SpyDeployBackend()


@pytest.fixture
def make_runner():
    return FakeTerminalRunner


@pytest.fixture
def make_files():
    return SpyFileStore


@pytest.fixture
def make_deploy():
    return SpyDeployBackend
