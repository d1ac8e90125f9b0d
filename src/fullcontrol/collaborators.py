"""Protocols for the external systems directives are executed against."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from typing_extensions import TypedDict

OutputCallback = Callable[[str, str], None]
ExitCallback = Callable[[str, int], None]
Unsubscribe = Callable[[], None]
ProgressCallback = Callable[[str], None]


class GitStatusEntry(TypedDict):
    status: str
    path: str


class GitLogEntry(TypedDict):
    sha: str
    author: str
    date: str
    message: str


@dataclass(frozen=True)
class Session:
    session_id: str
    cwd: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class GitCredentials:
    token: str
    username: str = ""

    def __repr__(self) -> str:
        return f"GitCredentials(username={self.username!r}, token='***')"


@dataclass(frozen=True)
class DeployOutcome:
    url: str
    deployment_id: str
    state: str


class TerminalRunner(Protocol):
    def create_session(self, *, cwd: str | None = None) -> Session: ...

    def write(self, session_id: str, data: str) -> None: ...

    def on_output(self, callback: OutputCallback) -> Unsubscribe: ...

    def on_exit(self, callback: ExitCallback) -> Unsubscribe: ...

    def close(self, session_id: str) -> None: ...

    def resize(self, session_id: str, cols: int, rows: int) -> None: ...


class FileStore(Protocol):
    def write(self, path: str, content: str) -> None: ...

    def delete(self, path: str) -> None: ...

    def rename(self, old_path: str, new_path: str) -> None: ...

    def mkdir(self, path: str) -> None: ...

    def rmdir(self, path: str) -> None: ...

    def read_tree(self) -> dict[str, str]: ...


class GitBackend(Protocol):
    def init(self) -> None: ...

    def status(self) -> list[GitStatusEntry]: ...

    def add(self, path: str) -> None: ...

    def add_all(self) -> None: ...

    def commit(self, message: str) -> str: ...

    def checkout(self, branch: str, create: bool = False) -> None: ...

    def create_branch(self, name: str) -> None: ...

    def push(self, remote: str, branch: str, credentials: GitCredentials | None = None) -> None: ...

    def pull(self, remote: str, branch: str, credentials: GitCredentials | None = None) -> None: ...

    def log(self, depth: int) -> list[GitLogEntry]: ...

    def diff(self, path: str) -> str: ...

    def branches(self) -> list[str]: ...


class DeployBackend(Protocol):
    def deploy(
        self,
        files: Mapping[str, str],
        project_name: str,
        token: str,
        *,
        env: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> DeployOutcome: ...
