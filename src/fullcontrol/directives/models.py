"""Typed directive variants and the per-domain operation batch."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar


class Domain(str, Enum):
    TERMINAL = "terminal"
    FILE = "file"
    BUILD = "build"
    DEPLOY = "deploy"
    GIT = "git"

    @property
    def label(self) -> str:
        return _DOMAIN_LABELS[self]


_DOMAIN_LABELS = {
    Domain.TERMINAL: "Terminal",
    Domain.FILE: "File",
    Domain.BUILD: "Build",
    Domain.DEPLOY: "Deployment",
    Domain.GIT: "Git",
}


class DirectiveKind(str, Enum):
    TERMINAL_RUN = "terminal-run"
    TERMINAL_SEQUENCE = "terminal-sequence"
    TERMINAL_START = "terminal-start"
    TERMINAL_STOP = "terminal-stop"
    FILE_CREATE = "file-create"
    FILE_EDIT = "file-edit"
    FILE_DELETE = "file-delete"
    FILE_RENAME = "file-rename"
    FOLDER_CREATE = "folder-create"
    FOLDER_DELETE = "folder-delete"
    BUILD = "build"
    TEST = "test"
    RUN = "run"
    DEV = "dev"
    DEPLOY = "deploy"
    GIT_INIT = "git-init"
    GIT_STATUS = "git-status"
    GIT_ADD = "git-add"
    GIT_COMMIT = "git-commit"
    GIT_BRANCH = "git-branch"
    GIT_CHECKOUT = "git-checkout"
    GIT_PUSH = "git-push"
    GIT_PULL = "git-pull"
    GIT_LOG = "git-log"
    GIT_DIFF = "git-diff"


@dataclass(frozen=True, kw_only=True)
class Directive:
    """One parsed instruction. ``attributes`` and ``body`` keep the raw tag payload."""

    kind: ClassVar[DirectiveKind]
    domain: ClassVar[Domain]

    attributes: dict[str, str] = field(default_factory=dict, compare=False, repr=False)
    body: str | None = field(default=None, compare=False, repr=False)

    def describe(self) -> str:
        return self.kind.value


# -- terminal -----------------------------------------------------------------


@dataclass(frozen=True)
class TerminalRun(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.TERMINAL_RUN
    domain: ClassVar[Domain] = Domain.TERMINAL

    command: str

    def describe(self) -> str:
        return f"run: {self.command}"


@dataclass(frozen=True)
class TerminalSequence(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.TERMINAL_SEQUENCE
    domain: ClassVar[Domain] = Domain.TERMINAL

    commands: tuple[str, ...]

    def describe(self) -> str:
        return f"sequence: {' && '.join(self.commands)}"


@dataclass(frozen=True)
class TerminalStart(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.TERMINAL_START
    domain: ClassVar[Domain] = Domain.TERMINAL

    name: str
    command: str

    def describe(self) -> str:
        return f"start {self.name}: {self.command}"


@dataclass(frozen=True)
class TerminalStop(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.TERMINAL_STOP
    domain: ClassVar[Domain] = Domain.TERMINAL

    name: str

    def describe(self) -> str:
        return f"stop {self.name}"


# -- files and folders --------------------------------------------------------


@dataclass(frozen=True)
class FileCreate(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.FILE_CREATE
    domain: ClassVar[Domain] = Domain.FILE

    path: str
    content: str = ""

    def describe(self) -> str:
        return f"create {self.path}"


@dataclass(frozen=True)
class FileEdit(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.FILE_EDIT
    domain: ClassVar[Domain] = Domain.FILE

    path: str
    content: str = ""

    def describe(self) -> str:
        return f"edit {self.path}"


@dataclass(frozen=True)
class FileDelete(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.FILE_DELETE
    domain: ClassVar[Domain] = Domain.FILE

    path: str

    def describe(self) -> str:
        return f"delete {self.path}"


@dataclass(frozen=True)
class FileRename(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.FILE_RENAME
    domain: ClassVar[Domain] = Domain.FILE

    from_path: str
    to_path: str

    def describe(self) -> str:
        return f"rename {self.from_path} -> {self.to_path}"


@dataclass(frozen=True)
class FolderCreate(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.FOLDER_CREATE
    domain: ClassVar[Domain] = Domain.FILE

    path: str

    def describe(self) -> str:
        return f"mkdir {self.path}"


@dataclass(frozen=True)
class FolderDelete(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.FOLDER_DELETE
    domain: ClassVar[Domain] = Domain.FILE

    path: str

    def describe(self) -> str:
        return f"rmdir {self.path}"


# -- build and run ------------------------------------------------------------


@dataclass(frozen=True)
class Build(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.BUILD
    domain: ClassVar[Domain] = Domain.BUILD

    command: str | None = None


@dataclass(frozen=True)
class Test(Directive):
    __test__ = False

    kind: ClassVar[DirectiveKind] = DirectiveKind.TEST
    domain: ClassVar[Domain] = Domain.BUILD

    pattern: str | None = None


@dataclass(frozen=True)
class Run(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.RUN
    domain: ClassVar[Domain] = Domain.BUILD

    command: str | None = None


@dataclass(frozen=True)
class Dev(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.DEV
    domain: ClassVar[Domain] = Domain.BUILD


# -- deploy -------------------------------------------------------------------


@dataclass(frozen=True)
class Deploy(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.DEPLOY
    domain: ClassVar[Domain] = Domain.DEPLOY

    platform: str
    project: str
    env: tuple[tuple[str, str], ...] = ()

    @property
    def env_vars(self) -> dict[str, str]:
        return dict(self.env)

    def describe(self) -> str:
        return f"deploy {self.project} to {self.platform}"


# -- git ----------------------------------------------------------------------


@dataclass(frozen=True)
class GitInit(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.GIT_INIT
    domain: ClassVar[Domain] = Domain.GIT


@dataclass(frozen=True)
class GitStatus(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.GIT_STATUS
    domain: ClassVar[Domain] = Domain.GIT


@dataclass(frozen=True)
class GitAdd(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.GIT_ADD
    domain: ClassVar[Domain] = Domain.GIT

    path: str


@dataclass(frozen=True)
class GitCommit(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.GIT_COMMIT
    domain: ClassVar[Domain] = Domain.GIT

    message: str


@dataclass(frozen=True)
class GitBranch(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.GIT_BRANCH
    domain: ClassVar[Domain] = Domain.GIT

    name: str
    checkout: bool = False


@dataclass(frozen=True)
class GitCheckout(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.GIT_CHECKOUT
    domain: ClassVar[Domain] = Domain.GIT

    branch: str


@dataclass(frozen=True)
class GitPush(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.GIT_PUSH
    domain: ClassVar[Domain] = Domain.GIT

    remote: str | None = None
    branch: str | None = None


@dataclass(frozen=True)
class GitPull(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.GIT_PULL
    domain: ClassVar[Domain] = Domain.GIT

    remote: str | None = None
    branch: str | None = None


@dataclass(frozen=True)
class GitLog(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.GIT_LOG
    domain: ClassVar[Domain] = Domain.GIT

    depth: int | None = None


@dataclass(frozen=True)
class GitDiff(Directive):
    kind: ClassVar[DirectiveKind] = DirectiveKind.GIT_DIFF
    domain: ClassVar[Domain] = Domain.GIT

    file: str


TerminalDirective = TerminalRun | TerminalSequence | TerminalStart | TerminalStop
FileDirective = FileCreate | FileEdit | FileDelete | FileRename | FolderCreate | FolderDelete
BuildDirective = Build | Test | Run | Dev
GitDirective = (
    GitInit | GitStatus | GitAdd | GitCommit | GitBranch | GitCheckout | GitPush | GitPull | GitLog | GitDiff
)


@dataclass(frozen=True)
class OperationBatch:
    """All directives extracted from one response, grouped by domain in textual order."""

    terminal: tuple[Directive, ...] = ()
    file: tuple[Directive, ...] = ()
    build: tuple[Directive, ...] = ()
    deploy: tuple[Directive, ...] = ()
    git: tuple[Directive, ...] = ()

    def for_domain(self, domain: Domain) -> tuple[Directive, ...]:
        return getattr(self, domain.value)

    def __iter__(self) -> Iterator[Directive]:
        for domain in Domain:
            yield from self.for_domain(domain)

    def __len__(self) -> int:
        return sum(len(self.for_domain(domain)) for domain in Domain)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def counts(self) -> dict[str, int]:
        return {domain.value: len(self.for_domain(domain)) for domain in Domain}
