"""Declarative directive tag grammar.

Each tag name maps to one ``TagRule`` describing its required and optional
attributes, whether it carries a body, the display label used when the tag is
sanitized out of a response, and the builder producing the typed directive.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum

from fullcontrol.directives.models import (
    Build,
    Deploy,
    Dev,
    Directive,
    DirectiveKind,
    FileCreate,
    FileDelete,
    FileEdit,
    FileRename,
    FolderCreate,
    FolderDelete,
    GitAdd,
    GitBranch,
    GitCheckout,
    GitCommit,
    GitDiff,
    GitInit,
    GitLog,
    GitPull,
    GitPush,
    GitStatus,
    Run,
    TerminalRun,
    TerminalSequence,
    TerminalStart,
    TerminalStop,
    Test,
)


_ATTRIBUTE_SOURCE = r'[A-Za-z_][\w-]*\s*=\s*"[^"]*"'

ATTRIBUTE_PATTERN: re.Pattern[str] = re.compile(r'([A-Za-z_][\w-]*)\s*=\s*"([^"]*)"')
ATTRIBUTES_SOURCE = rf"(?:\s+{_ATTRIBUTE_SOURCE})*"
ENV_CHILD_PATTERN: re.Pattern[str] = re.compile(rf"<env(?P<attrs>{ATTRIBUTES_SOURCE})\s*/>")


class BodyMode(str, Enum):
    NONE = "none"  # self-closing only
    REQUIRED = "required"  # block only, non-empty after stripping
    TEXT = "text"  # block only, may be empty
    OPTIONAL = "optional"  # self-closing or block


Builder = Callable[[Mapping[str, str], str | None], Directive | None]


@dataclass(frozen=True)
class TagRule:
    tag: str
    kind: DirectiveKind
    label: str
    build: Builder
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    body: BodyMode = BodyMode.NONE

    @property
    def allows_block(self) -> bool:
        return self.body is not BodyMode.NONE

    @property
    def allows_self_closing(self) -> bool:
        return self.body in (BodyMode.NONE, BodyMode.OPTIONAL)


def _optional(attributes: Mapping[str, str], name: str) -> str | None:
    value = attributes.get(name, "").strip()
    return value or None


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"


def _positive_int(value: str | None) -> int | None:
    try:
        number = int((value or "").strip())
    except ValueError:
        return None
    return number if number > 0 else None


def _build_terminal_sequence(attrs: Mapping[str, str], body: str | None) -> Directive | None:
    commands = tuple(line.strip() for line in (body or "").splitlines() if line.strip())
    if not commands:
        return None
    return TerminalSequence(commands=commands, attributes=dict(attrs), body=body)


def parse_attributes(raw: str) -> dict[str, str]:
    """Parse ``name="value"`` pairs; the first occurrence of a name wins."""
    attributes: dict[str, str] = {}
    for match in ATTRIBUTE_PATTERN.finditer(raw):
        attributes.setdefault(match.group(1), match.group(2))
    return attributes


def parse_env_children(body: str) -> tuple[tuple[str, str], ...]:
    """Collect ``<env name="K" value="V" />`` children in textual order; later keys win."""
    env: dict[str, str] = {}
    for match in ENV_CHILD_PATTERN.finditer(body):
        attributes = parse_attributes(match.group("attrs"))
        name = attributes.get("name", "").strip()
        if not name or "value" not in attributes:
            continue
        env[name] = attributes["value"]
    return tuple(env.items())


def _build_deploy(attrs: Mapping[str, str], body: str | None) -> Directive | None:
    return Deploy(
        platform=attrs["platform"].strip(),
        project=attrs["project"].strip(),
        env=parse_env_children(body or ""),
        attributes=dict(attrs),
        body=body,
    )


_RULES: tuple[TagRule, ...] = (
    TagRule(
        tag="terminal_run",
        kind=DirectiveKind.TERMINAL_RUN,
        label="💻 Running command...",
        body=BodyMode.REQUIRED,
        build=lambda a, b: TerminalRun(command=(b or "").strip(), attributes=dict(a), body=b),
    ),
    TagRule(
        tag="terminal_sequence",
        kind=DirectiveKind.TERMINAL_SEQUENCE,
        label="💻 Running commands...",
        body=BodyMode.REQUIRED,
        build=_build_terminal_sequence,
    ),
    TagRule(
        tag="terminal_start",
        kind=DirectiveKind.TERMINAL_START,
        label="🚀 Starting process...",
        required=("name",),
        body=BodyMode.REQUIRED,
        build=lambda a, b: TerminalStart(
            name=a["name"].strip(), command=(b or "").strip(), attributes=dict(a), body=b
        ),
    ),
    TagRule(
        tag="terminal_stop",
        kind=DirectiveKind.TERMINAL_STOP,
        label="⏹️ Stopping process...",
        required=("name",),
        build=lambda a, b: TerminalStop(name=a["name"].strip(), attributes=dict(a)),
    ),
    TagRule(
        tag="file_create",
        kind=DirectiveKind.FILE_CREATE,
        label="📄 Creating file...",
        required=("path",),
        body=BodyMode.TEXT,
        build=lambda a, b: FileCreate(
            path=a["path"].strip(), content=(b or "").strip(), attributes=dict(a), body=b
        ),
    ),
    TagRule(
        tag="file_edit",
        kind=DirectiveKind.FILE_EDIT,
        label="📝 Editing file...",
        required=("path",),
        body=BodyMode.TEXT,
        build=lambda a, b: FileEdit(
            path=a["path"].strip(), content=(b or "").strip(), attributes=dict(a), body=b
        ),
    ),
    TagRule(
        tag="file_delete",
        kind=DirectiveKind.FILE_DELETE,
        label="🗑️ Deleting file...",
        required=("path",),
        build=lambda a, b: FileDelete(path=a["path"].strip(), attributes=dict(a)),
    ),
    TagRule(
        tag="file_rename",
        kind=DirectiveKind.FILE_RENAME,
        label="📋 Renaming file...",
        required=("from", "to"),
        build=lambda a, b: FileRename(
            from_path=a["from"].strip(), to_path=a["to"].strip(), attributes=dict(a)
        ),
    ),
    TagRule(
        tag="folder_create",
        kind=DirectiveKind.FOLDER_CREATE,
        label="📁 Creating folder...",
        required=("path",),
        build=lambda a, b: FolderCreate(path=a["path"].strip(), attributes=dict(a)),
    ),
    TagRule(
        tag="folder_delete",
        kind=DirectiveKind.FOLDER_DELETE,
        label="🗑️ Deleting folder...",
        required=("path",),
        build=lambda a, b: FolderDelete(path=a["path"].strip(), attributes=dict(a)),
    ),
    TagRule(
        tag="build",
        kind=DirectiveKind.BUILD,
        label="🔨 Building...",
        optional=("command",),
        build=lambda a, b: Build(command=_optional(a, "command"), attributes=dict(a)),
    ),
    TagRule(
        tag="test",
        kind=DirectiveKind.TEST,
        label="🧪 Running tests...",
        optional=("pattern",),
        build=lambda a, b: Test(pattern=_optional(a, "pattern"), attributes=dict(a)),
    ),
    TagRule(
        tag="run",
        kind=DirectiveKind.RUN,
        label="▶️ Running...",
        optional=("command",),
        build=lambda a, b: Run(command=_optional(a, "command"), attributes=dict(a)),
    ),
    TagRule(
        tag="dev",
        kind=DirectiveKind.DEV,
        label="🔧 Starting dev server...",
        build=lambda a, b: Dev(attributes=dict(a)),
    ),
    TagRule(
        tag="deploy",
        kind=DirectiveKind.DEPLOY,
        label="🚀 Deploying...",
        required=("platform", "project"),
        body=BodyMode.OPTIONAL,
        build=_build_deploy,
    ),
    TagRule(
        tag="git_init",
        kind=DirectiveKind.GIT_INIT,
        label="📦 Git operation...",
        build=lambda a, b: GitInit(attributes=dict(a)),
    ),
    TagRule(
        tag="git_status",
        kind=DirectiveKind.GIT_STATUS,
        label="📦 Git operation...",
        build=lambda a, b: GitStatus(attributes=dict(a)),
    ),
    TagRule(
        tag="git_add",
        kind=DirectiveKind.GIT_ADD,
        label="📦 Git operation...",
        required=("path",),
        build=lambda a, b: GitAdd(path=a["path"].strip(), attributes=dict(a)),
    ),
    TagRule(
        tag="git_commit",
        kind=DirectiveKind.GIT_COMMIT,
        label="📦 Git operation...",
        required=("message",),
        build=lambda a, b: GitCommit(message=a["message"], attributes=dict(a)),
    ),
    TagRule(
        tag="git_branch",
        kind=DirectiveKind.GIT_BRANCH,
        label="📦 Git operation...",
        required=("name",),
        optional=("checkout",),
        build=lambda a, b: GitBranch(
            name=a["name"].strip(), checkout=_truthy(a.get("checkout")), attributes=dict(a)
        ),
    ),
    TagRule(
        tag="git_checkout",
        kind=DirectiveKind.GIT_CHECKOUT,
        label="📦 Git operation...",
        required=("branch",),
        build=lambda a, b: GitCheckout(branch=a["branch"].strip(), attributes=dict(a)),
    ),
    TagRule(
        tag="git_push",
        kind=DirectiveKind.GIT_PUSH,
        label="📦 Git operation...",
        optional=("remote", "branch"),
        build=lambda a, b: GitPush(
            remote=_optional(a, "remote"), branch=_optional(a, "branch"), attributes=dict(a)
        ),
    ),
    TagRule(
        tag="git_pull",
        kind=DirectiveKind.GIT_PULL,
        label="📦 Git operation...",
        optional=("remote", "branch"),
        build=lambda a, b: GitPull(
            remote=_optional(a, "remote"), branch=_optional(a, "branch"), attributes=dict(a)
        ),
    ),
    TagRule(
        tag="git_log",
        kind=DirectiveKind.GIT_LOG,
        label="📦 Git operation...",
        optional=("depth",),
        build=lambda a, b: GitLog(depth=_positive_int(a.get("depth")), attributes=dict(a)),
    ),
    TagRule(
        tag="git_diff",
        kind=DirectiveKind.GIT_DIFF,
        label="📦 Git operation...",
        required=("file",),
        build=lambda a, b: GitDiff(file=a["file"].strip(), attributes=dict(a)),
    ),
)

GRAMMAR: dict[str, TagRule] = {rule.tag: rule for rule in _RULES}


def tag_names() -> list[str]:
    """Tag names ordered longest first so alternations never match a prefix."""
    return sorted(GRAMMAR, key=lambda name: (-len(name), name))
