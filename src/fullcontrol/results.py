"""Per-domain execution results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

FileOperation = Literal["create", "edit", "delete", "rename", "mkdir", "rmdir"]


@dataclass(frozen=True)
class TerminalCommandResult:
    success: bool
    output: str
    exit_code: int
    duration_ms: int
    command: str = ""

    @property
    def error(self) -> str | None:
        return None if self.success else self.output


@dataclass(frozen=True)
class FileOperationResult:
    success: bool
    path: str
    operation: FileOperation
    error: str | None = None


@dataclass(frozen=True)
class BuildResult:
    success: bool
    output: str
    errors: list[str] | None = None
    warnings: list[str] | None = None
    duration_ms: int = 0
    operation: Literal["build", "test", "run", "dev"] = "build"

    @property
    def error(self) -> str | None:
        if self.success:
            return None
        return self.errors[0] if self.errors else self.output


@dataclass(frozen=True)
class DeployResult:
    success: bool
    url: str | None = None
    deployment_id: str | None = None
    state: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class GitOperationResult:
    success: bool
    operation: str
    data: Any = None
    error: str | None = None


Result = TerminalCommandResult | FileOperationResult | BuildResult | DeployResult | GitOperationResult


@dataclass(frozen=True)
class CommandHistoryEntry:
    command: str
    result: TerminalCommandResult
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ExecutionReport:
    terminal: list[TerminalCommandResult] = field(default_factory=list)
    file: list[FileOperationResult] = field(default_factory=list)
    build: list[BuildResult] = field(default_factory=list)
    deploy: list[DeployResult] = field(default_factory=list)
    git: list[GitOperationResult] = field(default_factory=list)

    def all_results(self) -> list[tuple[str, Result]]:
        rows: list[tuple[str, Result]] = []
        for domain in ("file", "terminal", "git", "build", "deploy"):
            rows.extend((domain, item) for item in getattr(self, domain))
        return rows

    @property
    def succeeded(self) -> bool:
        return all(result.success for _, result in self.all_results())

    @property
    def failures(self) -> list[tuple[str, Result]]:
        return [(domain, result) for domain, result in self.all_results() if not result.success]
