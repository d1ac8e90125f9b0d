"""Phase-ordered execution of an operation batch against the collaborators."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Callable
from typing import TypeVar

from fullcontrol.collaborators import DeployBackend, FileStore, GitBackend, GitCredentials
from fullcontrol.config import AppConfig
from fullcontrol.constants import (
    APP_PROCESS_NAME,
    DEFAULT_GIT_BRANCH,
    DEFAULT_GIT_LOG_DEPTH,
    DEFAULT_GIT_REMOTE,
    DEV_PROCESS_NAME,
)
from fullcontrol.directives.models import (
    Build,
    Deploy,
    Dev,
    Directive,
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
    OperationBatch,
    Run,
    TerminalRun,
    TerminalSequence,
    TerminalStart,
    TerminalStop,
    Test,
)
from fullcontrol.errors import ExitCode, FullControlError, describe_error
from fullcontrol.permissions import PermissionGate, disabled_message
from fullcontrol.reporter import Reporter
from fullcontrol.results import (
    BuildResult,
    DeployResult,
    ExecutionReport,
    FileOperationResult,
    GitOperationResult,
    Result,
    TerminalCommandResult,
)
from fullcontrol.terminal.sessions import SessionManager

logger = py_logging.getLogger(__name__)

R = TypeVar("R")

SUPPORTED_PLATFORMS = frozenset({"vercel"})

_FILE_OPERATIONS = {
    FileCreate: "create",
    FileEdit: "edit",
    FileDelete: "delete",
    FileRename: "rename",
    FolderCreate: "mkdir",
    FolderDelete: "rmdir",
}
_BUILD_OPERATIONS = {Build: "build", Test: "test", Run: "run", Dev: "dev"}
_GIT_OPERATIONS = {
    GitInit: "init",
    GitStatus: "status",
    GitAdd: "add",
    GitCommit: "commit",
    GitBranch: "branch",
    GitCheckout: "checkout",
    GitPush: "push",
    GitPull: "pull",
    GitLog: "log",
    GitDiff: "diff",
}


def _terminal_command(directive: Directive) -> str:
    if isinstance(directive, TerminalSequence):
        return "\n".join(directive.commands)
    return str(getattr(directive, "command", ""))


class Orchestrator:
    """Runs directives phase by phase: folders, files, terminal, git, build/run, deploy.

    Directives inside a phase run sequentially in extraction order. Every
    directive resolves to a result; permission denials and collaborator
    exceptions become failed results and never stop the batch.
    """

    def __init__(
        self,
        *,
        sessions: SessionManager,
        file_store: FileStore,
        git_backend: GitBackend,
        deploy_backend: DeployBackend,
        gate: PermissionGate,
        config: Callable[[], AppConfig],
        reporter: Reporter,
        cwd: str | None = None,
        git_credentials: GitCredentials | None = None,
    ) -> None:
        self._sessions = sessions
        self._files = file_store
        self._git = git_backend
        self._deploy = deploy_backend
        self._gate = gate
        self._config = config
        self._reporter = reporter
        self.cwd = cwd
        self.git_credentials = git_credentials

    def execute(self, batch: OperationBatch) -> ExecutionReport:
        report = ExecutionReport()
        folders = [item for item in batch.file if isinstance(item, (FolderCreate, FolderDelete))]
        files = [item for item in batch.file if not isinstance(item, (FolderCreate, FolderDelete))]

        for directive in [*folders, *files]:
            report.file.append(self._resolve(directive, self._run_file, self._failed_file))
        for directive in batch.terminal:
            report.terminal.extend(self._resolve(directive, self._run_terminal, self._failed_terminal))
        for directive in batch.git:
            report.git.append(self._resolve(directive, self._run_git, self._failed_git))
        for directive in batch.build:
            report.build.append(self._resolve(directive, self._run_build, self._failed_build))
        for directive in batch.deploy:
            report.deploy.append(self._resolve(directive, self._run_deploy, self._failed_deploy))

        logger.info(
            "Batch executed directives=%s failures=%s",
            len(batch),
            len(report.failures),
        )
        return report

    def _resolve(
        self,
        directive: Directive,
        run: Callable[[Directive], R],
        failed: Callable[[Directive, str], R],
    ) -> R:
        if not self._gate.is_allowed(directive.domain):
            outcome = failed(directive, disabled_message(directive.domain))
            self._report(directive, outcome, ExitCode.CONFIG_ERROR)
            return outcome

        code: ExitCode | None = None
        try:
            outcome = run(directive)
        except Exception as exc:
            code = exc.code if isinstance(exc, FullControlError) else ExitCode.RUNTIME_ERROR
            logger.warning(
                "Directive failed kind=%s code=%s error=%s",
                directive.kind.value,
                code.name,
                describe_error(exc),
            )
            outcome = failed(directive, describe_error(exc))
        self._report(directive, outcome, code)
        return outcome

    def _report(self, directive: Directive, outcome: Result | list[TerminalCommandResult], code: ExitCode | None) -> None:
        final = outcome[-1] if isinstance(outcome, list) else outcome
        self._reporter.resolved(directive, final, code=code)

    def _timeout_ms(self) -> int:
        return self._config().max_command_timeout_ms

    def _execute_command(self, command: str) -> TerminalCommandResult:
        result = self._sessions.execute_command(command, cwd=self.cwd, timeout_ms=self._timeout_ms())
        self._reporter.record_command(command, result)
        return result

    # -- files ----------------------------------------------------------------

    def _run_file(self, directive: Directive) -> FileOperationResult:
        operation = _FILE_OPERATIONS[type(directive)]
        if isinstance(directive, (FileCreate, FileEdit)):
            self._files.write(directive.path, directive.content)
        elif isinstance(directive, FileDelete):
            self._files.delete(directive.path)
        elif isinstance(directive, FileRename):
            self._files.rename(directive.from_path, directive.to_path)
            return FileOperationResult(success=True, path=directive.to_path, operation=operation)
        elif isinstance(directive, FolderCreate):
            self._files.mkdir(directive.path)
        elif isinstance(directive, FolderDelete):
            self._files.rmdir(directive.path)
        return FileOperationResult(success=True, path=directive.path, operation=operation)

    def _failed_file(self, directive: Directive, message: str) -> FileOperationResult:
        path = directive.from_path if isinstance(directive, FileRename) else getattr(directive, "path", "")
        return FileOperationResult(
            success=False,
            path=path,
            operation=_FILE_OPERATIONS[type(directive)],
            error=message,
        )

    # -- terminal -------------------------------------------------------------

    def _run_terminal(self, directive: Directive) -> list[TerminalCommandResult]:
        if isinstance(directive, TerminalRun):
            return [self._execute_command(directive.command)]

        if isinstance(directive, TerminalSequence):
            results: list[TerminalCommandResult] = []
            for command in directive.commands:
                try:
                    result = self._execute_command(command)
                except Exception as exc:
                    logger.warning("Sequence command failed command=%s error=%s", command, describe_error(exc))
                    results.append(self._failed_command(command, describe_error(exc)))
                    break
                results.append(result)
                if not result.success:
                    break
            return results

        if isinstance(directive, TerminalStart):
            self._sessions.start_named(directive.name, directive.command, cwd=self.cwd)
            return [
                TerminalCommandResult(
                    success=True,
                    output=f"Started process '{directive.name}'",
                    exit_code=0,
                    duration_ms=0,
                    command=directive.command,
                )
            ]

        if isinstance(directive, TerminalStop):
            stopped = self._sessions.stop_named(directive.name)
            return [
                TerminalCommandResult(
                    success=stopped,
                    output=(
                        f"Stopped process '{directive.name}'"
                        if stopped
                        else f"No running process named '{directive.name}'"
                    ),
                    exit_code=0 if stopped else -1,
                    duration_ms=0,
                )
            ]

        raise FullControlError(
            f"Unsupported terminal directive: {directive.kind.value}",
            code=ExitCode.VALIDATION_ERROR,
        )

    @staticmethod
    def _failed_command(command: str, message: str) -> TerminalCommandResult:
        return TerminalCommandResult(success=False, output=message, exit_code=-1, duration_ms=0, command=command)

    def _failed_terminal(self, directive: Directive, message: str) -> list[TerminalCommandResult]:
        return [self._failed_command(_terminal_command(directive), message)]

    # -- git ------------------------------------------------------------------

    def _run_git(self, directive: Directive) -> GitOperationResult:
        operation = _GIT_OPERATIONS[type(directive)]
        data: object = None
        if isinstance(directive, GitInit):
            self._git.init()
        elif isinstance(directive, GitStatus):
            data = self._git.status()
        elif isinstance(directive, GitAdd):
            if directive.path.strip() == ".":
                self._git.add_all()
            else:
                self._git.add(directive.path)
            data = directive.path
        elif isinstance(directive, GitCommit):
            data = self._git.commit(directive.message)
        elif isinstance(directive, GitBranch):
            if directive.checkout:
                self._git.checkout(directive.name, create=True)
            else:
                self._git.create_branch(directive.name)
            data = directive.name
        elif isinstance(directive, GitCheckout):
            self._git.checkout(directive.branch)
            data = directive.branch
        elif isinstance(directive, (GitPush, GitPull)):
            remote = directive.remote or DEFAULT_GIT_REMOTE
            branch = directive.branch or DEFAULT_GIT_BRANCH
            if isinstance(directive, GitPush):
                self._git.push(remote, branch, credentials=self.git_credentials)
            else:
                self._git.pull(remote, branch, credentials=self.git_credentials)
            data = {"remote": remote, "branch": branch}
        elif isinstance(directive, GitLog):
            data = self._git.log(directive.depth or DEFAULT_GIT_LOG_DEPTH)
        elif isinstance(directive, GitDiff):
            data = self._git.diff(directive.file)
        return GitOperationResult(success=True, operation=operation, data=data)

    def _failed_git(self, directive: Directive, message: str) -> GitOperationResult:
        return GitOperationResult(success=False, operation=_GIT_OPERATIONS[type(directive)], error=message)

    # -- build and run --------------------------------------------------------

    def _run_build(self, directive: Directive) -> BuildResult:
        config = self._config()
        if isinstance(directive, Build):
            return self._run_build_command(
                directive.command or config.build_command,
                operation="build",
                started="Starting build...",
                passed="Build completed!",
                failed="Build failed",
            )
        if isinstance(directive, Test):
            command = config.test_command
            if directive.pattern:
                command = f"{command} -- {directive.pattern}"
            return self._run_build_command(
                command,
                operation="test",
                started="Running tests...",
                passed="Tests passed!",
                failed="Tests failed",
            )
        if isinstance(directive, Run):
            command = directive.command or config.start_command
            self._sessions.start_named(APP_PROCESS_NAME, command, cwd=self.cwd)
            self._reporter.progress("build", "run", f"Started {APP_PROCESS_NAME}: {command}")
            return BuildResult(success=True, output=f"Started {command}", operation="run")
        if isinstance(directive, Dev):
            command = config.dev_command
            self._sessions.start_named(DEV_PROCESS_NAME, command, cwd=self.cwd)
            self._reporter.progress("build", "dev", f"Started {DEV_PROCESS_NAME}: {command}")
            return BuildResult(success=True, output=f"Started {command}", operation="dev")
        raise FullControlError(
            f"Unsupported build directive: {directive.kind.value}",
            code=ExitCode.VALIDATION_ERROR,
        )

    def _run_build_command(
        self,
        command: str,
        *,
        operation: str,
        started: str,
        passed: str,
        failed: str,
    ) -> BuildResult:
        self._reporter.progress("build", operation, started)
        result = self._execute_command(command)
        self._reporter.progress("build", operation, passed if result.success else failed)
        return BuildResult(
            success=result.success,
            output=result.output,
            errors=None if result.success else [result.output],
            duration_ms=result.duration_ms,
            operation=operation,
        )

    def _failed_build(self, directive: Directive, message: str) -> BuildResult:
        return BuildResult(
            success=False,
            output=message,
            errors=[message],
            operation=_BUILD_OPERATIONS[type(directive)],
        )

    # -- deploy ---------------------------------------------------------------

    def _run_deploy(self, directive: Directive) -> DeployResult:
        if not isinstance(directive, Deploy):
            raise FullControlError(
                f"Unsupported deploy directive: {directive.kind.value}",
                code=ExitCode.VALIDATION_ERROR,
            )
        platform = directive.platform.strip().lower()
        if platform not in SUPPORTED_PLATFORMS:
            return DeployResult(success=False, error=f"Unsupported deployment platform: {directive.platform}")

        token = self._config().deploy_token
        if not token:
            return DeployResult(success=False, error="Vercel token not configured")

        self._reporter.progress("deploy", "prepare", "Preparing deployment...")
        try:
            files = self._files.read_tree()
            outcome = self._deploy.deploy(
                files,
                directive.project,
                token,
                env=directive.env_vars or None,
                on_progress=lambda message: self._reporter.progress("deploy", "progress", message),
            )
        except Exception:
            self._reporter.progress("deploy", "failed", "Deployment failed")
            raise
        self._reporter.progress("deploy", "completed", "Deployment successful!")
        return DeployResult(
            success=True,
            url=outcome.url,
            deployment_id=outcome.deployment_id,
            state=outcome.state,
        )

    def _failed_deploy(self, directive: Directive, message: str) -> DeployResult:
        return DeployResult(success=False, error=message)
