"""Workspace: the service value wiring config, sessions, collaborators and events."""

from __future__ import annotations

import logging as py_logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path

from fullcontrol.adapters.files import LocalFileStore
from fullcontrol.adapters.git import SubprocessGitBackend
from fullcontrol.adapters.vercel import VercelDeployBackend
from fullcontrol.collaborators import DeployBackend, FileStore, GitBackend, GitCredentials, TerminalRunner
from fullcontrol.config import AppConfig, ConfigStore
from fullcontrol.directives.extractor import extract_operations
from fullcontrol.directives.models import OperationBatch
from fullcontrol.directives.sanitizer import sanitize_response
from fullcontrol.errors import ExitCode, FullControlError
from fullcontrol.interaction import InteractionStatus, InteractionTracker, StatusChange
from fullcontrol.logging import register_secret
from fullcontrol.orchestrator import Orchestrator
from fullcontrol.permissions import PermissionGate
from fullcontrol.reporter import EventKind, ExecutionEvent, Reporter
from fullcontrol.results import CommandHistoryEntry, ExecutionReport
from fullcontrol.terminal.process_host import LocalTerminalRunner
from fullcontrol.terminal.sessions import SessionManager

logger = py_logging.getLogger(__name__)

GIT_TOKEN_ENV = "FULLCONTROL_GIT_TOKEN"
GIT_USERNAME_ENV = "FULLCONTROL_GIT_USERNAME"


@dataclass(frozen=True)
class ResponseOutcome:
    display_text: str
    batch: OperationBatch
    report: ExecutionReport | None

    @property
    def executed(self) -> bool:
        return self.report is not None


class Workspace:
    def __init__(
        self,
        project_path: str | Path,
        *,
        config_store: ConfigStore,
        terminal_runner: TerminalRunner,
        file_store: FileStore,
        git_backend: GitBackend,
        deploy_backend: DeployBackend,
        reporter: Reporter | None = None,
        interaction: InteractionTracker | None = None,
        git_credentials: GitCredentials | None = None,
    ) -> None:
        self.project_path = str(Path(project_path).expanduser())
        self.config_store = config_store
        self.reporter = reporter or Reporter()
        self.interaction = interaction or InteractionTracker()
        self.gate = PermissionGate(config_store.permissions)
        self.sessions = SessionManager(
            terminal_runner,
            default_timeout_ms=config_store.get_config().max_command_timeout_ms,
        )
        self.orchestrator = Orchestrator(
            sessions=self.sessions,
            file_store=file_store,
            git_backend=git_backend,
            deploy_backend=deploy_backend,
            gate=self.gate,
            config=config_store.get_config,
            reporter=self.reporter,
            cwd=self.project_path,
            git_credentials=git_credentials,
        )
        register_secret(config_store.get_config().deploy_token)
        if git_credentials is not None:
            register_secret(git_credentials.token)
        self._batch_lock = threading.Lock()
        self._closed = False
        self._unsubscribers = [
            self.sessions.on_output(self.reporter.terminal_output),
            config_store.on_change(self._config_changed),
            self.interaction.subscribe(self._status_changed),
        ]
        logger.debug("Workspace opened project=%s", self.project_path)

    def __enter__(self) -> Workspace:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    @property
    def config(self) -> AppConfig:
        return self.config_store.get_config()

    def parse(self, text: str) -> OperationBatch:
        return extract_operations(text)

    def sanitize(self, text: str) -> str:
        return sanitize_response(text)

    def execute(self, batch: OperationBatch) -> ExecutionReport:
        self._ensure_open()
        if not self._batch_lock.acquire(blocking=False):
            raise FullControlError(
                "Another batch is already executing in this workspace.",
                code=ExitCode.VALIDATION_ERROR,
                hint="Wait for the running batch to finish.",
            )
        try:
            return self.orchestrator.execute(batch)
        finally:
            self._batch_lock.release()

    def handle_response(self, text: str, *, execute: bool | None = None) -> ResponseOutcome:
        """Parse, optionally execute, and sanitize one complete model response.

        ``execute`` defaults to the ``auto_execute_commands`` setting. The
        interaction status is advanced to ``applying`` and back to ``idle``; any
        exception moves it to ``error`` before propagating.
        """
        should_execute = self.config.auto_execute_commands if execute is None else execute
        if self.interaction.status == InteractionStatus.ERROR:
            self.interaction.cancel()
        if self.interaction.status == InteractionStatus.IDLE:
            self.interaction.send()
        if self.interaction.status in (InteractionStatus.THINKING, InteractionStatus.STREAMING):
            self.interaction.stream_completed()

        try:
            batch = self.parse(text)
            report = self.execute(batch) if should_execute and not batch.is_empty else None
            display_text = self.sanitize(text)
        except Exception as exc:
            self.interaction.fail(str(exc))
            raise
        self.interaction.directives_resolved()
        return ResponseOutcome(display_text=display_text, batch=batch, report=report)

    def command_history(self) -> list[CommandHistoryEntry]:
        return self.reporter.command_history()

    def clear_command_history(self) -> None:
        self.reporter.clear_command_history()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.sessions.close_all()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.interaction.cancel()
        logger.debug("Workspace closed project=%s", self.project_path)

    def _ensure_open(self) -> None:
        if self._closed:
            raise FullControlError(
                "Workspace is closed.",
                code=ExitCode.VALIDATION_ERROR,
                hint="Open a new workspace.",
            )

    def _config_changed(self, config: AppConfig) -> None:
        register_secret(config.deploy_token)
        self.sessions.default_timeout_ms = config.max_command_timeout_ms
        self.reporter.emit(
            ExecutionEvent(
                kind=EventKind.CONFIG_CHANGED,
                domain="config",
                step="update",
                message="Configuration updated.",
            )
        )

    def _status_changed(self, change: StatusChange) -> None:
        self.reporter.emit(
            ExecutionEvent(
                kind=EventKind.STATUS_CHANGED,
                domain="interaction",
                step=change.trigger,
                message=f"{change.previous.value} -> {change.current.value}",
            )
        )


def git_credentials_from_env() -> GitCredentials | None:
    token = os.getenv(GIT_TOKEN_ENV, "").strip()
    if not token:
        return None
    return GitCredentials(token=token, username=os.getenv(GIT_USERNAME_ENV, "").strip())


def open_workspace(
    project_path: str | Path,
    config_path: str | Path | None = None,
    *,
    config_store: ConfigStore | None = None,
) -> Workspace:
    """Build a workspace backed by the local shell, filesystem, git CLI and Vercel API."""
    root = Path(project_path).expanduser().resolve()
    if not root.is_dir():
        raise FullControlError(
            f"Project directory not found: {root}",
            code=ExitCode.INVALID_ARGS,
            hint="Pass an existing directory with --project.",
        )
    store = config_store or ConfigStore(config_path)
    return Workspace(
        root,
        config_store=store,
        terminal_runner=LocalTerminalRunner(),
        file_store=LocalFileStore(root),
        git_backend=SubprocessGitBackend(root),
        deploy_backend=VercelDeployBackend(),
        git_credentials=git_credentials_from_env(),
    )
