"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TextIO

from .config import AppConfig, ConfigStore, load_config
from .constants import MAX_COMMAND_TIMEOUT_MS, MIN_COMMAND_TIMEOUT_MS
from .directives.models import Domain
from .errors import ExitCode, FullControlError, user_facing_error
from .logging import configure_logging, default_log_path
from .results import ExecutionReport, Result
from .workspace import Workspace, open_workspace

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")
_DOMAIN_FLAGS = {
    Domain.TERMINAL.value: "terminal_enabled",
    Domain.FILE.value: "file_operations_enabled",
    Domain.BUILD.value: "build_enabled",
    Domain.DEPLOY.value: "deploy_enabled",
    Domain.GIT.value: "git_enabled",
}

WorkspaceFactory = Callable[[Path, ConfigStore], Workspace]


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def _timeout_type(value: str) -> int:
    try:
        timeout = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--timeout-ms must be an integer") from exc
    if timeout < MIN_COMMAND_TIMEOUT_MS or timeout > MAX_COMMAND_TIMEOUT_MS:
        raise argparse.ArgumentTypeError(
            f"--timeout-ms must be between {MIN_COMMAND_TIMEOUT_MS} and {MAX_COMMAND_TIMEOUT_MS}"
        )
    return timeout


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fullcontrol",
        description="Execute the directives embedded in a model response against a project.",
    )
    parser.add_argument("response", help="Response file to process, or - to read stdin")
    parser.add_argument("--project", type=Path, default=None, help="Project directory (default: cwd)")
    parser.add_argument("--config", type=Path, default=None, help="Config file path")
    parser.add_argument("--dry-run", action="store_true", help="List directives without executing them")
    parser.add_argument("--enable", action="append", choices=sorted(_DOMAIN_FLAGS), default=[])
    parser.add_argument("--disable", action="append", choices=sorted(_DOMAIN_FLAGS), default=[])
    parser.add_argument("--timeout-ms", type=_timeout_type, default=None)
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def read_response(source: str, stdin: TextIO | None = None) -> str:
    if source == "-":
        return (stdin or sys.stdin).read()
    path = Path(source).expanduser()
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FullControlError(
            f"Cannot read response file: {path}",
            code=ExitCode.INVALID_ARGS,
            hint=exc.strerror or "Check the file path.",
        ) from exc


def apply_overrides(config: AppConfig, namespace: argparse.Namespace) -> AppConfig:
    """Return ``config`` with this run's --enable/--disable/--timeout-ms applied."""
    updates: dict[str, object] = {}
    for domain in namespace.enable:
        updates[_DOMAIN_FLAGS[domain]] = True
    for domain in namespace.disable:
        updates[_DOMAIN_FLAGS[domain]] = False
    if namespace.timeout_ms is not None:
        updates["max_command_timeout_ms"] = namespace.timeout_ms
    if not updates:
        return config
    return config.model_copy(update=updates)


def _describe_result(domain: str, result: Result) -> str:
    command = getattr(result, "command", "")
    if command:
        return command
    path = getattr(result, "path", "")
    operation = getattr(result, "operation", "")
    if path:
        return f"{operation} {path}"
    url = getattr(result, "url", None)
    if url:
        return url
    return operation or domain


def format_report(report: ExecutionReport) -> list[str]:
    lines: list[str] = []
    for domain, result in report.all_results():
        label = Domain(domain).label
        subject = _describe_result(domain, result)
        if result.success:
            lines.append(f"[ok] {label}: {subject}")
        else:
            error = getattr(result, "error", None) or "failed"
            lines.append(f"[failed] {label}: {subject} - {error}")
    return lines


def _default_workspace_factory(project: Path, store: ConfigStore) -> Workspace:
    return open_workspace(project, config_store=store)


def run_cli_flow(
    namespace: argparse.Namespace,
    *,
    workspace_factory: WorkspaceFactory | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    out = stdout or sys.stdout
    text = read_response(namespace.response, stdin)
    project = (namespace.project or Path.cwd()).expanduser()
    base = load_config(namespace.config)
    store = ConfigStore(namespace.config, config=apply_overrides(base, namespace), persist=False)

    factory = workspace_factory or _default_workspace_factory
    with factory(project, store) as workspace:
        if namespace.dry_run:
            batch = workspace.parse(text)
            print(workspace.sanitize(text), file=out)
            for directive in batch:
                print(f"{directive.domain.label}: {directive.describe()}", file=out)
            return int(ExitCode.SUCCESS)

        outcome = workspace.handle_response(text, execute=True)
        print(outcome.display_text, file=out)
        if outcome.report is None:
            return int(ExitCode.SUCCESS)
        for line in format_report(outcome.report):
            print(line, file=out)
        return int(ExitCode.SUCCESS) if outcome.report.succeeded else int(ExitCode.RUNTIME_ERROR)


def main(
    argv: Sequence[str] | None = None,
    *,
    workspace_factory: WorkspaceFactory | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(level="WARN", log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=namespace.log_level, log_file=log_path)

    try:
        logger.debug("Starting CLI flow response=%s", namespace.response)
        return run_cli_flow(namespace, workspace_factory=workspace_factory, stdin=stdin, stdout=stdout)
    except FullControlError as exc:
        logger.error(
            "Handled FullControlError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        print(user_facing_error("Unexpected runtime failure", hint=f"Inspect logs: {log_path}"), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
