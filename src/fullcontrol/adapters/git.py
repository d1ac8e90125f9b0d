"""Git plumbing through the git CLI."""

from __future__ import annotations

import base64
import logging as py_logging
import os
import subprocess
from collections.abc import Callable
from pathlib import Path

from fullcontrol.collaborators import GitCredentials, GitLogEntry, GitStatusEntry
from fullcontrol.constants import GIT_COMMAND_TIMEOUT_SECONDS
from fullcontrol.errors import ExitCode, FullControlError
from fullcontrol.security import command_for_log, mask_secrets, sanitize_log_text

logger = py_logging.getLogger(__name__)

_FIELD_SEPARATOR = "\x1f"
_LOG_FORMAT = _FIELD_SEPARATOR.join(("%H", "%an", "%aI", "%s"))


def _checked_ref(value: str, *, what: str) -> str:
    """Reject names git would parse as an option."""
    name = value.strip()
    if not name or name.startswith("-"):
        raise FullControlError(
            f"Invalid git {what}: {value!r}",
            code=ExitCode.VALIDATION_ERROR,
            hint=f"A {what} cannot be empty or start with '-'.",
        )
    return name


def build_git_env(base_env: dict[str, str] | None, *, credentials: GitCredentials | None) -> dict[str, str]:
    """Inject an auth header into git's environment without touching git config files."""
    env = dict(base_env if base_env is not None else os.environ)
    env.setdefault("GIT_TERMINAL_PROMPT", "0")
    env.setdefault("GCM_INTERACTIVE", "never")
    if credentials is None or not credentials.token.strip():
        return env

    token = credentials.token.strip()
    if credentials.username.strip():
        raw = f"{credentials.username.strip()}:{token}".encode()
        header = f"Authorization: Basic {base64.b64encode(raw).decode('ascii')}"
    else:
        header = f"Authorization: Bearer {token}"

    try:
        slot = int(env.get("GIT_CONFIG_COUNT", "0"))
    except ValueError:
        slot = 0
    env["GIT_CONFIG_COUNT"] = str(slot + 1)
    env[f"GIT_CONFIG_KEY_{slot}"] = "http.extraheader"
    env[f"GIT_CONFIG_VALUE_{slot}"] = header
    return env


class SubprocessGitBackend:
    def __init__(
        self,
        repo_path: str | Path,
        *,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        timeout_seconds: int = GIT_COMMAND_TIMEOUT_SECONDS,
        base_env: dict[str, str] | None = None,
    ) -> None:
        self.repo_path = str(Path(repo_path).expanduser())
        self._runner = runner
        self._timeout_seconds = timeout_seconds
        self._base_env = base_env

    def _run(
        self,
        args: list[str],
        *,
        action: str,
        credentials: GitCredentials | None = None,
    ) -> subprocess.CompletedProcess:
        command = ["git", "-C", self.repo_path, *args]
        env = build_git_env(self._base_env, credentials=credentials)
        secrets = (credentials.token,) if credentials else ()
        logger.debug("git-run action=%s command=%s", action, command_for_log(command))
        try:
            result = self._runner(
                command,
                capture_output=True,
                text=True,
                check=False,
                env=env,
                timeout=self._timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            logger.error("git-timeout action=%s timeout=%ss", action, self._timeout_seconds)
            raise FullControlError(
                f"git {action} timed out.",
                code=ExitCode.TIMEOUT_ERROR,
                hint=f"The command did not finish within {self._timeout_seconds}s.",
            ) from exc
        except OSError as exc:
            raise FullControlError(
                "git executable could not be started.",
                code=ExitCode.GIT_ERROR,
                hint=str(exc) or "Install git and make sure it is on PATH.",
            ) from exc

        if result.returncode != 0:
            detail = mask_secrets((result.stderr or result.stdout or "").strip(), secrets=secrets)
            logger.error(
                "git-failed action=%s code=%s stderr=%s",
                action,
                result.returncode,
                sanitize_log_text(detail),
            )
            raise FullControlError(
                f"git {action} failed.",
                code=ExitCode.GIT_ERROR,
                hint=detail or "Inspect repository state.",
            )
        return result

    def init(self) -> None:
        Path(self.repo_path).mkdir(parents=True, exist_ok=True)
        self._run(["init"], action="init")

    def status(self) -> list[GitStatusEntry]:
        result = self._run(["status", "--porcelain=v1"], action="status")
        entries: list[GitStatusEntry] = []
        for line in result.stdout.splitlines():
            if len(line) < 4:
                continue
            entries.append({"status": line[:2], "path": line[3:]})
        return entries

    def add(self, path: str) -> None:
        self._run(["add", "--", path], action="add")

    def add_all(self) -> None:
        self._run(["add", "--all"], action="add")

    def commit(self, message: str) -> str:
        self._run(["commit", "-m", message], action="commit")
        head = self._run(["rev-parse", "HEAD"], action="rev-parse")
        return head.stdout.strip()

    def checkout(self, branch: str, create: bool = False) -> None:
        branch = _checked_ref(branch, what="branch")
        args = ["checkout", "-b", branch] if create else ["checkout", branch, "--"]
        self._run(args, action="checkout")

    def create_branch(self, name: str) -> None:
        self._run(["branch", _checked_ref(name, what="branch")], action="branch")

    def push(self, remote: str, branch: str, credentials: GitCredentials | None = None) -> None:
        self._run(
            ["push", _checked_ref(remote, what="remote"), _checked_ref(branch, what="branch")],
            action="push",
            credentials=credentials,
        )

    def pull(self, remote: str, branch: str, credentials: GitCredentials | None = None) -> None:
        self._run(
            ["pull", _checked_ref(remote, what="remote"), _checked_ref(branch, what="branch")],
            action="pull",
            credentials=credentials,
        )

    def log(self, depth: int) -> list[GitLogEntry]:
        result = self._run(["log", f"-n{depth}", f"--pretty=format:{_LOG_FORMAT}"], action="log")
        entries: list[GitLogEntry] = []
        for line in result.stdout.splitlines():
            parts = line.split(_FIELD_SEPARATOR)
            if len(parts) != 4:
                continue
            sha, author, date, message = parts
            entries.append({"sha": sha, "author": author, "date": date, "message": message})
        return entries

    def diff(self, path: str) -> str:
        return self._run(["diff", "--", path], action="diff").stdout

    def branches(self) -> list[str]:
        result = self._run(["branch", "--format=%(refname:short)"], action="branch")
        return sorted(line.strip() for line in result.stdout.splitlines() if line.strip())
