from __future__ import annotations

import shutil
import sys
from pathlib import Path

import pytest

from fullcontrol.config import AppConfig, ConfigStore
from fullcontrol.workspace import open_workspace

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX shell required")


@pytest.fixture
def workspace(tmp_path: Path):
    project = tmp_path / "project"
    project.mkdir()
    store = ConfigStore(tmp_path / "config.toml", config=AppConfig(max_command_timeout_ms=5000), persist=False)
    with open_workspace(project, config_store=store) as opened:
        yield opened


def test_shell_command_output_and_exit_code(workspace) -> None:
    outcome = workspace.handle_response(
        '<file_create path="hello.txt">hi there</file_create>\n'
        "<terminal_run>cat hello.txt</terminal_run>\n"
        "<terminal_run>exit 3</terminal_run>",
        execute=True,
    )

    report = outcome.report
    assert report is not None
    assert report.file[0].success
    assert report.terminal[0].success
    assert "hi there" in report.terminal[0].output
    assert report.terminal[1].exit_code == 3
    assert (Path(workspace.project_path) / "hello.txt").read_text(encoding="utf-8") == "hi there"


def test_slow_command_times_out(workspace) -> None:
    workspace.config_store.update_config(max_command_timeout_ms=300)

    outcome = workspace.handle_response("<terminal_run>sleep 10</terminal_run>", execute=True)

    assert outcome.report is not None
    result = outcome.report.terminal[0]
    assert result.exit_code == -1
    assert result.output.endswith("[Command timed out after 300 ms]")


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_git_init_add_commit(workspace, monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in {
        "GIT_AUTHOR_NAME": "Test",
        "GIT_AUTHOR_EMAIL": "test@example.com",
        "GIT_COMMITTER_NAME": "Test",
        "GIT_COMMITTER_EMAIL": "test@example.com",
    }.items():
        monkeypatch.setenv(key, value)

    outcome = workspace.handle_response(
        "<git_init />\n"
        '<file_create path="README.md"># demo</file_create>\n'
        '<git_add path="." />\n'
        '<git_commit message="chore: initial commit" />\n'
        "<git_status />\n"
        '<git_log depth="1" />',
        execute=True,
    )

    report = outcome.report
    assert report is not None
    assert report.succeeded, report.failures
    assert len(report.git[2].data) == 40
    assert report.git[3].data == []
    assert report.git[4].data[0]["message"] == "chore: initial commit"
