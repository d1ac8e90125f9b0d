from __future__ import annotations

import logging as py_logging

import pytest

from fullcontrol.directives import (
    Build,
    Deploy,
    Dev,
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
    extract_directives,
    extract_operations,
)
from fullcontrol.directives import Test as RunTests
from fullcontrol.directives.grammar import GRAMMAR


def test_file_create_block_yields_single_directive() -> None:
    batch = extract_operations('<file_create path="a.ts">content</file_create>')

    assert batch.file == (FileCreate(path="a.ts", content="content"),)
    assert len(batch) == 1


def test_file_create_without_path_is_skipped_and_others_survive() -> None:
    text = (
        "<file_create>orphan</file_create>\n"
        '<file_delete path="old.ts" />\n'
        "<terminal_run>npm install</terminal_run>"
    )

    batch = extract_operations(text)

    assert batch.file == (FileDelete(path="old.ts"),)
    assert batch.terminal == (TerminalRun(command="npm install"),)


def test_empty_and_plain_text_yield_empty_batch() -> None:
    assert extract_operations("").is_empty
    assert extract_operations("Just some prose with a < sign and x > y.").is_empty


def test_terminal_tags_are_parsed() -> None:
    text = (
        "<terminal_run>  npm run lint  </terminal_run>"
        "<terminal_sequence>\n npm ci \n\n npm test\n</terminal_sequence>"
        '<terminal_start name="dev">npm run dev</terminal_start>'
        '<terminal_stop name="dev" />'
    )

    batch = extract_operations(text)

    assert batch.terminal == (
        TerminalRun(command="npm run lint"),
        TerminalSequence(commands=("npm ci", "npm test")),
        TerminalStart(name="dev", command="npm run dev"),
        TerminalStop(name="dev"),
    )


def test_file_and_folder_tags_are_parsed() -> None:
    text = (
        '<file_edit path="src/app.ts">\nexport {}\n</file_edit>'
        '<file_rename from="a.ts" to="b.ts" />'
        '<folder_create path="src/lib" />'
        '<folder_delete path="tmp" />'
        '<file_create path="empty.txt"></file_create>'
    )

    batch = extract_operations(text)

    assert batch.file == (
        FileEdit(path="src/app.ts", content="export {}"),
        FileRename(from_path="a.ts", to_path="b.ts"),
        FolderCreate(path="src/lib"),
        FolderDelete(path="tmp"),
        FileCreate(path="empty.txt", content=""),
    )


def test_build_tags_with_optional_attributes() -> None:
    text = '<build /><build command="make" /><test pattern="auth" /><test /><run command="node x.js" /><dev />'

    batch = extract_operations(text)

    assert batch.build == (
        Build(),
        Build(command="make"),
        RunTests(pattern="auth"),
        RunTests(),
        Run(command="node x.js"),
        Dev(),
    )


def test_deploy_self_closed_and_with_env_children() -> None:
    text = (
        '<deploy platform="vercel" project="site" />'
        '<deploy platform="vercel" project="api">\n'
        '  <env name="API_URL" value="https://x" />\n'
        '  <env value="missing-name" />\n'
        '  <env name="DEBUG" value="" />\n'
        "</deploy>"
    )

    batch = extract_operations(text)

    assert batch.deploy == (
        Deploy(platform="vercel", project="site"),
        Deploy(platform="vercel", project="api", env=(("API_URL", "https://x"), ("DEBUG", ""))),
    )
    assert batch.deploy[1].env_vars == {"API_URL": "https://x", "DEBUG": ""}


def test_git_tags_are_parsed_with_defaults() -> None:
    text = (
        "<git_init /><git_status />"
        '<git_add path="." />'
        '<git_commit message="feat: init" />'
        '<git_branch name="feature" checkout="TRUE" />'
        '<git_branch name="other" />'
        '<git_checkout branch="main" />'
        "<git_push />"
        '<git_pull remote="upstream" branch="dev" />'
        '<git_log depth="5" />'
        '<git_log depth="zero" />'
        '<git_diff file="a.ts" />'
    )

    batch = extract_operations(text)

    assert batch.git == (
        GitInit(),
        GitStatus(),
        GitAdd(path="."),
        GitCommit(message="feat: init"),
        GitBranch(name="feature", checkout=True),
        GitBranch(name="other", checkout=False),
        GitCheckout(branch="main"),
        GitPush(),
        GitPull(remote="upstream", branch="dev"),
        GitLog(depth=5),
        GitLog(depth=None),
        GitDiff(file="a.ts"),
    )


def test_attribute_order_is_free_and_unknown_attributes_are_ignored() -> None:
    batch = extract_operations('<file_rename to="b.ts" extra="1" from="a.ts" />')

    assert batch.file == (FileRename(from_path="a.ts", to_path="b.ts"),)
    assert batch.file[0].attributes["extra"] == "1"


def test_empty_required_attribute_counts_as_missing() -> None:
    assert extract_operations('<file_delete path="  " />').is_empty


def test_block_matches_first_close_tag_and_body_is_opaque() -> None:
    text = (
        '<file_create path="doc.md">Use <terminal_run>rm -rf /</terminal_run> carefully'
        "</file_create> trailing </file_create>"
    )

    batch = extract_operations(text)

    assert batch.terminal == ()
    assert batch.file == (
        FileCreate(path="doc.md", content="Use <terminal_run>rm -rf /</terminal_run> carefully"),
    )


def test_unclosed_block_is_skipped_and_scanning_resumes() -> None:
    text = '<file_create path="a.ts">never closed <git_status />'

    batch = extract_operations(text)

    assert batch.file == ()
    assert batch.git == (GitStatus(),)


def test_nested_same_tag_closes_non_greedily() -> None:
    text = '<file_create path="outer">a<file_create path="inner">b</file_create>c</file_create>'

    directives = extract_directives(text)

    assert directives == [FileCreate(path="outer", content='a<file_create path="inner">b')]


def test_stray_close_tag_is_ignored() -> None:
    batch = extract_operations("</terminal_run><git_init />")

    assert batch.git == (GitInit(),)


@pytest.mark.parametrize(
    "text",
    [
        "<terminal_run>   </terminal_run>",
        "<terminal_sequence>\n\n</terminal_sequence>",
        "<terminal_run />",
        '<terminal_start name="x">   </terminal_start>',
        "<git_init></git_init>",
        '<deploy platform="vercel" />',
    ],
)
def test_malformed_occurrences_yield_nothing(text: str) -> None:
    assert extract_operations(text).is_empty


def test_skipped_occurrence_is_logged_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(py_logging.DEBUG, logger="fullcontrol.directives.extractor"):
        extract_operations("<file_create>x</file_create>")

    assert any("directive-skip" in record.getMessage() for record in caplog.records)


def test_extraction_never_raises_on_non_string_like_input() -> None:
    assert extract_directives(None) == []  # type: ignore[arg-type]


def test_grammar_table_covers_every_tag() -> None:
    assert len(GRAMMAR) == 25
    assert len({rule.kind for rule in GRAMMAR.values()}) == 25
    assert all("<" not in rule.label and ">" not in rule.label for rule in GRAMMAR.values())


def test_batch_helpers_report_counts() -> None:
    batch = extract_operations('<git_init /><build /><file_delete path="x" />')

    assert batch.counts() == {"terminal": 0, "file": 1, "build": 1, "deploy": 0, "git": 1}
    assert [directive.kind.value for directive in batch] == ["file-delete", "build", "git-init"]
