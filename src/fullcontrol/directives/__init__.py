"""Directive protocol: typed directives, tag grammar, extraction and sanitization."""

from .extractor import extract_directives, extract_operations, scan_tags
from .grammar import GRAMMAR, BodyMode, TagRule
from .models import (
    Build,
    Deploy,
    Dev,
    Directive,
    DirectiveKind,
    Domain,
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
from .sanitizer import sanitize_response

__all__ = [
    "BodyMode",
    "Build",
    "Deploy",
    "Dev",
    "Directive",
    "DirectiveKind",
    "Domain",
    "extract_directives",
    "extract_operations",
    "FileCreate",
    "FileDelete",
    "FileEdit",
    "FileRename",
    "FolderCreate",
    "FolderDelete",
    "GitAdd",
    "GitBranch",
    "GitCheckout",
    "GitCommit",
    "GitDiff",
    "GitInit",
    "GitLog",
    "GitPull",
    "GitPush",
    "GitStatus",
    "GRAMMAR",
    "OperationBatch",
    "Run",
    "sanitize_response",
    "scan_tags",
    "TagRule",
    "TerminalRun",
    "TerminalSequence",
    "TerminalStart",
    "TerminalStop",
    "Test",
]
