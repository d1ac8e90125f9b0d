"""Filesystem store rooted at the project directory."""

from __future__ import annotations

import logging as py_logging
import shutil
from pathlib import Path

from fullcontrol.constants import DEPLOY_MAX_FILE_BYTES, DEPLOY_SKIPPED_DIRS
from fullcontrol.errors import ExitCode, FullControlError

logger = py_logging.getLogger(__name__)


class LocalFileStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser().resolve()

    def resolve(self, path: str) -> Path:
        """Map a project-relative path to an absolute one inside the root."""
        value = path.strip().replace("\\", "/")
        if not value:
            raise FullControlError(
                "File path cannot be empty.",
                code=ExitCode.VALIDATION_ERROR,
                hint="Provide a project-relative path.",
            )
        candidate = (self.root / value.lstrip("/")).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise FullControlError(
                f"Path escapes the project root: {path}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Use paths inside the project directory.",
            )
        return candidate

    def write(self, path: str, content: str) -> None:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.debug("File written path=%s bytes=%s", target, len(content.encode("utf-8")))

    def delete(self, path: str) -> None:
        target = self.resolve(path)
        if target.is_dir():
            raise FullControlError(
                f"Not a file: {path}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Use folder_delete for directories.",
            )
        target.unlink()
        logger.debug("File deleted path=%s", target)

    def rename(self, old_path: str, new_path: str) -> None:
        source = self.resolve(old_path)
        target = self.resolve(new_path)
        if not source.exists():
            raise FileNotFoundError(f"No such file: {old_path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        source.rename(target)
        logger.debug("File renamed from=%s to=%s", source, target)

    def mkdir(self, path: str) -> None:
        self.resolve(path).mkdir(parents=True, exist_ok=True)

    def rmdir(self, path: str) -> None:
        target = self.resolve(path)
        if target == self.root:
            raise FullControlError(
                "Refusing to delete the project root.",
                code=ExitCode.VALIDATION_ERROR,
                hint="Delete a sub-folder instead.",
            )
        if not target.is_dir():
            raise FileNotFoundError(f"No such folder: {path}")
        shutil.rmtree(target)
        logger.debug("Folder deleted path=%s", target)

    def read_tree(self) -> dict[str, str]:
        """Return deployable text files keyed by POSIX path relative to the root."""
        files: dict[str, str] = {}
        if not self.root.is_dir():
            return files
        for candidate in sorted(self.root.rglob("*")):
            relative = candidate.relative_to(self.root)
            if any(part in DEPLOY_SKIPPED_DIRS for part in relative.parts):
                continue
            if not candidate.is_file() or candidate.is_symlink():
                continue
            if candidate.stat().st_size > DEPLOY_MAX_FILE_BYTES:
                logger.debug("Skipping oversized file path=%s", relative)
                continue
            try:
                files[relative.as_posix()] = candidate.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logger.debug("Skipping binary file path=%s", relative)
        return files
