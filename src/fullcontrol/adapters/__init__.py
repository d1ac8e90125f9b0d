"""Local implementations of the collaborator protocols."""

from .files import LocalFileStore
from .git import SubprocessGitBackend, build_git_env
from .vercel import VercelDeployBackend

__all__ = [
    "build_git_env",
    "LocalFileStore",
    "SubprocessGitBackend",
    "VercelDeployBackend",
]
