"""Render a git repository's history as a set of linked static HTML pages."""

from .build import BuildConfig, BuildError, BuildReport, run
from .diff import format_diff
from .git import GitError, GitRepository

__all__ = [
    "BuildConfig",
    "BuildError",
    "BuildReport",
    "GitError",
    "GitRepository",
    "format_diff",
    "run",
]

__version__ = "0.1.0"
