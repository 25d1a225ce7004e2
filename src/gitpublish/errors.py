"""Exceptions raised by gitpublish and classifiers for expected git conditions.

Errors coming from git itself (``git.GitCommandError``,
``git.InvalidGitRepositoryError``, ...) are never wrapped. The classifiers
below let callers recognise the handful of git failures that are part of the
normal flow and swallow them at the exact point they are expected.
"""

from __future__ import annotations

from git import GitCommandError


class GitPublishError(Exception):
    """Base exception for errors raised by gitpublish itself."""
    pass


class NotOnBranchError(GitPublishError):
    """HEAD is detached, so there is no branch to publish."""

    def __init__(self, head: str):
        self.head = head
        super().__init__(f"not pushing from a branch: HEAD is detached at {head}")


class IncompleteIdentityError(GitPublishError, ValueError):
    """Commit author name, email or message is missing."""
    pass


class ConfigError(GitPublishError):
    """Configuration loading or validation error."""
    pass


def _error_text(error: GitCommandError) -> str:
    parts = [str(error.stderr or ""), str(error.stdout or "")]
    return "\n".join(parts).lower()


def is_already_up_to_date(error: GitCommandError) -> bool:
    text = _error_text(error)
    return "already up to date" in text or "already up-to-date" in text


def is_branch_exists(error: GitCommandError) -> bool:
    text = _error_text(error)
    return "already exists" in text and "branch" in text


def is_repository_exists(error: GitCommandError) -> bool:
    """True when ``git clone`` refused because the destination is not empty."""
    text = _error_text(error)
    return "already exists and is not an empty directory" in text
