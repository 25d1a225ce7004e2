"""Branch name normalisation."""

from __future__ import annotations

MAX_BRANCH_NAME_LENGTH = 255

# Characters git rejects or that break refspecs
_FORBIDDEN_CHARS = (" ", ":", "*", "+")


def sanitize_branch_name(branch: str) -> str:
    """Remove characters that are invalid in a branch name and cap its length.

    >>> sanitize_branch_name("feat: my *branch* + v1")
    'featmybranchv1'
    """
    for char in _FORBIDDEN_CHARS:
        branch = branch.replace(char, "")

    return branch[:MAX_BRANCH_NAME_LENGTH]
