"""Branch resolution: put the workspace on the target branch.

The observed reference state is classified once, then a single dispatch picks
the checkout strategy. Sources are tried from most to least authoritative:

    REMOTE_EXISTS   origin/<target> exists: check it out and hard-reset to it
    LOCAL_EXISTS    only a local <target> exists: check it out
    NEITHER_EXISTS  check out <source>, then create <target> from it

Running the resolver again with the same arguments converges on the same
branch instead of creating divergent ones.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from git import GitCommandError, Repo

from .config_schema import DEFAULT_REMOTE
from .errors import is_branch_exists
from .observability import Observer, resolve_observer, timeit


class BranchState(enum.Enum):
    REMOTE_EXISTS = "remote_exists"
    LOCAL_EXISTS = "local_exists"
    NEITHER_EXISTS = "neither_exists"


@dataclass
class BranchResolution:
    """Outcome of a branch resolution."""
    state: BranchState
    source: str
    target: str
    commit: Optional[str] = None  # HEAD after resolution
    created: bool = False


def remote_branch_names(repo: Repo, remote: str = DEFAULT_REMOTE) -> set[str]:
    """Branch names with a remote-tracking ref under ``remote``."""
    if remote not in [r.name for r in repo.remotes]:
        return set()
    return {ref.remote_head for ref in repo.remote(remote).refs if ref.remote_head != "HEAD"}


def local_branch_names(repo: Repo) -> set[str]:
    return {head.name for head in repo.heads}


def classify_branch(repo: Repo, target: str) -> BranchState:
    """Work out which checkout strategy applies to ``target``."""
    if target in remote_branch_names(repo):
        return BranchState.REMOTE_EXISTS
    if target in local_branch_names(repo):
        return BranchState.LOCAL_EXISTS
    return BranchState.NEITHER_EXISTS


def resolve_branch(
    repo: Repo,
    source: str,
    target: str,
    observer: Optional[Observer] = None,
) -> BranchResolution:
    """Check out ``target`` in ``repo``, deriving it from ``source`` if needed.

    Local modifications to tracked files are discarded in every case.

    Raises:
        git.GitCommandError: any checkout/reset failure other than a
            concurrent "branch already exists"
    """
    observer = resolve_observer(observer)
    state = classify_branch(repo, target)
    observer.debug("Classified branch", source=source, target=target, state=state.value)

    created = False
    if state is BranchState.REMOTE_EXISTS:
        _checkout_remote(repo, target, observer)
    elif state is BranchState.LOCAL_EXISTS:
        observer.debug(f"Checkout branch: '{target}'")
        repo.git.checkout("--force", target)
    else:
        created = _create_from_source(repo, source, target, observer)

    resolution = BranchResolution(
        state=state,
        source=source,
        target=target,
        commit=repo.head.commit.hexsha if repo.head.is_valid() else None,
        created=created,
    )
    observer.event(
        "git.checkout",
        source=source,
        target=target,
        state=state.value,
        commit=resolution.commit,
        created=created,
    )
    return resolution


def _checkout_remote(repo: Repo, target: str, observer: Observer) -> None:
    remote_ref = f"{DEFAULT_REMOTE}/{target}"
    observer.debug(f"Checkout remote branch: '{remote_ref}'")

    # -B moves an existing local branch onto the remote tip
    repo.git.checkout("--force", "-B", target, "--track", remote_ref)

    # Make the worktree bit-identical to the remote tip
    remote_sha = repo.commit(f"refs/remotes/{remote_ref}").hexsha
    repo.git.reset("--hard", remote_sha)


def _create_from_source(repo: Repo, source: str, target: str, observer: Observer) -> bool:
    observer.debug(f"Checkout source branch: '{source}'")
    repo.git.checkout("--force", source)

    observer.debug(f"Creating first branch: '{target}'")
    try:
        repo.git.checkout("--force", "-b", target)
    except GitCommandError as error:
        if not is_branch_exists(error):
            raise
        # Created between classification and now; use it as is
        observer.debug(f"Branch '{target}' already exists", target=target)
        repo.git.checkout("--force", target)
        return False
    return True


def checkout(source_branch: str, target_branch: str, working_dir: Union[str, Path]) -> None:
    """Check out ``target_branch`` in ``working_dir``, created from ``source_branch`` if new."""
    with timeit("workspace.checkout", source=source_branch, target=target_branch):
        resolve_branch(Repo(str(working_dir)), source_branch, target_branch)
