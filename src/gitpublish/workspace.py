"""Workspace bootstrap: make a directory hold an up-to-date clone.

The same call works whether or not the directory was cloned before:

- absent or empty directory: clone ``url`` into it
- existing clone: fetch, then force-pull the current branch from origin
  (remote wins)

In both cases every configured remote is fetched exactly once, so that
remote-tracking branches are current before branch resolution runs.

Warning:
    The forced pull hard-resets the current branch onto ``origin/<branch>``.
    Local commits that were never pushed, and uncommitted changes to tracked
    files, are discarded.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Union

from git import GitCommandError, InvalidGitRepositoryError, Remote, Repo

from .config_schema import DEFAULT_REMOTE
from .credentials import BasicAuthCredentials, git_auth_env
from .errors import is_already_up_to_date, is_branch_exists, is_repository_exists
from .observability import Observer, ObserverProgress, resolve_observer, timeit

PathLike = Union[str, Path]


def ensure_workspace(
    url: str,
    credentials: Optional[BasicAuthCredentials],
    path: PathLike,
    observer: Optional[Observer] = None,
) -> Repo:
    """Clone ``url`` into ``path``, or update the clone already there.

    Args:
        url: Remote repository URL
        credentials: Basic-auth credentials for HTTP(S) remotes, or None
        path: Workspace directory
        observer: Receives progress and events (defaults to logging)

    Returns:
        The workspace repository, with every remote fetched

    Raises:
        git.GitCommandError: clone, pull or fetch failed for any reason other
            than the expected "already exists" / "already up to date" cases
        git.InvalidGitRepositoryError: the existing repository is unreadable
    """
    observer = resolve_observer(observer)
    path = Path(path)
    env = git_auth_env(credentials)

    try:
        repo = _clone(url, path, env, observer)
    except GitCommandError as clone_error:
        if not is_repository_exists(clone_error):
            raise
        repo = _open_existing(path, clone_error)
        observer.debug("Repository already exists, updating", path=str(path))
        # The pull resets onto the refs fetched here
        fetch_all_remotes(repo, env, observer)
        _force_pull(repo, observer)
        return repo

    fetch_all_remotes(repo, env, observer)
    return repo


def _with_progress_stderr(error: GitCommandError, progress: ObserverProgress) -> GitCommandError:
    """Put back the stderr that ``progress`` consumed while git was running.

    With a progress sink attached, GitPython routes git's stderr through the
    sink, so clone failures arrive with an empty ``stderr``.
    """
    if error.stderr or not progress.error_lines:
        return error
    rebuilt = GitCommandError(error.command, error.status, "\n".join(progress.error_lines))
    rebuilt.__cause__ = error
    return rebuilt


def _clone(url: str, path: Path, env: Dict[str, str], observer: Observer) -> Repo:
    observer.debug(f"Cloning git repository: {url} in {path}")
    progress = ObserverProgress(observer, "clone")
    try:
        repo = Repo.clone_from(url, str(path), progress=progress, env=env)
    except GitCommandError as error:
        raise _with_progress_stderr(error, progress)
    observer.event("git.clone", url=url, path=str(path))
    return repo


def _open_existing(path: Path, clone_error: GitCommandError) -> Repo:
    """Open the repository that made the clone fail.

    A non-empty directory that is not a repository is a genuine clone failure,
    so the clone error is re-raised in that case.
    """
    try:
        return Repo(str(path))
    except InvalidGitRepositoryError:
        raise clone_error


def _fetch(repo: Repo, remote: Remote, env: Dict[str, str], observer: Observer, operation: str) -> None:
    progress = ObserverProgress(observer, operation)
    try:
        with repo.git.custom_environment(**env):
            remote.fetch(progress=progress)
    except GitCommandError as error:
        raise _with_progress_stderr(error, progress)


def _force_pull(repo: Repo, observer: Observer) -> None:
    """Reset the current branch onto its fetched origin counterpart.

    Expects origin to have been fetched already.
    """
    observer.debug("Workspace status", status=repo.git.status())

    if repo.head.is_detached:
        observer.debug("HEAD is detached, nothing to pull")
        return

    branch = repo.active_branch.name
    origin = repo.remote(DEFAULT_REMOTE)

    remote_refs = {ref.remote_head: ref for ref in origin.refs}
    remote_ref = remote_refs.get(branch)
    if remote_ref is None:
        observer.debug(f"No {origin.name}/{branch} to pull from", branch=branch)
        return

    local_sha = repo.head.commit.hexsha if repo.head.is_valid() else None
    remote_sha = remote_ref.commit.hexsha
    if local_sha == remote_sha:
        observer.debug("Already up to date", branch=branch, commit=remote_sha)
        return

    if local_sha is not None and not repo.is_ancestor(local_sha, remote_sha):
        observer.warning(
            f"Discarding local commits on '{branch}'",
            branch=branch,
            previous=local_sha,
            commit=remote_sha,
        )
    repo.git.reset("--hard", remote_sha)
    observer.event("git.pull", branch=branch, previous=local_sha, commit=remote_sha, forced=True)


def fetch_all_remotes(
    repo: Repo,
    env: Optional[Dict[str, str]] = None,
    observer: Optional[Observer] = None,
) -> None:
    """Fetch every configured remote so remote-tracking branches are current."""
    observer = resolve_observer(observer)
    env = env if env is not None else git_auth_env(None)

    for remote in repo.remotes:
        try:
            _fetch(repo, remote, env, observer, f"fetch {remote.name}")
        except GitCommandError as error:
            if is_already_up_to_date(error) or is_branch_exists(error):
                observer.debug("Fetch had nothing to do", remote=remote.name)
                continue
            raise
        observer.event("git.fetch", remote=remote.name)


def clone(username: str, password: str, url: str, working_dir: PathLike) -> None:
    """Bootstrap ``working_dir`` from ``url`` (``git clone`` or update)."""
    credentials = None
    if username or password:
        credentials = BasicAuthCredentials(username=username, password=password)

    with timeit("workspace.clone", path=str(working_dir)):
        ensure_workspace(url, credentials, working_dir)
