"""Stage, commit and push changes from a bootstrapped workspace."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from git import Repo

from .config_loader import get_config
from .config_schema import DEFAULT_REMOTE
from .credentials import BasicAuthCredentials, git_auth_env
from .errors import IncompleteIdentityError, NotOnBranchError
from .observability import Observer, resolve_observer, timeit

PathLike = Union[str, Path]

BRANCH_REF_PREFIX = "refs/heads/"


@dataclass(frozen=True)
class CommitIdentity:
    name: str
    email: str
    message: str

    def validate(self) -> None:
        missing = [
            field for field in ("name", "email", "message")
            if not getattr(self, field).strip()
        ]
        if missing:
            raise IncompleteIdentityError(
                f"Commit identity is incomplete: missing {', '.join(missing)}"
            )


@dataclass(frozen=True)
class RefSpec:
    """Force-push mapping of a local branch onto the same-named remote branch."""
    branch: str

    @property
    def local_ref(self) -> str:
        return BRANCH_REF_PREFIX + self.branch

    @property
    def remote_ref(self) -> str:
        return BRANCH_REF_PREFIX + self.branch

    def validate(self, repo: Repo) -> None:
        """Ask git whether the ref name is well formed (raises GitCommandError)."""
        repo.git.check_ref_format(self.local_ref)

    def __str__(self) -> str:
        return f"+{self.local_ref}:{self.remote_ref}"


def stage_files(repo: Repo, files: Iterable[PathLike], observer: Optional[Observer] = None) -> None:
    """Stage each path on its own; the first failure aborts.

    Paths staged before the failure stay staged.
    """
    observer = resolve_observer(observer)
    for file in files:
        observer.debug(f"Adding file: {file}")
        repo.git.add("--", str(file))


def commit_changes(
    repo: Repo,
    identity: CommitIdentity,
    observer: Optional[Observer] = None,
) -> str:
    """Commit everything staged with ``identity`` as author and committer.

    Returns:
        The new commit SHA

    Raises:
        IncompleteIdentityError: name, email or message is blank
        git.GitCommandError: nothing staged, or git refused the commit
    """
    observer = resolve_observer(observer)
    identity.validate()

    observer.debug("Workspace status", status=repo.git.status())

    when = datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")
    env = {
        "GIT_AUTHOR_NAME": identity.name,
        "GIT_AUTHOR_EMAIL": identity.email,
        "GIT_AUTHOR_DATE": when,
        "GIT_COMMITTER_NAME": identity.name,
        "GIT_COMMITTER_EMAIL": identity.email,
        "GIT_COMMITTER_DATE": when,
    }
    with repo.git.custom_environment(**env):
        repo.git.commit("-m", identity.message)

    commit = repo.head.commit
    observer.event(
        "git.commit",
        commit=commit.hexsha,
        author=f"{commit.author.name} <{commit.author.email}>",
        summary=commit.summary,
    )
    return commit.hexsha


def current_branch_refspec(repo: Repo) -> RefSpec:
    """Refspec for the branch HEAD points at.

    Raises:
        NotOnBranchError: HEAD is detached
    """
    if repo.head.is_detached:
        raise NotOnBranchError(repo.head.commit.hexsha)

    refspec = RefSpec(repo.head.reference.name)
    refspec.validate(repo)
    return refspec


def push_current_branch(
    repo: Repo,
    credentials: Optional[BasicAuthCredentials],
    observer: Optional[Observer] = None,
) -> RefSpec:
    """Force-push the checked-out branch to the same-named branch on origin.

    Only ever pushes a single refspec.
    """
    observer = resolve_observer(observer)
    refspec = current_branch_refspec(repo)

    origin = repo.remote(DEFAULT_REMOTE)
    with repo.git.custom_environment(**git_auth_env(credentials)):
        output = repo.git.push("--porcelain", origin.name, str(refspec))
    if output:
        observer.progress(output)

    observer.event("git.push", remote=origin.name, refspec=str(refspec))
    return refspec


# ----------------------------------------------------------------------
# Caller-facing entry points
# ----------------------------------------------------------------------


def add(files: Iterable[PathLike], working_dir: PathLike) -> None:
    """Run ``git add`` for each file."""
    with timeit("workspace.add"):
        stage_files(Repo(str(working_dir)), files)


def commit(user: str, email: str, message: str, working_dir: PathLike) -> str:
    """Run ``git commit``.

    Blank ``user`` or ``email`` fall back to ``[git] author``/``email`` from
    the gitpublish config.
    """
    if not (user and user.strip()) or not (email and email.strip()):
        git_config = get_config(Path(working_dir)).git
        user = user if user and user.strip() else git_config.author
        email = email if email and email.strip() else git_config.email

    with timeit("workspace.commit"):
        return commit_changes(Repo(str(working_dir)), CommitIdentity(user, email, message))


def push(username: str, password: str, working_dir: PathLike) -> None:
    """Run ``git push`` for the current branch."""
    credentials = None
    if username or password:
        credentials = BasicAuthCredentials(username=username, password=password)

    with timeit("workspace.push"):
        push_current_branch(Repo(str(working_dir)), credentials)
