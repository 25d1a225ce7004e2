from __future__ import annotations

import logging
import os
import shutil
import sys
from pathlib import Path

import pytest
from git import Actor, Repo


def pytest_sessionstart(session):  # type: ignore[override]
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))
    os.environ.setdefault("PYTHONPATH", str(src))


TEST_AUTHOR = Actor("Tester", "test@example.com")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep user config, credentials and log files out of the tests."""
    from gitpublish import observability
    from gitpublish.config_loader import clear_config_cache

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GITPUBLISH_LOG_DISABLE_FILE", "1")
    for var in (
        "GITPUBLISH_USERNAME",
        "GITPUBLISH_PASSWORD",
        "GITPUBLISH_GIT_AUTHOR",
        "GITPUBLISH_GIT_EMAIL",
        "GITPUBLISH_LOG_LEVEL",
        "GITPUBLISH_LOG_DIR",
    ):
        monkeypatch.delenv(var, raising=False)

    clear_config_cache()
    logging.getLogger(observability.LOGGER_NAME).handlers.clear()
    observability._logger_initialized = False
    yield
    clear_config_cache()
    logging.getLogger(observability.LOGGER_NAME).handlers.clear()
    observability._logger_initialized = False


def commit_file(repo: Repo, name: str, content: str, message: str) -> str:
    path = Path(repo.working_tree_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.index.add([name])
    return repo.index.commit(message, author=TEST_AUTHOR, committer=TEST_AUTHOR).hexsha


def seed_remote_with_main(remote_path: Path) -> Repo:
    """Create a bare remote with a seeded main branch."""
    remote_path.mkdir(parents=True, exist_ok=True)
    remote = Repo.init(remote_path, bare=True)
    remote.git.symbolic_ref("HEAD", "refs/heads/main")

    workdir = remote_path.parent / "seed"
    repo = Repo.init(workdir)
    commit_file(repo, "README.md", "seed\n", "seed")
    repo.git.branch("-M", "main")
    repo.create_remote("origin", remote_path.as_posix())
    repo.remotes.origin.push("main:main")
    shutil.rmtree(workdir)
    return remote


def push_remote_branch(remote_path: Path, branch: str, filename: str, content: str) -> str:
    """Put one extra commit on ``branch`` (created from main if new) and push it."""
    workdir = remote_path.parent / f"scratch-{branch.replace('/', '-')}"
    repo = Repo.clone_from(remote_path.as_posix(), workdir)
    repo.git.checkout("-B", branch)
    sha = commit_file(repo, filename, content, f"work on {branch}")
    repo.remotes.origin.push(f"{branch}:{branch}")
    shutil.rmtree(workdir)
    return sha


def remote_branch_sha(remote_path: Path, branch: str) -> str:
    return Repo(remote_path).commit(f"refs/heads/{branch}").hexsha


@pytest.fixture
def remote(tmp_path) -> Path:
    """Bare remote repository whose only branch is main."""
    path = tmp_path / "remote.git"
    seed_remote_with_main(path)
    return path


@pytest.fixture
def workspace(tmp_path, remote) -> Path:
    """Fresh clone of ``remote``."""
    path = tmp_path / "workspace"
    Repo.clone_from(remote.as_posix(), path)
    return path


class RecordingObserver:
    """Observer double that records what it is told."""

    def __init__(self):
        self.events = []
        self.messages = []
        self.warnings = []
        self.progress_lines = []

    def event(self, action, **fields):
        self.events.append((action, fields))

    def debug(self, message, **fields):
        self.messages.append(message)

    def warning(self, message, **fields):
        self.warnings.append(message)

    def progress(self, text):
        self.progress_lines.append(text)

    def actions(self):
        return [action for action, _ in self.events]


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()
