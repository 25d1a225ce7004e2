import json
import logging

import pytest

from gitpublish import observability as obs
from gitpublish.observability import (
    LOGGER_NAME,
    NullObserver,
    Observer,
    ObserverProgress,
    log_action,
    log_debug,
    log_warning,
    resolve_observer,
    timeit,
)


@pytest.fixture(autouse=True)
def reset_session():
    obs._session_start = None
    yield
    obs._session_start = None


def test_log_action_emits_json(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    log_action("git.clone", outcome="ok", duration_ms=123, path="/tmp/ws")
    data = json.loads(caplog.records[-1].message)
    assert data["action"] == "git.clone"
    assert data["outcome"] == "ok"
    assert data["duration_ms"] == 123
    assert data["path"] == "/tmp/ws"


def test_timeit_success_logs(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    with timeit("workspace.add", files=2):
        pass
    data = json.loads(caplog.records[-1].message)
    assert data["action"] == "workspace.add"
    assert data["outcome"] == "ok"
    assert data["files"] == 2
    assert isinstance(data["duration_ms"], (int, float))


def test_timeit_error_logs_and_reraises(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    with pytest.raises(RuntimeError):
        with timeit("workspace.push"):
            raise RuntimeError("boom")
    data = json.loads(caplog.records[-1].message)
    assert data["action"] == "workspace.push"
    assert data["outcome"] == "error"


def test_log_debug_respects_level(caplog, monkeypatch):
    monkeypatch.setenv("GITPUBLISH_LOG_LEVEL", "DEBUG")
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    log_debug("Checkout branch", target="feature-x")
    assert caplog.records[-1].levelno == logging.DEBUG
    assert caplog.records[-1].message == 'Checkout branch {"target":"feature-x"}'


def test_log_warning_without_fields(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    log_warning("careful")
    assert caplog.records[-1].message == "careful"


def test_file_logging_writes_session_file(tmp_path, monkeypatch):
    log_dir = tmp_path / "logs"
    monkeypatch.delenv("GITPUBLISH_LOG_DISABLE_FILE")
    monkeypatch.setenv("GITPUBLISH_LOG_DIR", str(log_dir))

    log_action("git.fetch", remote="origin")
    for handler in logging.getLogger(LOGGER_NAME).handlers:
        handler.flush()

    files = list(log_dir.glob("gitpublish_*.log"))
    assert len(files) == 1
    assert '"action":"git.fetch"' in files[0].read_text()


def test_disable_file_logging(monkeypatch, tmp_path):
    monkeypatch.setenv("GITPUBLISH_LOG_DIR", str(tmp_path / "logs"))
    assert obs._get_log_file_path({"disable_file": True}) is None
    assert obs._get_log_file_path() is None  # env disables it in tests


def test_default_observer_forwards_to_log(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    resolve_observer(None).event("git.push", refspec="+refs/heads/a:refs/heads/a")
    data = json.loads(caplog.records[-1].message)
    assert data["action"] == "git.push"


def test_default_observer_warning_is_logged_at_warning(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    Observer().warning("Discarding local commits on 'main'", branch="main")
    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.message == 'Discarding local commits on \'main\' {"branch":"main"}'


def test_null_observer_is_silent(caplog):
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    observer = NullObserver()
    observer.event("git.push")
    observer.debug("nothing")
    observer.warning("nothing")
    observer.progress("nothing")
    assert not caplog.records


def test_resolve_observer_keeps_injected_instance():
    observer = NullObserver()
    assert resolve_observer(observer) is observer


def test_progress_reports_stage_boundaries_only():
    lines = []

    class Collect(Observer):
        def progress(self, text):
            lines.append(text)

    progress = ObserverProgress(Collect(), "clone")
    progress._cur_line = "Receiving objects"
    progress.update(ObserverProgress.RECEIVING | ObserverProgress.BEGIN, 0, 10)
    progress.update(ObserverProgress.RECEIVING, 5, 10)
    progress.update(ObserverProgress.RECEIVING | ObserverProgress.END, 10, 10)

    assert lines == [
        "clone: Receiving objects [0/10]",
        "clone: Receiving objects [10/10]",
    ]
