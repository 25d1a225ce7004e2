from __future__ import annotations

import json
import logging
import os
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from git import RemoteProgress


LOGGER_NAME = "gitpublish"

# Environment variables for configuration
ENV_LOG_DIR = "GITPUBLISH_LOG_DIR"
ENV_LOG_LEVEL = "GITPUBLISH_LOG_LEVEL"
ENV_LOG_MAX_BYTES = "GITPUBLISH_LOG_MAX_BYTES"
ENV_LOG_BACKUP_COUNT = "GITPUBLISH_LOG_BACKUP_COUNT"
ENV_LOG_DISABLE_FILE = "GITPUBLISH_LOG_DISABLE_FILE"

# Defaults
DEFAULT_LOG_DIR = Path.home() / ".gitpublish" / "logs"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5

_logger_initialized = False
_session_start: Optional[str] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _load_logging_settings() -> Dict[str, Any]:
    """Read the [logging] config section, falling back to env-only settings."""
    # Late import so config files are only read once logging is first used
    try:
        from .config_loader import get_config
        return get_config().logging.model_dump()
    except Exception:
        return {}


def _get_log_level(settings: Optional[Dict[str, Any]] = None) -> int:
    """Get log level from config or environment, defaulting to INFO."""
    level_name = (settings or {}).get("level") or os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)
    return getattr(logging, str(level_name).upper(), logging.INFO)


def _get_log_file_path(settings: Optional[Dict[str, Any]] = None) -> Optional[Path]:
    """Get the log file path, creating directories if needed.

    Returns None if file logging is disabled via GITPUBLISH_LOG_DISABLE_FILE=1
    or ``disable_file = true`` in the [logging] config section.
    """
    global _session_start
    settings = settings or {}
    if settings.get("disable_file"):
        return None
    if os.getenv(ENV_LOG_DISABLE_FILE, "").lower() in ("1", "true", "yes"):
        return None

    if _session_start is None:
        _session_start = _utc_now().strftime("%Y-%m-%d_%H%M%S")

    log_dir = Path(settings.get("dir") or os.getenv(ENV_LOG_DIR, DEFAULT_LOG_DIR))
    log_dir.mkdir(parents=True, exist_ok=True)

    # Session-based filename: gitpublish_2024-01-15_143022.log
    return log_dir / f"gitpublish_{_session_start}.log"


def _get_logger() -> logging.Logger:
    """Get or initialize the gitpublish logger.

    By default, logs to ~/.gitpublish/logs/gitpublish_<session>.log

    Configuration via environment variables:
    - GITPUBLISH_LOG_DIR: Directory for log files (default: ~/.gitpublish/logs/)
    - GITPUBLISH_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    - GITPUBLISH_LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
    - GITPUBLISH_LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    - GITPUBLISH_LOG_DISABLE_FILE: Set to 1 to disable file logging (stderr only)
    """
    global _logger_initialized
    logger = logging.getLogger(LOGGER_NAME)

    if not _logger_initialized:
        _logger_initialized = True
        logger.handlers.clear()

        settings = _load_logging_settings()
        log_level = _get_log_level(settings)
        logger.setLevel(log_level)

        formatter = logging.Formatter(
            "[%(levelname)s %(asctime)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S"
        )

        log_file = _get_log_file_path(settings)
        if log_file:
            max_bytes = int(
                settings.get("max_bytes") or os.getenv(ENV_LOG_MAX_BYTES, DEFAULT_MAX_BYTES)
            )
            backup_count = int(
                settings.get("backup_count", os.getenv(ENV_LOG_BACKUP_COUNT, DEFAULT_BACKUP_COUNT))
            )

            file_handler = RotatingFileHandler(
                str(log_file),
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
            file_handler.setFormatter(formatter)
            file_handler.setLevel(log_level)
            logger.addHandler(file_handler)

        # stderr only carries warnings and above
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        stream_handler.setLevel(max(log_level, logging.WARNING))
        logger.addHandler(stream_handler)

    return logger


def _format_fields(message: str, fields: Dict[str, Any]) -> str:
    if not fields:
        return message
    return message + " " + json.dumps(fields, separators=(",", ":"), sort_keys=True, default=str)


def log_action(
    action: str,
    *,
    outcome: str = "ok",
    duration_ms: Optional[float] = None,
    **fields: Any,
) -> None:
    """Emit a structured log line for an action.

    Fields are serialized to JSON. Keep the schema lightweight.

    Args:
        action: Name of the action being logged (e.g. "git.clone")
        outcome: Result status ("ok", "error", "skipped", ...)
        duration_ms: How long the action took in milliseconds
        **fields: Additional fields to include
    """
    payload: Dict[str, Any] = {
        "ts": _utc_now().isoformat(),
        "action": action,
        "outcome": outcome,
    }
    if duration_ms is not None:
        payload["duration_ms"] = round(duration_ms, 2)
    if fields:
        payload.update(fields)

    _get_logger().info(json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str))


def log_debug(message: str, **fields: Any) -> None:
    """Log a debug message with optional structured fields.

    Only emitted when log level is DEBUG.
    """
    logger = _get_logger()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(_format_fields(message, fields))


def log_warning(message: str, **fields: Any) -> None:
    """Log a warning message with optional structured fields."""
    _get_logger().warning(_format_fields(message, fields))


@contextmanager
def timeit(action: str, **fields: Any):
    """Time a block and emit a structured log on exit.

    On exception, logs outcome="error" and re-raises.

    Yields:
        A dict that can be updated with extra fields during the block
    """
    start = time.perf_counter()
    result_info: Dict[str, Any] = {}
    try:
        yield result_info
    except Exception:
        duration_ms = (time.perf_counter() - start) * 1000.0
        log_action(action, outcome="error", duration_ms=duration_ms, **fields, **result_info)
        raise
    duration_ms = (time.perf_counter() - start) * 1000.0
    log_action(action, outcome="ok", duration_ms=duration_ms, **fields, **result_info)


# ----------------------------------------------------------------------
# Injected observer
# ----------------------------------------------------------------------


class Observer:
    """Receives what the workspace operations would otherwise log.

    Bootstrap, branch resolution and publishing take an observer instead of
    calling the logger directly. The base class forwards everything to the
    module-level logging functions.
    """

    def event(self, action: str, **fields: Any) -> None:
        log_action(action, **fields)

    def debug(self, message: str, **fields: Any) -> None:
        log_debug(message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        log_warning(message, **fields)

    def progress(self, text: str) -> None:
        log_debug(text)


LoggingObserver = Observer


class NullObserver(Observer):
    """Discards every notification."""

    def event(self, action: str, **fields: Any) -> None:
        pass

    def debug(self, message: str, **fields: Any) -> None:
        pass

    def warning(self, message: str, **fields: Any) -> None:
        pass

    def progress(self, text: str) -> None:
        pass


def resolve_observer(observer: Optional[Observer]) -> Observer:
    return observer if observer is not None else LoggingObserver()


class ObserverProgress(RemoteProgress):
    """Progress sink for clone/fetch/push that forwards lines to an observer."""

    def __init__(self, observer: Observer, operation: str):
        super().__init__()
        self._observer = observer
        self._operation = operation

    def update(self, op_code, cur_count, max_count=None, message=""):
        # Only report stage boundaries; per-object ticks are too chatty.
        if not op_code & (self.BEGIN | self.END):
            return
        total = f"/{int(max_count)}" if max_count else ""
        line = f"{self._operation}: {self._cur_line or ''}".rstrip()
        if cur_count is not None:
            line = f"{line} [{int(cur_count)}{total}]"
        self._observer.progress(line)
