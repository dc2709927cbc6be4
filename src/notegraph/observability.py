"""Logging, timing and per-operation metrics for notegraph.

Store and service methods are wrapped with ``@traced``, which times the
call, logs START/END lines at DEBUG and feeds the process-wide ``metrics``
collector. ``configure_logging`` is opt-in; without it log records go
wherever the host application sends the ``notegraph`` logger.
"""
import functools
import json
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path.home() / ".notegraph" / "logs"
DEFAULT_METRICS_FILE = Path.home() / ".notegraph" / "metrics.json"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

F = TypeVar("F", bound=Callable[..., Any])


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: Optional[int] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    console: bool = True,
) -> Path:
    """Attach a rotating ``notegraph.log`` file (and a console stream) to the
    ``notegraph`` logger.

    Calling it again with the same directory does not stack handlers.

    Args:
        log_dir: Where the log file lives. Defaults to ~/.notegraph/logs/
        level: Logging level. Defaults to the configured ``log_level``.
        max_bytes: Size at which the file is rotated.
        backup_count: Rotated files kept on disk.
        console: Whether to add a stderr handler as well.

    Returns:
        The log directory.
    """
    if level is None:
        from notegraph.config import config

        level = config.get_log_level()

    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = (log_path / "notegraph.log").resolve()

    package_logger = logging.getLogger("notegraph")
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers = package_logger.handlers
    has_file = any(
        isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == log_file
        for h in handlers
    )
    has_console = any(type(h) is logging.StreamHandler for h in handlers)

    new_handlers = []
    if not has_file:
        new_handlers.append(
            RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )
    if console and not has_console:
        new_handlers.append(logging.StreamHandler())
    for handler in new_handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    package_logger.info(f"Logging to {log_file} (rotate at {max_bytes} bytes, keep {backup_count})")
    return log_path


def _sanitize_error_message(message: Optional[str], max_length: int = 200) -> Optional[str]:
    """Collapse an error message to one bounded line with the home dir as ``~``."""
    if message is None:
        return None
    flat = " ".join(message.replace(str(Path.home()), "~").split())
    if len(flat) > max_length:
        return flat[: max_length - 3] + "..."
    return flat


@dataclass
class OperationMetrics:
    """Running totals for one operation name."""
    count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: Optional[float] = None
    max_duration_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None

    def add(self, duration_ms: float, success: bool, error: Optional[str]) -> None:
        self.count += 1
        self.total_duration_ms += duration_ms
        if self.min_duration_ms is None or duration_ms < self.min_duration_ms:
            self.min_duration_ms = duration_ms
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if success:
            self.success_count += 1
            return
        self.error_count += 1
        self.last_error = _sanitize_error_message(error)
        self.last_error_time = datetime.now(timezone.utc)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "success_rate": self.success_count / self.count if self.count else 0,
            "avg_duration_ms": round(self.total_duration_ms / self.count, 2) if self.count else 0,
            "min_duration_ms": round(self.min_duration_ms or 0, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
        }


class MetricsCollector:
    """Thread-safe per-operation counters, optionally persisted as JSON.

    Args:
        metrics_file: Where ``save_metrics`` writes. Defaults to
            ~/.notegraph/metrics.json
        auto_save_interval: Write the file every N recorded operations
            (0 disables it).
    """

    def __init__(
        self,
        metrics_file: Optional[Union[str, Path]] = None,
        auto_save_interval: int = 0,
    ):
        self.metrics_file = Path(metrics_file) if metrics_file else DEFAULT_METRICS_FILE
        self._auto_save_interval = auto_save_interval
        self._operations: Dict[str, OperationMetrics] = {}
        self._lock = Lock()
        self._unsaved = 0

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._operations.setdefault(operation, OperationMetrics()).add(
                duration_ms, success, error
            )
            self._unsaved += 1
            if 0 < self._auto_save_interval <= self._unsaved:
                self._write_unlocked()

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of every operation seen so far, keyed by name."""
        with self._lock:
            return {name: m.snapshot() for name, m in self._operations.items()}

    def reset(self) -> None:
        with self._lock:
            self._operations.clear()
            self._unsaved = 0

    def save_metrics(self) -> bool:
        """Write the snapshot to ``metrics_file``; False if the write failed."""
        with self._lock:
            return self._write_unlocked()

    def _write_unlocked(self) -> bool:
        payload = {
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "operations": {name: m.snapshot() for name, m in self._operations.items()},
        }
        tmp = self.metrics_file.with_suffix(".tmp")
        try:
            self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp.replace(self.metrics_file)
        except OSError as e:
            logger.error(f"Could not write metrics to {self.metrics_file}: {e}")
            return False
        self._unsaved = 0
        return True


metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context):
    """Time a block and record it under ``operation``.

    The yielded dict is echoed in the END log line, so callers can attach
    details such as ``result_count``.

        with timed_operation("search_notes", query=q) as op:
            op["result_count"] = len(run())
    """
    correlation_id = uuid.uuid4().hex[:8]
    info: Dict[str, Any] = {}
    details = ", ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{correlation_id}] START {operation} ({details})")

    started = time.perf_counter()
    error: Optional[str] = None
    try:
        yield info
    except Exception as e:
        error = str(e)
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        metrics.record_operation(operation, elapsed_ms, error is None, error)
        outcome = "OK" if error is None else f"ERROR: {error}"
        extra = ", ".join(f"{k}={v}" for k, v in info.items())
        logger.debug(
            f"[{correlation_id}] END {operation} ({elapsed_ms:.2f}ms) [{outcome}] {extra}"
        )


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Wrap a function in ``timed_operation``, named after it by default.

    A ``note_id`` or ``title`` keyword argument is included in the START
    line; collection results report their length.
    """
    def decorator(func: F) -> F:
        name = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            context = {}
            if "note_id" in kwargs:
                context["note_id"] = kwargs["note_id"]
            elif kwargs.get("title"):
                context["title"] = kwargs["title"][:50]

            with timed_operation(name, **context) as op:
                result = func(*args, **kwargs)
                if isinstance(result, (list, tuple, set, dict)):
                    op["result_count"] = len(result)
                return result

        return wrapper  # type: ignore
    return decorator
