"""Structured logging for cargoqr: AUDIT events plus entry/exit tracing."""

import functools
import inspect
import json
import logging
import sys
import time
import traceback
from datetime import datetime, timezone

# Sits between WARNING (30) and ERROR (40) so audit events survive a WARNING filter
AUDIT = 35
logging.addLevelName(AUDIT, "AUDIT")

ROOT_LOGGER = "cargoqr"


def _truncate(value: object, max_len: int = 80) -> str:
    s = str(value)
    if len(s) > max_len:
        return s[:max_len] + "..."
    return s


def _summarize(value: object) -> str:
    """Short, log-safe description of an argument or return value."""
    size = getattr(value, "size", None)
    if "Image" in type(value).__name__ and isinstance(size, tuple):
        return f"<{type(value).__name__} {size[0]}x{size[1]}>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes[{len(value)}]>"
    if isinstance(value, (str, int, float, bool)) or value is None:
        return _truncate(repr(value), 80)
    if isinstance(value, (list, tuple)):
        return f"{type(value).__name__}[{len(value)}]"
    if isinstance(value, dict):
        return f"dict[{len(value)} keys]"
    return f"<{type(value).__name__}>"


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record):
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "src": record.name,
        }
        if hasattr(record, "event"):
            entry["event"] = record.event
        if hasattr(record, "duration_ms"):
            entry["duration_ms"] = round(record.duration_ms, 2)
        if hasattr(record, "ctx"):
            entry["ctx"] = record.ctx
        if record.getMessage() and not hasattr(record, "event"):
            entry["msg"] = record.getMessage()
        if record.exc_info and record.exc_info[1]:
            entry["traceback"] = traceback.format_exception(*record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable colored console output."""

    COLORS = {
        "DEBUG": "\033[36m",    # cyan
        "INFO": "\033[32m",     # green
        "AUDIT": "\033[35m",    # magenta
        "WARNING": "\033[33m",  # yellow
        "ERROR": "\033[31m",    # red
    }
    RESET = "\033[0m"

    def format(self, record):
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        color = self.COLORS.get(record.levelname, "")
        parts = [ts, f"{color}{record.levelname:5s}{self.RESET}", f"[{record.name}]"]

        if hasattr(record, "event"):
            parts.append(record.event)
        if hasattr(record, "duration_ms"):
            parts.append(f"({record.duration_ms:.1f}ms)")

        if getattr(record, "ctx", None):
            parts.append(" ".join(f"{k}={_truncate(v)}" for k, v in record.ctx.items()))
        elif record.getMessage() and not hasattr(record, "event"):
            parts.append(record.getMessage())

        if record.exc_info and record.exc_info[1]:
            parts.append(f"\n{''.join(traceback.format_exception(*record.exc_info))}")

        return " ".join(parts)


def setup_logging(level: str = "INFO", log_file: str | None = None, json_format: bool = False):
    """Configure the root cargoqr logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, AUDIT).
        log_file: If set, also write JSON lines to this path.
        json_format: Use JSON on the console as well.
    """
    root = logging.getLogger(ROOT_LOGGER)
    name = level.upper()
    root.setLevel(AUDIT if name == "AUDIT" else getattr(logging, name, logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JsonFormatter() if json_format else ConsoleFormatter())
    root.addHandler(console)

    if log_file:
        fh = logging.FileHandler(log_file)
        fh.setFormatter(JsonFormatter())
        root.addHandler(fh)


def get_logger(module_name: str) -> logging.Logger:
    """Logger scoped under the cargoqr namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{module_name}")


def _emit(log: logging.Logger, level: int, event: str, ctx: dict,
          duration_ms: float | None = None, exc_info=None):
    if not log.isEnabledFor(level):
        return
    record = log.makeRecord(
        name=log.name, level=level, fn="", lno=0,
        msg="", args=(), exc_info=exc_info,
    )
    record.event = event
    record.ctx = ctx
    if duration_ms is not None:
        record.duration_ms = duration_ms
    log.handle(record)


def audit(event: str, logger: logging.Logger | None = None, **context):
    """Emit an AUDIT-level structured entry.

    Args:
        event: Machine-readable event tag, e.g. ``"artifact.emitted"``.
        logger: Logger to use. Defaults to the cargoqr root.
        **context: Key-value pairs attached to the event.
    """
    _emit(logger or logging.getLogger(ROOT_LOGGER), AUDIT, event, context)


def trace(func=None, *, logger_name: str | None = None):
    """Decorator that logs entry (DEBUG), exit with timing (INFO) and errors.

    Works on plain functions and on coroutine functions; exceptions are
    logged with their traceback and re-raised unchanged.
    """
    def decorator(fn):
        _logger_name = logger_name or fn.__module__.removeprefix(f"{ROOT_LOGGER}.")
        log = get_logger(_logger_name)
        fn_name = fn.__name__

        def _enter(args, kwargs):
            if log.isEnabledFor(logging.DEBUG):
                _emit(log, logging.DEBUG, f"{fn_name}.enter", {
                    "args": [_summarize(a) for a in args],
                    "kwargs": {k: _summarize(v) for k, v in kwargs.items()},
                })
            return time.perf_counter()

        def _done(start, result):
            elapsed = (time.perf_counter() - start) * 1000
            _emit(log, logging.INFO, f"{fn_name}.done", {"result": _summarize(result)}, elapsed)

        def _error(start):
            elapsed = (time.perf_counter() - start) * 1000
            _emit(log, logging.ERROR, f"{fn_name}.error", {"function": fn_name},
                  elapsed, exc_info=sys.exc_info())

        if inspect.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def async_wrapper(*args, **kwargs):
                start = _enter(args, kwargs)
                try:
                    result = await fn(*args, **kwargs)
                except Exception:
                    _error(start)
                    raise
                _done(start, result)
                return result

            return async_wrapper

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            start = _enter(args, kwargs)
            try:
                result = fn(*args, **kwargs)
            except Exception:
                _error(start)
                raise
            _done(start, result)
            return result

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
