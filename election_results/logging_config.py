"""
Logging setup for the election results pipeline.

Console output is human-readable; file output is JSON Lines so a run can
be grepped or loaded back into pandas. Every record carries the run id
and the election currently being processed.

Usage:
    from election_results.logging_config import get_pipeline_logger
    log = get_pipeline_logger(__name__)
"""

import json
import logging
import os
import time
import uuid
from logging.handlers import RotatingFileHandler


_run_id = None
_election = None


def get_run_id():
    """Return the current run id, generating one on first use."""
    global _run_id
    if _run_id is None:
        _run_id = uuid.uuid4().hex[:8]
    return _run_id


def set_run_id(run_id=None):
    """Set (or regenerate) the run id."""
    global _run_id
    _run_id = run_id or uuid.uuid4().hex[:8]
    return _run_id


def set_election(election):
    """Tag subsequent log records with an election label (None clears it)."""
    global _election
    _election = None if election is None else str(election)


class ContextFilter(logging.Filter):
    """Inject run_id and election into every log record."""

    def filter(self, record):
        record.run_id = get_run_id()
        record.election = _election
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    EXTRA_KEYS = (
        "step_name", "input_summary", "output_summary",
        "timing_seconds", "warnings", "constituency",
    )

    def format(self, record):
        entry = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S.")
                         + f"{int(record.msecs):03d}",
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "run_id": getattr(record, "run_id", None),
            "election": getattr(record, "election", None),
            "message": record.getMessage(),
        }
        for key in self.EXTRA_KEYS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


_configured = False
_run_dir_handler = None
_installed = []


def _install(root, handler, level, formatter):
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    root.addHandler(handler)
    _installed.append(handler)
    return handler


def setup_logging(run_dir=None, console_level=None, file_level=logging.DEBUG,
                  log_dir=None):
    """Configure the root logger.

    Safe to call more than once: handlers are only installed on the first
    call, and the per-run file handler is added the first time a run_dir
    is given.

    Parameters
    ----------
    run_dir : str, optional
        If given, also write ``{run_dir}/pipeline.jsonl``.
    console_level : int, optional
        Defaults to the LOG_LEVEL environment variable, else INFO.
    file_level : int
        Level for the file handlers.
    log_dir : str, optional
        Directory for the rotating ``pipeline.log``. Defaults to
        ``./logs``; set ELECTION_LOG_DIR to override.
    """
    global _configured, _run_dir_handler

    if console_level is None:
        env_level = os.environ.get("LOG_LEVEL", "INFO").upper()
        console_level = getattr(logging, env_level, logging.INFO)

    root = logging.getLogger()

    if not _configured:
        root.setLevel(logging.DEBUG)

        _install(root, logging.StreamHandler(), console_level, ConsoleFormatter())

        if log_dir is None:
            log_dir = os.environ.get(
                "ELECTION_LOG_DIR", os.path.join(os.getcwd(), "logs")
            )
        os.makedirs(log_dir, exist_ok=True)
        rotating = RotatingFileHandler(
            os.path.join(log_dir, "pipeline.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
        )
        _install(root, rotating, file_level, JsonFormatter())

        _configured = True

    if run_dir and _run_dir_handler is None:
        os.makedirs(run_dir, exist_ok=True)
        fh = logging.FileHandler(os.path.join(run_dir, "pipeline.jsonl"))
        _run_dir_handler = _install(root, fh, file_level, JsonFormatter())


def reset_logging():
    """Remove the handlers setup_logging() installed and clear the context."""
    global _configured, _run_dir_handler, _run_id, _election

    root = logging.getLogger()
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()

    _configured = False
    _run_dir_handler = None
    _run_id = None
    _election = None


def get_pipeline_logger(name):
    """Return a module logger.

    Handlers are installed lazily by setup_logging() at the entry point,
    so importing a module never creates log files.
    """
    return logging.getLogger(name)


def log_step_summary(
    logger,
    step_name,
    status="success",
    input_summary=None,
    output_summary=None,
    timing_seconds=None,
    warnings_list=None,
):
    """Log a one-line step summary with the details as structured extras."""
    parts = [f"[{step_name}] {status}"]
    if timing_seconds is not None:
        parts.append(f"({timing_seconds:.2f}s)")
    if output_summary:
        parts.append(f"output={output_summary}")

    extra = {"step_name": step_name}
    if input_summary:
        extra["input_summary"] = input_summary
    if output_summary:
        extra["output_summary"] = output_summary
    if timing_seconds is not None:
        extra["timing_seconds"] = timing_seconds
    if warnings_list:
        extra["warnings"] = warnings_list

    level = logging.ERROR if status == "error" else logging.INFO
    logger.log(level, " ".join(parts), extra=extra)


class StepTimer:
    """Context manager recording wall-clock time in ``elapsed``."""

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed = time.perf_counter() - self.start
