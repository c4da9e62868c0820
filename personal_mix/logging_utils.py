"""
Logging setup and run-reporting helpers for Personal Mix.

main_app.py calls configure_logging() once; every other module just does
`logger = logging.getLogger(__name__)`. Handlers installed here carry a tag
so a forced reconfiguration replaces them without touching handlers that
pytest or an embedding host attached to the root logger.
"""
import logging
import os
import re
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

_logging_configured = False
_run_id: Optional[str] = None
_HANDLER_TAG = "_personal_mix_handler"

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)s | %(message)s"
_CONSOLE_FORMAT_RUN = "%(asctime)s | %(levelname)-5s | %(name)s | run_id=%(run_id)s | %(message)s"
_FILE_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)s | %(funcName)s:%(lineno)d | run_id=%(run_id)s | %(message)s"

_REDACTIONS = (
    (re.compile(r'(["\']?(?:api[_-]?key|token|secret|password)["\']?\s*[:=]\s*["\']?)([^"\'\s]+)(["\']?)',
                re.IGNORECASE), r"\1***REDACTED***\3"),
    (re.compile(r"C:\\Users\\[^\\]+", re.IGNORECASE), r"C:\\Users\\***"),
    (re.compile(r"/home/[^/]+"), "/home/***"),
    (re.compile(r"/Users/[^/]+"), "/Users/***"),
)


class RunIdFilter(logging.Filter):
    """Stamp the current run id on each record (``-`` when unset)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id or "-"
        return True


def set_run_id(run_id: Optional[str]) -> None:
    global _run_id
    _run_id = run_id


def _level_value(name: str, fallback: int) -> int:
    return getattr(logging, str(name).upper(), fallback)


def _tagged(handler: logging.Handler, level: int, fmt: str, datefmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    handler.addFilter(RunIdFilter())
    setattr(handler, _HANDLER_TAG, True)
    return handler


def configure_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    file_level: str = "DEBUG",
    force: bool = False,
    run_id: Optional[str] = None,
    console: bool = True,
    show_run_id: bool = False,
) -> None:
    """
    Install console and optional file handlers on the root logger.

    Only the first call takes effect unless force=True. The LOG_LEVEL and
    LOG_FILE environment variables override `level` and a missing `log_file`.

    Args:
        level: Console threshold (DEBUG, INFO, WARNING, ERROR)
        log_file: Also write to this file, creating parent directories
        file_level: Threshold for the file handler
        force: Replace handlers from an earlier call
        run_id: Identifier stamped on every record of this run
        console: Write to stdout
        show_run_id: Put the run id in console lines (always shown at DEBUG)
    """
    global _logging_configured

    if run_id:
        set_run_id(run_id)
    if _logging_configured and not force:
        return

    level = os.getenv("LOG_LEVEL", level).upper()
    log_file = log_file or os.getenv("LOG_FILE")

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in [h for h in root.handlers if getattr(h, _HANDLER_TAG, False)]:
        root.removeHandler(handler)
    root.filters = [f for f in root.filters if not isinstance(f, RunIdFilter)]
    root.addFilter(RunIdFilter())

    if console:
        fmt = _CONSOLE_FORMAT_RUN if (show_run_id or level == "DEBUG") else _CONSOLE_FORMAT
        root.addHandler(_tagged(
            logging.StreamHandler(sys.stdout), _level_value(level, logging.INFO), fmt, "%H:%M:%S",
        ))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(_tagged(
            logging.FileHandler(log_file, encoding="utf-8"),
            _level_value(file_level, logging.DEBUG),
            _FILE_FORMAT,
            "%Y-%m-%d %H:%M:%S",
        ))

    _logging_configured = True
    logging.getLogger(__name__).debug(
        "Logging ready: console=%s file=%s run_id=%s", level if console else "off", log_file or "none", _run_id or "-",
    )


def _format_elapsed(seconds: float, *, millis: bool = False) -> str:
    if millis and seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    return f"{int(seconds // 60)}m {seconds % 60:.0f}s"


@contextmanager
def stage_timer(stage_name: str, logger: Optional[logging.Logger] = None):
    """
    Log how long a generation phase took, even when it raises.

        with stage_timer("Scoring (My Personal Mix)", logger):
            scored = scorer.score_all(tracks, user, history)
    """
    logger = logger or logging.getLogger(__name__)
    logger.debug("%s starting", stage_name)
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.info("%s completed in %s", stage_name, _format_elapsed(time.perf_counter() - started, millis=True))


def redact(value: Any) -> str:
    """Mask home directories and credential-looking values before they reach a log line."""
    if value is None:
        return "None"
    text = str(value)
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def format_count(n: int, singular: str, plural: Optional[str] = None) -> str:
    """``1 track``, ``1,500 tracks``."""
    word = singular if n == 1 else (plural or singular + "s")
    return f"{n:,} {word}"


def truncate_list(items: List[Any], max_items: int = 3, format_fn: Callable[[Any], str] = str) -> str:
    """Join the first few items, noting how many were left out: ``rock, jazz (+4 more)``."""
    if not items:
        return "(none)"
    shown = ", ".join(format_fn(item) for item in items[:max_items])
    hidden = len(items) - max_items
    return f"{shown} (+{hidden} more)" if hidden > 0 else shown


def add_logging_args(parser) -> None:
    group = parser.add_argument_group("logging")
    group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Console log level (default: INFO, or logging.level from the config)",
    )
    group.add_argument("--debug", action="store_true", help="Same as --log-level DEBUG")
    group.add_argument("--quiet", action="store_true", help="Same as --log-level WARNING")
    group.add_argument("--log-file", type=str, metavar="PATH", help="Also write a DEBUG log to PATH")


def resolve_log_level(args) -> str:
    """--debug beats --quiet, which beats --log-level."""
    if getattr(args, "debug", False):
        return "DEBUG"
    if getattr(args, "quiet", False):
        return "WARNING"
    return getattr(args, "log_level", "INFO")


class RunSummary:
    """
    Counters collected over a batch run, logged as a block at the end.

        summary = RunSummary("Playlist generation", logger)
        summary.increment("succeeded")
        summary.add("configured", len(playlist_configs))
        summary.log()
    """

    def __init__(self, title: str, logger: Optional[logging.Logger] = None):
        self.title = title
        self.logger = logger or logging.getLogger(__name__)
        self.metrics: Dict[str, Union[int, float, str]] = {}
        self.timing: Optional[float] = None
        self.start_time = time.perf_counter()

    def add(self, key: str, value: Union[int, float, str]) -> None:
        self.metrics[key] = value

    def increment(self, key: str, amount: int = 1) -> None:
        self.metrics[key] = self.metrics.get(key, 0) + amount

    def set_timing(self, seconds: float) -> None:
        """Override the elapsed time (defaults to time since construction)."""
        self.timing = seconds

    def _lines(self, elapsed: float) -> Iterable[str]:
        yield f"{self.title.upper()} SUMMARY"
        for key, value in self.metrics.items():
            shown = f"{value:.2f}" if isinstance(value, float) else str(value)
            yield f"  {key.replace('_', ' ').title()}: {shown}"
        yield f"  Total Time: {_format_elapsed(elapsed)}"

    def log(self, level: int = logging.INFO) -> None:
        elapsed = self.timing if self.timing is not None else time.perf_counter() - self.start_time
        rule = "=" * 60
        self.logger.log(level, rule)
        for line in self._lines(elapsed):
            self.logger.log(level, line)
        self.logger.log(level, rule)
