from __future__ import annotations

import logging
import platform
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pythonjsonlogger import jsonlogger

from mailpilot import __version__

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LAUNCH_STAMP_FORMAT = "%Y%m%d_%H%M%S"
BANNER_RULE = "=" * 40


@dataclass(slots=True)
class LaunchLog:
    session_id: str
    text_path: Path
    json_path: Path
    started_at: datetime


class SessionIdFilter(logging.Filter):
    """Stamps every record with the id of the launch that produced it."""

    def __init__(self, session_id: str):
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = self.session_id
        return True


class LevelAwareFormatter(logging.Formatter):
    """Plain lines for routine records; errors also carry the source location."""

    def __init__(self, fmt: str, error_fmt: str, datefmt: str | None = None):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._error_formatter = logging.Formatter(fmt=error_fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            return self._error_formatter.format(record)
        return super().format(record)


def _launch_paths(log_dir: Path, started_at: datetime) -> tuple[Path, Path]:
    stem = f"mailpilot-{started_at.strftime(LAUNCH_STAMP_FORMAT)}"
    candidate = stem
    counter = 1
    # two launches within the same second must not share a file
    while (log_dir / f"{candidate}.log").exists() or (log_dir / f"{candidate}.jsonl").exists():
        candidate = f"{stem}-{counter}"
        counter += 1
    return log_dir / f"{candidate}.log", log_dir / f"{candidate}.jsonl"


def _attach(
    root: logging.Logger,
    handler: logging.Handler,
    formatter: logging.Formatter,
    session_filter: SessionIdFilter,
) -> None:
    handler.setFormatter(formatter)
    handler.addFilter(session_filter)
    root.addHandler(handler)


def configure_logging(log_dir: Path, session_id: str, level: int = logging.INFO) -> LaunchLog:
    """Route the root logger to the console and to a fresh text/JSON-lines file pair.

    Each launch gets its own pair named after the launch time. Handlers left by a
    previous call are closed first, so reconfiguring never leaks file handles.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    started_at = datetime.now()
    text_path, json_path = _launch_paths(log_dir, started_at)

    root = logging.getLogger()
    close_logging()
    root.handlers.clear()
    root.setLevel(level)

    session_filter = SessionIdFilter(session_id)
    text_formatter = LevelAwareFormatter(
        fmt="%(asctime)s [%(levelname)s] [%(session_id)s] %(name)s: %(message)s",
        error_fmt="%(asctime)s [%(levelname)s] [%(session_id)s] %(name)s %(filename)s:%(lineno)d: %(message)s",
        datefmt=DATE_FORMAT,
    )
    json_formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(session_id)s %(filename)s %(lineno)d %(message)s"
    )

    _attach(root, logging.StreamHandler(), text_formatter, session_filter)
    _attach(root, logging.FileHandler(text_path, encoding="utf-8"), text_formatter, session_filter)
    _attach(root, logging.FileHandler(json_path, encoding="utf-8"), json_formatter, session_filter)
    return LaunchLog(session_id=session_id, text_path=text_path, json_path=json_path, started_at=started_at)


def close_logging() -> None:
    """Detach and close the handlers installed by configure_logging."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if any(isinstance(f, SessionIdFilter) for f in handler.filters):
            root.removeHandler(handler)
            handler.close()


def get_logger(name: str, session_id: str) -> logging.LoggerAdapter:
    base_logger = logging.getLogger(name)
    return logging.LoggerAdapter(base_logger, extra={"session_id": session_id})


def build_info() -> dict[str, str]:
    return {
        "version": __version__,
        "python": platform.python_version(),
        "os": platform.system(),
        "arch": platform.machine(),
    }


def log_startup_info(
    logger: logging.Logger | logging.LoggerAdapter,
    config_files: list[Path],
    launch: LaunchLog | None = None,
) -> None:
    info = build_info()
    logger.info(BANNER_RULE)
    logger.info("mailpilot started")
    logger.info("version: %s", info["version"])
    logger.info("os/arch: %s/%s", info["os"], info["arch"])
    logger.info("python: %s", info["python"])
    if launch is not None:
        logger.info("started at: %s", launch.started_at.strftime(DATE_FORMAT))
        logger.info("log file: %s", launch.text_path)
    logger.info("argv: %s", sys.argv)
    if config_files:
        for path in config_files:
            logger.info("config file: %s", path)
    else:
        logger.info("config file: none (defaults)")
    logger.info(BANNER_RULE)
