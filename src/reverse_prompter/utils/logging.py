"""Logging setup for the reverse prompter command line tool.

Everything goes to a rotating log file. The console handler writes to stderr
with a shorter format because stdout may be carrying the edited document.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

__all__ = ["setup_logging"]

_DEFAULT_LOG_DIR = Path.home() / ".reverse_prompter" / "logs"
_LOG_FILE_NAME = "reverse_prompter.log"
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_CONSOLE_FORMAT = "reverse-prompter: %(levelname)s: %(message)s"
# SDK and transport loggers echo request bodies at DEBUG
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    console_level: int | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Route root logging to ``reverse_prompter.log`` and optionally stderr.

    Args:
        level: Level for the root logger and the log file.
        log_dir: Directory for the log file. Falls back to
            ``REVERSE_PROMPTER_LOG_DIR`` and then ``~/.reverse_prompter/logs``.
        console: Whether to attach a stderr handler.
        console_level: Level for the stderr handler, defaults to ``level``.
        force: Reconfigure even if logging was already set up.

    Returns:
        The path of the active log file.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handlers: list[logging.Handler] = [file_handler]

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level if console_level is None else console_level)
        console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
        handlers.append(console_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _quiet_dependencies(level)

    _LOG_PATH = log_path
    return log_path


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    configured = log_dir or os.environ.get("REVERSE_PROMPTER_LOG_DIR") or _DEFAULT_LOG_DIR
    return Path(configured).expanduser()


def _quiet_dependencies(root_level: int) -> None:
    floor = max(root_level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(floor)
