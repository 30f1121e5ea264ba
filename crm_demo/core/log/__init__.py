"""Logging for the demo generator: rich console output, per-tool daily files, progress bars.

Every entry point (API, ``gen_demo_tenant``, ``cleanup_demo``) calls
:func:`init_logging` once with its own ``app_name``; library modules only ever
call :func:`get_logger`. Records carry the bound job/tenant context from
:data:`log_context`, so a chunked invocation can be followed across files.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import SimpleQueue
from threading import RLock
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install as install_rich_traceback

from ..config import LoggingSettings
from .context import ContextFilter, log_context
from .progress import progress_manager
from .timing import timeit

__all__ = [
    "init_logging",
    "get_logger",
    "set_level",
    "shutdown_logging",
    "log_context",
    "progress_manager",
    "timeit",
]

# Faker announces locale loading at DEBUG and SQLAlchemy echoes every batch
# insert at INFO; neither belongs in generator output.
NOISY_LOGGERS: dict[str, int] = {
    "faker": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
}

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(context)s%(message)s"


@dataclass(frozen=True)
class LoggingConfig:
    app_name: str = "crm_demo"
    level: str | int = "INFO"
    log_dir: Optional[Path] = Path("logs")
    console: bool = True
    rich_tracebacks: bool = True
    queue: bool = True
    quiet: dict[str, int] = field(default_factory=lambda: dict(NOISY_LOGGERS))

    @classmethod
    def from_settings(cls, settings: LoggingSettings, **overrides: object) -> "LoggingConfig":
        cfg = cls(level=settings.level, log_dir=settings.log_dir)
        known = {key: value for key, value in overrides.items() if hasattr(cfg, key)}
        return replace(cfg, **known)  # type: ignore[arg-type]


_lock = RLock()
_active: LoggingConfig | None = None
_listener: QueueListener | None = None
_context_filter = ContextFilter()


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


class DailyFileHandler(logging.FileHandler):
    """One file per tool per day, e.g. ``logs/gen-demo-tenant_2024_06_15.log``."""

    def __init__(self, directory: Path, app_name: str, *, encoding: str = "utf-8") -> None:
        self.directory = directory
        self.app_name = app_name
        self.directory.mkdir(parents=True, exist_ok=True)
        self._day: date = datetime.now().date()
        super().__init__(self._path_for(self._day), mode="a", encoding=encoding)

    def _path_for(self, day: date) -> Path:
        return self.directory / f"{self.app_name}_{day:%Y_%m_%d}.log"

    def emit(self, record: logging.LogRecord) -> None:
        day = datetime.fromtimestamp(record.created).date()
        if day != self._day:
            self._day = day
            if self.stream:
                try:
                    self.stream.flush()
                finally:
                    self.stream.close()
            self.baseFilename = os.fspath(self._path_for(day))
            self.stream = self._open()
        super().emit(record)


def _console_handler(level: int, rich_tracebacks: bool) -> logging.Handler:
    console = Console(stderr=True)
    progress_manager.use_console(console)
    handler = RichHandler(
        console=console,
        rich_tracebacks=rich_tracebacks,
        show_path=False,
        markup=False,
        log_time_format="%Y-%m-%d %H:%M:%S",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(context)s%(message)s"))
    return handler


def _file_handler(cfg: LoggingConfig, level: int) -> logging.Handler:
    handler = DailyFileHandler(Path(cfg.log_dir), cfg.app_name)  # type: ignore[arg-type]
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def init_logging(settings: LoggingSettings | None = None, **overrides: object) -> None:
    """Configure the root logger for one entry point.

    ``settings`` defaults to ``LOG_LEVEL``/``LOG_DIR`` from the environment and
    keyword ``overrides`` win over it. Calling again with the same resulting
    configuration is a no-op; a different one replaces the handlers.
    """

    cfg = LoggingConfig.from_settings(settings or LoggingSettings.from_env(), **overrides)
    with _lock:
        global _active, _listener
        if _active == cfg:
            return
        if _active is not None:
            _teardown_locked()

        level = _parse_level(cfg.level)
        if cfg.rich_tracebacks:
            install_rich_traceback(show_locals=False)

        handlers: list[logging.Handler] = []
        if cfg.console:
            handlers.append(_console_handler(level, cfg.rich_tracebacks))
        if cfg.log_dir:
            handlers.append(_file_handler(cfg, level))
        for handler in handlers:
            handler.addFilter(_context_filter)

        root = logging.getLogger()
        root.setLevel(logging.NOTSET)
        for handler in list(root.handlers):
            root.removeHandler(handler)

        if cfg.queue and handlers:
            log_queue: SimpleQueue = SimpleQueue()
            queue_handler = QueueHandler(log_queue)
            queue_handler.setLevel(level)
            # Context must be captured on the producing thread.
            queue_handler.addFilter(_context_filter)
            root.addHandler(queue_handler)
            _listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
            _listener.start()
        else:
            for handler in handlers:
                root.addHandler(handler)

        for name, quiet_level in cfg.quiet.items():
            logging.getLogger(name).setLevel(quiet_level)
        _active = cfg


def _teardown_locked() -> None:
    global _listener, _active
    if _listener:
        _listener.stop()
    _listener = None
    _active = None
    progress_manager.reset_console()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def shutdown_logging() -> None:
    """Flush and detach every handler; scripts call this on exit."""

    with _lock:
        _teardown_locked()


def get_logger(name: str | None = None) -> logging.Logger:
    with _lock:
        if _active is None:
            init_logging()
        return logging.getLogger(name or _active.app_name)  # type: ignore[union-attr]


def set_level(level: str | int) -> None:
    new_level = _parse_level(level)
    for handler in logging.getLogger().handlers:
        handler.setLevel(new_level)
    if _listener is not None:
        for handler in _listener.handlers:
            handler.setLevel(new_level)
