"""Structured log entries persisted on generation and patch jobs."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Protocol

MAX_LOG_ENTRIES = 500


class LoggedJob(Protocol):
    id: int
    logs: list[dict[str, Any]]


def append_job_log(
    job: LoggedJob,
    level: int,
    message: str,
    *,
    logger: logging.Logger,
    now: Optional[datetime] = None,
    kind: str = "job",
) -> None:
    """Mirror ``message`` to ``logger`` and append it to ``job.logs``.

    The list is reassigned rather than mutated so the JSON column is flagged
    dirty, and only the newest ``MAX_LOG_ENTRIES`` entries are kept.
    """

    logger.log(level, "[%s %s] %s", kind, job.id, message)
    entry = {
        "timestamp": (now or datetime.now()).isoformat(timespec="seconds"),
        "level": logging.getLevelName(level).lower(),
        "message": message,
    }
    job.logs = [*(job.logs or []), entry][-MAX_LOG_ENTRIES:]
