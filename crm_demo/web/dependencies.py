"""Request-scoped database sessions for the demo generator API."""
from __future__ import annotations

from collections.abc import Generator
from functools import lru_cache

from sqlalchemy.orm import Session, sessionmaker

from crm_demo.db.session import get_sessionmaker


@lru_cache(maxsize=1)
def session_factory() -> sessionmaker:
    """Build the engine on first request, not at import time."""

    return get_sessionmaker()


def get_db_session() -> Generator[Session, None, None]:
    """Yield a session; anything left uncommitted by a failed request is rolled back."""

    session = session_factory()()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
