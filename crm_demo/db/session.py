"""Session factories for the API and the command-line tools."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session, sessionmaker

from .engine import create_sync_engine


def get_sessionmaker(url: str | None = None, **kwargs) -> sessionmaker:
    """Return a ``sessionmaker`` on a fresh engine for ``url``.

    Objects stay loaded after commit: the generator reads its job row back
    between batches and must not re-select it after every checkpoint.
    """

    engine = create_sync_engine(url, **kwargs)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Yield a session for a script run.

    Services commit their own units of work, so the scope only rolls back what
    an exception left pending and closes the session.
    """

    session = factory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
