from __future__ import annotations

from collections.abc import Generator

from sqlalchemy.orm import Session

from src.db.session import get_session


def db_session() -> Generator[Session, None, None]:
    """Request-scoped session; anything left uncommitted when the request fails is rolled back."""
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
