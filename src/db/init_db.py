from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

from src.db.models import Base
from src.db.session import get_database_url, get_engine, sqlite_file


log = logging.getLogger(__name__)


def init_db(engine: Engine | None = None) -> None:
    if engine is None:
        path = sqlite_file(get_database_url())
        if path is not None:
            path.parent.mkdir(parents=True, exist_ok=True)
        engine = get_engine()
    Base.metadata.create_all(bind=engine)
    log.info("Database schema ready (%s)", engine.url.render_as_string(hide_password=True))
