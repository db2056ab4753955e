from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI

from src.app.routes.expenses import router as expenses_router
from src.app.routes.findings import router as findings_router
from src.app.routes.plans import router as plans_router
from src.app.routes.scans import router as scans_router
from src.app.routes.tax import router as tax_router
from src.app.routes.uploads import router as uploads_router
from src.db.init_db import init_db


load_dotenv()

log = logging.getLogger(__name__)


def configure_logging() -> None:
    level = (os.environ.get("LOG_LEVEL") or "INFO").strip().upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def create_app(*, init_database: bool = True) -> FastAPI:
    configure_logging()
    app = FastAPI(title="leakfinder", version="0.1.0")

    if init_database:

        @app.on_event("startup")
        def _startup() -> None:
            init_db()

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(uploads_router)
    app.include_router(scans_router)
    app.include_router(findings_router)
    app.include_router(plans_router)
    app.include_router(tax_router)
    app.include_router(expenses_router)
    return app


app = create_app()
