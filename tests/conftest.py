from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.core.storage import UploadStore
from src.db.models import Base
from src.leakfinder.config import LeaksConfig


@pytest.fixture()
def session() -> Session:
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)
    with SessionLocal() as s:
        yield s


@pytest.fixture()
def store(tmp_path: Path) -> UploadStore:
    return UploadStore(tmp_path / "uploads")


@pytest.fixture()
def cfg() -> LeaksConfig:
    return LeaksConfig()


@pytest.fixture()
def client(store: UploadStore, cfg: LeaksConfig, monkeypatch: pytest.MonkeyPatch):
    from fastapi.testclient import TestClient

    from src.app.db import db_session
    from src.app.deps import get_config, get_store, get_text_generator
    from src.app.main import create_app

    monkeypatch.delenv("APP_PASSWORD", raising=False)
    # One shared connection so the app's worker thread sees the same in-memory DB.
    engine = create_engine(
        "sqlite:///:memory:", future=True, connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)

    def _session():
        s = SessionLocal()
        try:
            yield s
        finally:
            s.close()

    app = create_app(init_database=False)
    app.dependency_overrides[db_session] = _session
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_config] = lambda: cfg
    app.dependency_overrides[get_text_generator] = lambda: None
    with TestClient(app) as c:
        c.session_factory = SessionLocal  # type: ignore[attr-defined]
        yield c


@pytest.fixture()
def bank_csv() -> bytes:
    """Semicolon export with decimal commas: one subscription, one bank fee, noise."""
    lines = [
        "Date;Libelle;Montant",
        "05/10/2025;CB NETFLIX.COM 05/10;-12,99",
        "05/11/2025;CB NETFLIX.COM 05/11;-12,99",
        "05/12/2025;CB NETFLIX.COM 05/12;-12,99",
        "10/10/2025;FRAIS TENUE COMPTE;-8,00",
        "10/11/2025;FRAIS TENUE COMPTE;-8,00",
        "10/12/2025;FRAIS TENUE COMPTE;-8,00",
        "12/10/2025;CARREFOUR MARKET;-54,20",
        "28/10/2025;VIREMENT SALAIRE;2 100,00",
        "not a date;broken row;abc",
    ]
    return ("\n".join(lines) + "\n").encode("utf-8")
