from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from src.app.auth import require_user
from src.app.db import db_session
from src.app.deps import get_config, get_store, get_text_generator
from src.app.utils import http_errors
from src.core.storage import UploadStore
from src.core.text_generation import TextGenerator
from src.leakfinder.config import LeaksConfig
from src.leakfinder.scan.models import ColumnMapping
from src.leakfinder.service import (
    create_demo_scan,
    current_scan,
    delete_scans,
    scan_from_upload,
    serialize_finding,
)


router = APIRouter(prefix="/api/scans", tags=["scans"])


class ScanFromCsvRequest(BaseModel):
    upload_id: int
    mapping: Optional[ColumnMapping] = None


@router.post("/from-csv")
def scans_from_csv(
    body: ScanFromCsvRequest,
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
    store: UploadStore = Depends(get_store),
    cfg: LeaksConfig = Depends(get_config),
    generator: Optional[TextGenerator] = Depends(get_text_generator),
):
    if body.mapping is None:
        raise HTTPException(status_code=400, detail="Missing column mapping (date, label and amount are required).")
    with http_errors():
        return scan_from_upload(
            session,
            store,
            user_id=user,
            upload_id=body.upload_id,
            mapping=body.mapping,
            cfg=cfg,
            generator=generator,
        )


@router.post("/demo")
def scans_demo(
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
    cfg: LeaksConfig = Depends(get_config),
):
    return create_demo_scan(session, user_id=user, cfg=cfg)


@router.delete("")
def scans_delete_all(
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
):
    return {"deleted": delete_scans(session, user_id=user)}


@router.get("/current")
def scans_current(
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
):
    scan = current_scan(session, user)
    if scan is None:
        raise HTTPException(status_code=404, detail="No scan yet.")
    return {
        "id": scan.id,
        "status": scan.status,
        "started_at": scan.started_at.isoformat(),
        "finished_at": scan.finished_at.isoformat() if scan.finished_at else None,
        "summary": dict(scan.summary_json or {}),
        "findings": [serialize_finding(f) for f in scan.findings],
    }
