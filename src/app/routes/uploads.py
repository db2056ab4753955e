from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from src.app.auth import require_user
from src.app.db import db_session
from src.app.deps import get_config, get_store
from src.app.utils import http_errors
from src.core.storage import UploadStore
from src.leakfinder.config import LeaksConfig
from src.leakfinder.service import create_csv_upload, delete_upload, upload_history


router = APIRouter(prefix="/api/uploads", tags=["uploads"])


@router.post("/csv")
async def uploads_csv(
    file: UploadFile = File(...),
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
    store: UploadStore = Depends(get_store),
    cfg: LeaksConfig = Depends(get_config),
):
    content = await file.read()
    with http_errors():
        up, preview = create_csv_upload(
            session, store, user_id=user, name=file.filename or "upload.csv", content=content, cfg=cfg
        )
    return {"upload_id": up.id, "columns": list(up.columns_json or []), "preview": preview}


@router.get("/history")
def uploads_history(
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
    cfg: LeaksConfig = Depends(get_config),
):
    return upload_history(session, user, cfg)


@router.delete("/{upload_id}")
def uploads_delete(
    upload_id: int,
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
    store: UploadStore = Depends(get_store),
):
    with http_errors():
        delete_upload(session, store, user_id=user, upload_id=upload_id)
    return {"ok": True}
