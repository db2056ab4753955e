from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.app.auth import require_user
from src.app.db import db_session
from src.app.deps import get_config, get_store, get_text_generator
from src.app.utils import http_errors
from src.core.storage import UploadStore
from src.core.text_generation import TextGenerator
from src.leakfinder.config import LeaksConfig
from src.leakfinder.service import append_tax_actions
from src.leakfinder.tax.actions import TaxAnswers


router = APIRouter(prefix="/api/tax", tags=["tax"])


@router.post("/actions")
def tax_actions(
    answers: TaxAnswers,
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
    store: UploadStore = Depends(get_store),
    cfg: LeaksConfig = Depends(get_config),
    generator: Optional[TextGenerator] = Depends(get_text_generator),
):
    with http_errors():
        return append_tax_actions(session, store, user_id=user, answers=answers, cfg=cfg, generator=generator)
