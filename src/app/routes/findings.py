from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from src.app.auth import require_user
from src.app.db import db_session
from src.app.utils import http_errors
from src.leakfinder.service import list_findings, serialize_finding, set_finding_status


router = APIRouter(prefix="/api/findings", tags=["findings"])


class StatusRequest(BaseModel):
    status: str


@router.get("")
def findings_list(
    status: Optional[str] = None,
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
):
    return {"findings": [serialize_finding(f) for f in list_findings(session, user, status=status)]}


@router.post("/{finding_id}/status")
def findings_set_status(
    finding_id: int,
    body: StatusRequest,
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
):
    with http_errors():
        f = set_finding_status(session, user_id=user, finding_id=finding_id, status=body.status)
    return serialize_finding(f)
