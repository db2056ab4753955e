from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.orm import Session

from src.app.auth import require_user
from src.app.db import db_session
from src.app.deps import get_config, get_text_generator
from src.app.routes.findings import StatusRequest
from src.app.utils import http_errors
from src.core.exports import render_plan_csv, render_plan_html_report, render_plan_pdf
from src.core.text_generation import TextGenerator
from src.db.models import Plan
from src.leakfinder.config import LeaksConfig
from src.leakfinder.scan.alternatives import UsageAnswers
from src.leakfinder.service import (
    current_plan,
    refine_with_alternatives,
    require_premium,
    serialize_plan,
    serialize_plan_item,
    set_plan_item_status,
)


router = APIRouter(prefix="/api/plan", tags=["plan"])


def _current_plan_or_404(session: Session, user: str) -> Plan:
    plan = current_plan(session, user)
    if plan is None:
        raise HTTPException(status_code=404, detail="No plan yet.")
    return plan


@router.get("")
def plan_current(
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
):
    return serialize_plan(_current_plan_or_404(session, user))


@router.post("/items/{item_id}/status")
def plan_item_set_status(
    item_id: int,
    body: StatusRequest,
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
):
    with http_errors():
        it = set_plan_item_status(session, user_id=user, item_id=item_id, status=body.status)
    return serialize_plan_item(it)


@router.post("/items/{item_id}/alternatives")
def plan_item_alternatives(
    item_id: int,
    answers: UsageAnswers,
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
    cfg: LeaksConfig = Depends(get_config),
    generator: Optional[TextGenerator] = Depends(get_text_generator),
):
    with http_errors():
        return refine_with_alternatives(
            session, user_id=user, item_id=item_id, answers=answers, cfg=cfg, generator=generator
        )


@router.get("/report")
def plan_report(
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
):
    return HTMLResponse(render_plan_html_report(_current_plan_or_404(session, user)))


@router.get("/items.csv")
def plan_items_csv(
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
):
    plan = _current_plan_or_404(session, user)
    return Response(
        content=render_plan_csv(plan),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="plan_{plan.id}_items.csv"'},
    )


@router.get("/pdf")
def plan_pdf(
    session: Session = Depends(db_session),
    user: str = Depends(require_user),
):
    with http_errors():
        require_premium(session, user)
    plan = _current_plan_or_404(session, user)
    return Response(
        content=render_plan_pdf(plan),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="plan_{plan.id}.pdf"'},
    )
