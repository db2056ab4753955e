from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from src.core.storage import StorageError, UploadStore
from src.core.text_generation import TextGenerator
from src.db.models import Evidence, Finding, Plan, PlanItem, Profile, Scan, Upload
from src.leakfinder.config import LeaksConfig
from src.leakfinder.errors import NotFound, PremiumRequired, QuotaExceeded
from src.leakfinder.scan.alternatives import UsageAnswers, generate_alternatives
from src.leakfinder.scan.csv_io import InputError, decode_bytes, parse_upload, read_rows
from src.leakfinder.scan.demo import demo_findings, demo_plan_items
from src.leakfinder.scan.expense_lines import categorize_lines, extract_lines, summarize_by_category
from src.leakfinder.scan.models import ColumnMapping, FindingDraft, PlanItemDraft
from src.leakfinder.scan.pipeline import analyze_rows
from src.leakfinder.scan.plan import build_plan_items
from src.leakfinder.status import check_finding_transition, check_plan_item_transition
from src.leakfinder.tax.actions import TAX_POSITION_BASE, TaxAnswers, generate_tax_actions, tax_plan_items
from src.leakfinder.tiers import is_premium, limits_for, month_start, quota_exceeded, upload_limit
from src.utils.time import utcnow


log = logging.getLogger(__name__)

NO_FINDINGS_MESSAGE = "No recurring charges detected in this file."


# --- profiles -------------------------------------------------------------


def get_or_create_profile(session: Session, user_id: str) -> Profile:
    prof = session.get(Profile, user_id)
    if prof is None:
        prof = Profile(id=user_id, tier="free", is_admin=False)
        session.add(prof)
        session.flush()
    return prof


def require_premium(session: Session, user_id: str) -> Profile:
    prof = get_or_create_profile(session, user_id)
    if not is_premium(prof.tier, is_admin=prof.is_admin):
        raise PremiumRequired("This feature requires a premium plan.")
    return prof


# --- serialization --------------------------------------------------------


def serialize_evidence(ev: Evidence) -> dict[str, Any]:
    return {
        "id": ev.id,
        "occurred_at": ev.occurred_at.isoformat(),
        "amount_cents": ev.amount_cents,
        "currency": ev.currency,
        "merchant": ev.merchant,
        "raw_label": ev.raw_label,
    }


def serialize_finding(f: Finding) -> dict[str, Any]:
    explain = f.explain_json or {}
    return {
        "id": f.id,
        "scan_id": f.scan_id,
        "category": f.category,
        "title": f.title,
        "description": f.description,
        "status": f.status,
        "brand": f.brand,
        "gain_estimated_yearly_cents": f.gain_estimated_yearly_cents,
        "effort_minutes": f.effort_minutes,
        "risk_level": f.risk_level,
        "confidence": f.confidence,
        "explain": {
            "calc_steps": list(explain.get("calc_steps") or []),
            "assumptions": list(explain.get("assumptions") or []),
            "recommendation": explain.get("recommendation") or "",
        },
        "evidence": [serialize_evidence(e) for e in f.evidence],
    }


def serialize_plan_item(it: PlanItem) -> dict[str, Any]:
    return {
        "id": it.id,
        "finding_id": it.finding_id,
        "position": it.position,
        "action_title": it.action_title,
        "action_steps": list(it.action_steps_json or []),
        "steps_source": it.steps_source,
        "gain_estimated_yearly_cents": it.gain_estimated_yearly_cents,
        "effort_minutes": it.effort_minutes,
        "risk_level": it.risk_level,
        "priority_score": it.priority_score,
        "category": it.category,
        "status": it.status,
        "extra": dict(it.extra_json or {}),
    }


def serialize_plan(plan: Plan) -> dict[str, Any]:
    return {
        "id": plan.id,
        "scan_id": plan.scan_id,
        "title": plan.title,
        "total_gain_cents": plan.total_gain_cents,
        "created_at": plan.created_at.isoformat(),
        "items": [serialize_plan_item(it) for it in plan.items],
    }


def serialize_upload(up: Upload) -> dict[str, Any]:
    return {
        "id": up.id,
        "kind": up.kind,
        "original_name": up.original_name,
        "status": up.status,
        "row_count": up.row_count,
        "columns": list(up.columns_json or []),
        "created_at": up.created_at.isoformat(),
    }


# --- uploads --------------------------------------------------------------


def _uploads_this_month(session: Session, user_id: str, kind: str) -> int:
    return (
        session.query(func.count(Upload.id))
        .filter(Upload.user_id == user_id, Upload.kind == kind, Upload.created_at >= month_start())
        .scalar()
        or 0
    )


def check_upload_quota(session: Session, user_id: str, kind: str, cfg: LeaksConfig) -> None:
    prof = get_or_create_profile(session, user_id)
    if prof.is_admin:
        return
    limit = upload_limit(prof.tier, kind, cfg.tiers)
    used = _uploads_this_month(session, user_id, kind)
    if quota_exceeded(used, limit):
        raise QuotaExceeded(f"Monthly {kind} upload limit reached ({used}/{limit}).")


def create_csv_upload(
    session: Session,
    store: UploadStore,
    *,
    user_id: str,
    name: str,
    content: bytes,
    cfg: LeaksConfig,
) -> tuple[Upload, list[list[str]]]:
    """Validates, stores and records a CSV upload. Returns (upload, preview rows)."""
    check_upload_quota(session, user_id, "csv", cfg)
    parsed = parse_upload(decode_bytes(content), max_rows=cfg.csv.preview_parse_rows, preview_rows=cfg.csv.preview_rows)
    handle = store.put(user_id, name, content)
    up = Upload(
        user_id=user_id,
        kind="csv",
        storage_handle=handle,
        original_name=name or "upload.csv",
        status="uploaded",
        row_count=parsed.row_count,
        columns_json=parsed.columns,
        preview_json=parsed.preview,
    )
    session.add(up)
    session.commit()
    log.info("Upload %s created for %s (%d preview rows)", up.id, user_id, len(parsed.preview))
    return up, parsed.preview


def upload_history(session: Session, user_id: str, cfg: LeaksConfig) -> dict[str, Any]:
    prof = get_or_create_profile(session, user_id)
    limit = limits_for(prof.tier, cfg.tiers).history
    q = session.query(Upload).filter(Upload.user_id == user_id)
    total = q.count()
    items = q.order_by(Upload.created_at.desc(), Upload.id.desc()).limit(limit).all()
    return {"limit": limit, "total": total, "items": [serialize_upload(u) for u in items]}


def get_upload(session: Session, user_id: str, upload_id: int) -> Upload:
    up = session.query(Upload).filter(Upload.id == upload_id, Upload.user_id == user_id).one_or_none()
    if up is None:
        raise NotFound(f"Upload {upload_id} not found.")
    return up


def delete_upload(session: Session, store: UploadStore, *, user_id: str, upload_id: int) -> None:
    up = get_upload(session, user_id, upload_id)
    if not store.delete(up.storage_handle):
        log.warning("Upload %s had no stored file (%s)", up.id, up.storage_handle)
    session.delete(up)
    session.commit()


def _load_upload_text(store: UploadStore, up: Upload) -> str:
    try:
        return decode_bytes(store.get(up.storage_handle))
    except StorageError as e:
        raise NotFound(str(e)) from e


# --- scans ----------------------------------------------------------------


def persist_scan(
    session: Session,
    *,
    user_id: str,
    findings: Sequence[FindingDraft],
    plan_items: Sequence[PlanItemDraft],
    summary: dict[str, Any],
    plan_title: str,
    total_gain_cents: int,
    currency: str = "EUR",
) -> tuple[Scan, Plan]:
    """
    Writes scan, findings, evidence, plan and plan items; moves the profile's current pointers.

    `total_gain_cents` is the sum over every finding, not only the ranked plan items.
    """
    now = utcnow()
    scan = Scan(user_id=user_id, status="done", started_at=now, finished_at=now, summary_json=summary)
    session.add(scan)

    rows: list[Finding] = []
    for f in findings:
        row = Finding(
            user_id=user_id,
            category=f.category,
            title=f.title,
            description=f.description,
            gain_estimated_yearly_cents=f.estimated_yearly_gain_minor_units,
            confidence=f.confidence,
            effort_minutes=f.effort_minutes,
            risk_level=f.risk_level,
            status="open",
            brand=f.brand,
            group_key=f.group_key or None,
            explain_json=f.explain.model_dump(),
        )
        row.evidence = [
            Evidence(
                occurred_at=e.occurred_at,
                amount_cents=e.amount_minor_units,
                currency=currency,
                merchant=e.merchant,
                raw_label=e.raw_label,
                payload_json={},
            )
            for e in f.evidence
        ]
        rows.append(row)
    scan.findings = rows

    plan = Plan(
        user_id=user_id,
        title=plan_title,
        total_gain_cents=total_gain_cents,
        created_at=now,
    )
    scan.plans = [plan]
    session.flush()

    for it in plan_items:
        finding_id = rows[it.finding_index].id if it.finding_index is not None else None
        plan.items.append(_plan_item_row(it, finding_id=finding_id))
    session.flush()

    prof = get_or_create_profile(session, user_id)
    prof.current_scan_id = scan.id
    prof.current_plan_id = plan.id
    return scan, plan


def _plan_item_row(it: PlanItemDraft, *, finding_id: Optional[int]) -> PlanItem:
    return PlanItem(
        finding_id=finding_id,
        position=it.position,
        action_title=it.action_title,
        action_steps_json=list(it.action_steps),
        steps_source=it.steps_source,
        gain_estimated_yearly_cents=it.gain_estimated_yearly_minor_units,
        effort_minutes=it.effort_minutes,
        risk_level=it.risk_level,
        priority_score=it.priority_score,
        category=it.category,
        status=it.status,
        extra_json=dict(it.extra),
    )


def scan_from_upload(
    session: Session,
    store: UploadStore,
    *,
    user_id: str,
    upload_id: int,
    mapping: ColumnMapping,
    cfg: LeaksConfig,
    generator: Optional[TextGenerator] = None,
) -> dict[str, Any]:
    up = get_upload(session, user_id, upload_id)
    text = _load_upload_text(store, up)
    rows = read_rows(text, max_rows=cfg.csv.max_rows)
    columns = list(up.columns_json or [])
    if not columns:
        raise InputError("Upload has no stored columns; upload the file again.")
    result = analyze_rows(rows, columns=columns, mapping=mapping, cfg=cfg)
    up.status = "parsed"

    if not result.findings:
        session.commit()
        return {"scan_id": None, "plan_id": None, "findings": [], "message": NO_FINDINGS_MESSAGE}

    items = build_plan_items(result.findings, generator=generator, cfg=cfg.plan, currency=cfg.detection.currency)
    summary = {
        "source": "csv",
        "upload_id": up.id,
        "mapping": mapping.model_dump(),
        "rows_total": result.rows_total,
        "transactions_parsed": result.transactions_parsed,
        "rows_dropped": result.rows_dropped,
        "total_gain_cents": result.total_gain_minor_units,
    }
    scan, plan = persist_scan(
        session,
        user_id=user_id,
        findings=result.findings,
        plan_items=items,
        summary=summary,
        plan_title=cfg.plan.title,
        total_gain_cents=result.total_gain_minor_units,
        currency=cfg.detection.currency,
    )
    session.commit()
    log.info("Scan %s / plan %s created for %s (%d findings)", scan.id, plan.id, user_id, len(scan.findings))
    return {"scan_id": scan.id, "plan_id": plan.id, "findings": [serialize_finding(f) for f in scan.findings]}


def create_demo_scan(session: Session, *, user_id: str, cfg: LeaksConfig) -> dict[str, Any]:
    findings = demo_findings()
    items = demo_plan_items(findings, cfg.plan)
    total = sum(f.estimated_yearly_gain_minor_units for f in findings)
    scan, plan = persist_scan(
        session,
        user_id=user_id,
        findings=findings,
        plan_items=items,
        summary={"source": "demo", "total_gain_cents": total},
        plan_title=cfg.plan.title,
        total_gain_cents=total,
        currency=cfg.detection.currency,
    )
    session.commit()
    return {"scan_id": scan.id, "plan_id": plan.id, "findings": [serialize_finding(f) for f in scan.findings]}


def delete_scans(session: Session, *, user_id: str) -> int:
    scans = session.query(Scan).filter(Scan.user_id == user_id).all()
    for s in scans:
        session.delete(s)
    prof = get_or_create_profile(session, user_id)
    prof.current_scan_id = None
    prof.current_plan_id = None
    session.commit()
    return len(scans)


def current_scan(session: Session, user_id: str) -> Optional[Scan]:
    prof = session.get(Profile, user_id)
    if prof is not None and prof.current_scan_id is not None:
        scan = session.query(Scan).filter(Scan.id == prof.current_scan_id, Scan.user_id == user_id).one_or_none()
        if scan is not None:
            return scan
    return (
        session.query(Scan)
        .filter(Scan.user_id == user_id)
        .order_by(Scan.started_at.desc(), Scan.id.desc())
        .first()
    )


def current_plan(session: Session, user_id: str) -> Optional[Plan]:
    prof = session.get(Profile, user_id)
    if prof is not None and prof.current_plan_id is not None:
        plan = session.query(Plan).filter(Plan.id == prof.current_plan_id, Plan.user_id == user_id).one_or_none()
        if plan is not None:
            return plan
    return (
        session.query(Plan)
        .filter(Plan.user_id == user_id)
        .order_by(Plan.created_at.desc(), Plan.id.desc())
        .first()
    )


def findings_total(scan: Scan) -> int:
    return sum(f.gain_estimated_yearly_cents for f in scan.findings)


# --- findings / plan items ------------------------------------------------


def list_findings(session: Session, user_id: str, *, status: Optional[str] = None) -> list[Finding]:
    scan = current_scan(session, user_id)
    if scan is None:
        return []
    q = session.query(Finding).filter(Finding.user_id == user_id, Finding.scan_id == scan.id)
    if status:
        q = q.filter(Finding.status == status.strip().lower())
    return q.order_by(Finding.gain_estimated_yearly_cents.desc(), Finding.id).all()


def set_finding_status(session: Session, *, user_id: str, finding_id: int, status: str) -> Finding:
    f = session.query(Finding).filter(Finding.id == finding_id, Finding.user_id == user_id).one_or_none()
    if f is None:
        raise NotFound(f"Finding {finding_id} not found.")
    f.status = check_finding_transition(f.status, status)
    session.commit()
    return f


def get_plan_item(session: Session, user_id: str, item_id: int) -> PlanItem:
    it = (
        session.query(PlanItem)
        .join(Plan, Plan.id == PlanItem.plan_id)
        .filter(PlanItem.id == item_id, Plan.user_id == user_id)
        .one_or_none()
    )
    if it is None:
        raise NotFound(f"Plan item {item_id} not found.")
    return it


def set_plan_item_status(session: Session, *, user_id: str, item_id: int, status: str) -> PlanItem:
    it = get_plan_item(session, user_id, item_id)
    it.status = check_plan_item_transition(it.status, status)
    session.commit()
    return it


def refine_with_alternatives(
    session: Session,
    *,
    user_id: str,
    item_id: int,
    answers: UsageAnswers,
    cfg: LeaksConfig,
    generator: Optional[TextGenerator] = None,
) -> dict[str, Any]:
    """
    Suggests cheaper alternatives for a subscription plan item from the user's usage answers.

    Generated suggestions rewrite the item around the best one (title, steps, gain).
    The default list is only attached under `extra`, leaving the detected figures alone.
    """
    if not answers.frequency.strip() or not answers.people.strip():
        raise InputError("Both 'frequency' and 'people' are required.")
    it = get_plan_item(session, user_id, item_id)
    if it.category != "subscription":
        raise InputError("Alternatives are only available for subscription items.")

    finding = session.get(Finding, it.finding_id) if it.finding_id is not None else None
    subscription = (finding.brand if finding is not None else None) or it.action_title
    monthly = round(finding.gain_estimated_yearly_cents / 12) if finding is not None else None
    alternatives, source = generate_alternatives(
        subscription, monthly, answers, generator=generator, currency=cfg.detection.currency
    )

    it.extra_json = {
        **(it.extra_json or {}),
        "usage_answers": answers.model_dump(),
        "alternatives": [a.model_dump() for a in alternatives],
        "alternatives_source": source,
        "usage_refined": True,
    }
    best = alternatives[0]
    if source == "generated":
        it.action_title = f"Alternative: {best.name}"[:300]
        if best.steps:
            it.action_steps_json = list(best.steps)
            it.steps_source = "generated"
        if best.gain_annual is not None:
            it.gain_estimated_yearly_cents = int(round(best.gain_annual * 100))
    session.commit()
    log.info("Plan item %s refined with %d %s alternatives", it.id, len(alternatives), source)
    return {"source": source, "item": serialize_plan_item(it)}


# --- tax ------------------------------------------------------------------


def append_tax_actions(
    session: Session,
    store: UploadStore,
    *,
    user_id: str,
    answers: TaxAnswers,
    cfg: LeaksConfig,
    generator: Optional[TextGenerator] = None,
) -> dict[str, Any]:
    """Adds tax plan items (positions from 100) to the current plan, replacing earlier tax items."""
    plan = current_plan(session, user_id)
    if plan is None:
        raise NotFound("No current plan; run a scan first.")
    check_upload_quota(session, user_id, "tax", cfg)

    actions, source = generate_tax_actions(answers, generator=generator)
    handle = store.put(user_id, "tax-answers.json", json.dumps(answers.model_dump()).encode("utf-8"))
    session.add(Upload(user_id=user_id, kind="tax", storage_handle=handle, original_name="tax-answers.json"))

    for old in [it for it in plan.items if it.position >= TAX_POSITION_BASE]:
        plan.items.remove(old)
    for draft in tax_plan_items(actions, source=source):
        plan.items.append(_plan_item_row(draft, finding_id=None))
    session.flush()
    scan = plan.scan
    plan.total_gain_cents = findings_total(scan) + sum(
        it.gain_estimated_yearly_cents for it in plan.items if it.position >= TAX_POSITION_BASE
    )
    scan.summary_json = {**(scan.summary_json or {}), "tax_answers": answers.model_dump()}
    session.commit()
    session.refresh(plan)
    return {"plan_id": plan.id, "source": source, "items": [serialize_plan_item(it) for it in plan.items]}


# --- expense lines --------------------------------------------------------


def analyze_expense_lines(
    session: Session,
    store: UploadStore,
    *,
    user_id: str,
    cfg: LeaksConfig,
    generator: Optional[TextGenerator] = None,
) -> dict[str, Any]:
    require_premium(session, user_id)
    scan = current_scan(session, user_id)
    if scan is None:
        raise NotFound("No current scan.")
    summary = scan.summary_json or {}
    upload_id = summary.get("upload_id")
    if upload_id is None:
        raise NotFound("The current scan has no uploaded file.")
    up = get_upload(session, user_id, int(upload_id))
    rows = read_rows(_load_upload_text(store, up), max_rows=cfg.csv.max_rows)
    mapping = ColumnMapping.model_validate(summary.get("mapping") or {})
    lines = extract_lines(rows, columns=list(up.columns_json or []), mapping=mapping, max_lines=cfg.csv.analyze_max_lines)
    lines = categorize_lines(lines, generator=generator)
    return {
        "scan_id": scan.id,
        "upload_id": up.id,
        "lines": [ln.model_dump() for ln in lines],
        "categories": summarize_by_category(lines),
    }
