from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, Date, Enum, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.utils.time import utcnow
from src.db.types import UTCDateTime


class Base(DeclarativeBase):
    pass


UploadKind = Enum("csv", "tax", name="upload_kind")
UploadStatus = Enum("uploaded", "parsed", name="upload_status")
ScanStatus = Enum("running", "done", "error", name="scan_status")
FindingStatus = Enum("open", "snoozed", "resolved", name="finding_status")
FindingCategory = Enum(
    "subscription", "bank_fee", "insurance", "tax", "utilities", "other", name="finding_category"
)
RiskLevel = Enum("low", "medium", "high", name="risk_level")
PlanItemStatus = Enum("todo", "doing", "done", "skipped", name="plan_item_status")


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    tier: Mapped[str] = mapped_column(String(20), nullable=False, default="free")
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Explicit "latest" pointers; not FKs so scan deletion never cycles.
    current_scan_id: Mapped[Optional[int]] = mapped_column(Integer)
    current_plan_id: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)


class Upload(Base):
    __tablename__ = "uploads"
    __table_args__ = (Index("ix_uploads_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(200), nullable=False)
    kind: Mapped[str] = mapped_column(UploadKind, nullable=False, default="csv")
    storage_handle: Mapped[str] = mapped_column(String(500), nullable=False)
    original_name: Mapped[str] = mapped_column(String(260), nullable=False)
    status: Mapped[str] = mapped_column(UploadStatus, nullable=False, default="uploaded")
    row_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    columns_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    preview_json: Mapped[list[list[str]]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)


class Scan(Base):
    __tablename__ = "scans"
    __table_args__ = (Index("ix_scans_user_started", "user_id", "started_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(ScanStatus, nullable=False, default="running")
    started_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    finished_at: Mapped[Optional[dt.datetime]] = mapped_column(UTCDateTime())
    summary_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    findings: Mapped[list["Finding"]] = relationship(
        back_populates="scan", cascade="all, delete-orphan", order_by="Finding.id"
    )
    plans: Mapped[list["Plan"]] = relationship(back_populates="scan", cascade="all, delete-orphan")


class Finding(Base):
    __tablename__ = "findings"
    __table_args__ = (Index("ix_findings_user_status", "user_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    scan_id: Mapped[int] = mapped_column(ForeignKey("scans.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(FindingCategory, nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    gain_estimated_yearly_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    effort_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    risk_level: Mapped[str] = mapped_column(RiskLevel, nullable=False, default="low")
    status: Mapped[str] = mapped_column(FindingStatus, nullable=False, default="open")
    brand: Mapped[Optional[str]] = mapped_column(String(100))
    group_key: Mapped[Optional[str]] = mapped_column(String(100))
    explain_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False)

    scan: Mapped["Scan"] = relationship(back_populates="findings")
    evidence: Mapped[list["Evidence"]] = relationship(
        back_populates="finding", cascade="all, delete-orphan", order_by="Evidence.id"
    )


class Evidence(Base):
    __tablename__ = "evidence"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    finding_id: Mapped[int] = mapped_column(ForeignKey("findings.id", ondelete="CASCADE"), nullable=False)
    occurred_at: Mapped[dt.date] = mapped_column(Date, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    merchant: Mapped[Optional[str]] = mapped_column(String(200))
    raw_label: Mapped[Optional[str]] = mapped_column(String(500))
    reference: Mapped[Optional[str]] = mapped_column(String(200))
    payload_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    finding: Mapped["Finding"] = relationship(back_populates="evidence")


class Plan(Base):
    __tablename__ = "plans"
    __table_args__ = (Index("ix_plans_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(200), nullable=False)
    scan_id: Mapped[int] = mapped_column(ForeignKey("scans.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    total_gain_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    scan: Mapped["Scan"] = relationship(back_populates="plans")
    items: Mapped[list["PlanItem"]] = relationship(
        back_populates="plan", cascade="all, delete-orphan", order_by="PlanItem.position"
    )


class PlanItem(Base):
    __tablename__ = "plan_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("plans.id", ondelete="CASCADE"), nullable=False)
    finding_id: Mapped[Optional[int]] = mapped_column(ForeignKey("findings.id", ondelete="SET NULL"))
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    action_title: Mapped[str] = mapped_column(String(300), nullable=False)
    action_steps_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    steps_source: Mapped[str] = mapped_column(String(20), nullable=False, default="fallback")
    gain_estimated_yearly_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    effort_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    risk_level: Mapped[str] = mapped_column(RiskLevel, nullable=False, default="low")
    priority_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    category: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(PlanItemStatus, nullable=False, default="todo")
    extra_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False)

    plan: Mapped["Plan"] = relationship(back_populates="items")
