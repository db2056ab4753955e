from __future__ import annotations

import datetime as dt
from typing import Optional

from src.leakfinder.config import TierLimits, TiersConfig
from src.utils.time import UTC, utcnow


TIERS = ("free", "premium", "super")
PAID_TIERS = ("premium", "super")


def normalize_tier(tier: Optional[str]) -> str:
    t = (tier or "").strip().lower()
    return t if t in TIERS else "free"


def limits_for(tier: Optional[str], cfg: TiersConfig | None = None) -> TierLimits:
    cfg = cfg or TiersConfig()
    return getattr(cfg, normalize_tier(tier))


def upload_limit(tier: Optional[str], kind: str, cfg: TiersConfig | None = None) -> Optional[int]:
    """Monthly upload allowance for `kind` ("csv" or "tax"); None means unlimited."""
    limits = limits_for(tier, cfg)
    return limits.tax if kind == "tax" else limits.csv


def quota_exceeded(used: int, limit: Optional[int]) -> bool:
    return limit is not None and used >= limit


def is_premium(tier: Optional[str], *, is_admin: bool = False) -> bool:
    return is_admin or normalize_tier(tier) in PAID_TIERS


def month_start(now: dt.datetime | None = None) -> dt.datetime:
    n = (now or utcnow()).astimezone(UTC)
    return dt.datetime(n.year, n.month, 1, tzinfo=UTC)
