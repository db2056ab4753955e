from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class CsvConfig(BaseModel):
    max_rows: int = 5000
    preview_parse_rows: int = 200
    preview_rows: int = 20
    analyze_max_lines: int = 100


class DetectionConfig(BaseModel):
    min_occurrences: int = 3
    cadence_min_days: int = 20
    cadence_max_days: int = 40
    abs_tolerance_minor_units: int = 200
    rel_tolerance: float = 0.20
    max_findings: int = 8
    max_evidence: int = 12
    subscription_confidence: float = 0.90
    bank_fee_confidence: float = 0.85
    subscription_effort_minutes: int = 5
    bank_fee_effort_minutes: int = 10
    currency: str = "EUR"
    boilerplate_words: list[str] = Field(
        default_factory=lambda: [
            "cb",
            "carte",
            "sepa",
            "virement",
            "paiement",
            "prelevement",
            "prélèvement",
            "card",
            "transfer",
            "payment",
            "direct debit",
        ]
    )
    bank_fee_keywords: list[str] = Field(
        default_factory=lambda: [
            "frais",
            "cotisation",
            "tenue",
            "commission",
            "agios",
            "package",
            "carte",
            "incident",
            "fee",
            "overdraft",
        ]
    )
    # pattern -> canonical brand name
    brands: dict[str, str] = Field(
        default_factory=lambda: {
            r"netflix": "Netflix",
            r"spotify": "Spotify",
            r"deezer": "Deezer",
            r"apple\s*music": "Apple Music",
            r"amazon\s*prime|prime\s*video": "Amazon Prime",
            r"disney\s*(\+|plus)": "Disney+",
            r"canal\s*(\+|plus)": "Canal+",
            r"youtube\s*premium": "YouTube Premium",
            r"icloud": "iCloud",
            r"google\s*one": "Google One",
            r"dropbox": "Dropbox",
            r"canva": "Canva",
            r"linkedin": "LinkedIn",
        }
    )


class PlanConfig(BaseModel):
    top_n: int = 6
    title: str = "Your savings plan"
    fallback_steps: list[str] = Field(
        default_factory=lambda: [
            "Review the transactions behind '{title}'",
            "Compare the offer with what the market charges",
            "Cancel, downgrade or renegotiate '{title}'",
            "Check your next statement to confirm the saving",
        ]
    )


class TextGenerationConfig(BaseModel):
    enabled: bool = True
    base_url: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-4o-mini"
    api_key_env: str = "OPENAI_API_KEY"
    timeout_s: float = 8.0
    temperature: float = 0.2
    max_tokens: int = 400


class StorageConfig(BaseModel):
    uploads_dir: Optional[str] = None  # defaults to UPLOADS_DIR / data/uploads


class TierLimits(BaseModel):
    csv: Optional[int] = None  # None = unlimited
    tax: Optional[int] = None
    history: int = 10


class TiersConfig(BaseModel):
    free: TierLimits = Field(default_factory=lambda: TierLimits(csv=3, tax=1, history=10))
    premium: TierLimits = Field(default_factory=lambda: TierLimits(csv=10, tax=3, history=20))
    super: TierLimits = Field(default_factory=lambda: TierLimits(csv=None, tax=None, history=50))


class LeaksConfig(BaseModel):
    csv: CsvConfig = Field(default_factory=CsvConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    plan: PlanConfig = Field(default_factory=PlanConfig)
    text_generation: TextGenerationConfig = Field(default_factory=TextGenerationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    tiers: TiersConfig = Field(default_factory=TiersConfig)


def _candidate_paths() -> list[Path]:
    paths = [Path("leakfinder.yaml")]
    home = Path(os.path.expanduser("~"))
    paths.append(home / ".leakfinder" / "leakfinder.yaml")
    return paths


def load_config() -> tuple[LeaksConfig, Optional[str]]:
    for p in _candidate_paths():
        if p.exists():
            data = yaml.safe_load(p.read_text()) or {}
            return LeaksConfig.model_validate(data.get("leakfinder") or data), str(p)
    return LeaksConfig(), None
