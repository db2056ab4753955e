from __future__ import annotations

import logging
from typing import Optional, Sequence

from pydantic import BaseModel

from src.core.text_generation import TextGenerator
from src.leakfinder.scan.csv_io import column_indexes
from src.leakfinder.scan.models import ColumnMapping
from src.leakfinder.scan.normalize import parse_amount_minor_units, parse_date


log = logging.getLogger(__name__)

BATCH_SIZE = 20
UNCATEGORIZED = "Uncategorized"


class ExpenseLine(BaseModel):
    line: int  # 1-based line number in the file (header = 1)
    date: str
    label: str
    amount_minor_units: int
    category: str = UNCATEGORIZED
    place: str = "-"
    kind: str = "Expense"
    opportunity: str = "-"


def extract_lines(
    rows: Sequence[list[str]],
    *,
    columns: list[str],
    mapping: ColumnMapping,
    max_lines: int = 100,
) -> list[ExpenseLine]:
    di, li, ai = column_indexes(columns, date=mapping.date, label=mapping.label, amount=mapping.amount)
    out: list[ExpenseLine] = []
    for idx, cells in enumerate(rows[1:]):
        if len(out) >= max_lines:
            break

        def _cell(i: int) -> str:
            return cells[i] if 0 <= i < len(cells) else ""

        try:
            d = parse_date(_cell(di))
            amt = parse_amount_minor_units(_cell(ai))
        except ValueError:
            continue
        out.append(ExpenseLine(line=idx + 2, date=d.isoformat(), label=_cell(li), amount_minor_units=amt))
    return out


def _batch_prompt(lines: Sequence[ExpenseLine]) -> str:
    body = "\n".join(
        f'Line {ln.line}: Date {ln.date}, Label "{ln.label}", Amount {ln.amount_minor_units / 100:.2f} EUR' for ln in lines
    )
    return (
        "For each line below give a detailed category, the inferred place or merchant, the expense type, "
        "and one saving opportunity.\n"
        'Reply in JSON: { "items": [ { "line": 1, "category": "...", "place": "...", "kind": "...", '
        '"opportunity": "..." } ] }\n\n' + body
    )


def categorize_batch(lines: Sequence[ExpenseLine], *, generator: Optional[TextGenerator]) -> list[ExpenseLine]:
    if generator is None or not lines:
        return list(lines)
    try:
        payload = generator.generate_json(
            system="You categorize personal expenses. Reply with valid JSON only.",
            prompt=_batch_prompt(lines),
            max_tokens=600,
        )
        items = payload.get("items")
        if not isinstance(items, list):
            raise ValueError("Missing 'items' array")
    except Exception as e:
        log.warning("Expense categorization failed for %d lines: %s: %s", len(lines), type(e).__name__, e)
        return list(lines)

    by_line: dict[int, dict] = {}
    for it in items:
        if not isinstance(it, dict):
            continue
        try:
            by_line[int(it.get("line"))] = it
        except (TypeError, ValueError):
            continue

    out: list[ExpenseLine] = []
    for ln in lines:
        d = by_line.get(ln.line) or {}
        out.append(
            ln.model_copy(
                update={
                    "category": str(d.get("category") or UNCATEGORIZED),
                    "place": str(d.get("place") or "-"),
                    "kind": str(d.get("kind") or "Expense"),
                    "opportunity": str(d.get("opportunity") or "-"),
                }
            )
        )
    return out


def categorize_lines(lines: Sequence[ExpenseLine], *, generator: Optional[TextGenerator]) -> list[ExpenseLine]:
    out: list[ExpenseLine] = []
    for i in range(0, len(lines), BATCH_SIZE):
        out.extend(categorize_batch(lines[i : i + BATCH_SIZE], generator=generator))
    return out


def summarize_by_category(lines: Sequence[ExpenseLine]) -> list[dict]:
    totals: dict[str, dict] = {}
    for ln in lines:
        row = totals.setdefault(ln.category, {"category": ln.category, "count": 0, "total_minor_units": 0})
        row["count"] += 1
        row["total_minor_units"] += ln.amount_minor_units
    return sorted(totals.values(), key=lambda r: (r["total_minor_units"], r["category"]))
