from __future__ import annotations

import logging
from typing import Sequence

from src.leakfinder.config import LeaksConfig
from src.leakfinder.scan.csv_io import column_indexes, columns_from_header, read_rows
from src.leakfinder.scan.findings import detect_findings
from src.leakfinder.scan.models import AnalysisResult, ColumnMapping, Transaction
from src.leakfinder.scan.normalize import normalize_row


log = logging.getLogger(__name__)


def parse_transactions(
    rows: Sequence[list[str]],
    *,
    columns: list[str],
    mapping: ColumnMapping,
    cfg: LeaksConfig | None = None,
    skip_header: bool = True,
) -> tuple[list[Transaction], int]:
    """Returns (transactions, dropped row count)."""
    cfg = cfg or LeaksConfig()
    di, li, ai = column_indexes(columns, date=mapping.date, label=mapping.label, amount=mapping.amount)
    body = rows[1:] if skip_header else rows
    txns: list[Transaction] = []
    dropped = 0
    for cells in body:
        t = normalize_row(
            cells,
            date_index=di,
            label_index=li,
            amount_index=ai,
            boilerplate=cfg.detection.boilerplate_words,
        )
        if t is None:
            dropped += 1
            continue
        txns.append(t)
    return txns, dropped


def analyze_rows(
    rows: Sequence[list[str]],
    *,
    columns: list[str],
    mapping: ColumnMapping,
    cfg: LeaksConfig | None = None,
) -> AnalysisResult:
    """Rows in, ranked findings out. Deterministic; no I/O."""
    cfg = cfg or LeaksConfig()
    txns, dropped = parse_transactions(rows, columns=columns, mapping=mapping, cfg=cfg)
    findings, considered = detect_findings(txns, cfg.detection)
    result = AnalysisResult(
        rows_total=max(0, len(rows) - 1),
        transactions_parsed=len(txns),
        rows_dropped=dropped,
        debit_count=sum(1 for t in txns if t.is_debit),
        groups_considered=considered,
        findings=findings,
    )
    log.info(
        "Analysis: rows=%d parsed=%d dropped=%d groups=%d findings=%d",
        result.rows_total,
        result.transactions_parsed,
        result.rows_dropped,
        result.groups_considered,
        len(result.findings),
    )
    return result


def analyze_csv_text(
    content: str,
    *,
    mapping: ColumnMapping,
    columns: list[str] | None = None,
    cfg: LeaksConfig | None = None,
) -> AnalysisResult:
    """
    Parse and analyze a CSV export. `columns` are the names stored at upload time;
    when omitted they are derived from the first row.
    """
    cfg = cfg or LeaksConfig()
    rows = read_rows(content, max_rows=cfg.csv.max_rows)
    cols = columns if columns is not None else columns_from_header(rows[0])
    return analyze_rows(rows, columns=cols, mapping=mapping, cfg=cfg)
