from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import Optional


class InputError(ValueError):
    """Rejected input (bad file, bad mapping); nothing is persisted."""


_DELIMITERS = (";", "\t", "|", ",")


def _dialect(sep: str) -> type[csv.Dialect]:
    class _D(csv.Dialect):
        delimiter = sep
        quotechar = '"'
        doublequote = True
        skipinitialspace = True
        lineterminator = "\n"
        quoting = csv.QUOTE_MINIMAL

    return _D


def sniff_dialect(sample: str) -> type[csv.Dialect] | csv.Dialect:
    # The header line decides: decimal commas in amounts make csv.Sniffer prefer ","
    # on semicolon exports.
    lines = [ln for ln in (sample or "").splitlines() if ln.strip()]
    first = lines[0] if lines else ""
    counts = {d: first.count(d) for d in _DELIMITERS}
    best = max(_DELIMITERS, key=lambda d: counts[d])
    if counts[best] > 0:
        return _dialect(best)
    try:
        return csv.Sniffer().sniff(sample, delimiters=list(_DELIMITERS))
    except Exception:
        return _dialect(",")


def decode_bytes(content: bytes) -> str:
    for enc in ("utf-8-sig", "cp1252"):
        try:
            return content.decode(enc)
        except UnicodeDecodeError:
            continue
    raise InputError("File is not valid text (expected UTF-8 or Windows-1252 CSV).")


def read_rows(content: str, *, max_rows: Optional[int] = None) -> list[list[str]]:
    """
    Split CSV text into rows of stripped cells, skipping empty lines.

    `max_rows` bounds the number of rows returned (header included), matching how
    the upload preview and the full analysis cap their input.
    """
    text = content or ""
    if not text.strip():
        raise InputError("Empty file.")
    dialect = sniff_dialect(text[:20000])
    reader = csv.reader(io.StringIO(text), dialect=dialect)
    rows: list[list[str]] = []
    try:
        for r in reader:
            cells = [(c or "").strip() for c in r]
            if not any(cells):
                continue
            rows.append(cells)
            if max_rows is not None and len(rows) >= max_rows:
                break
    except csv.Error as e:
        raise InputError(f"Could not parse CSV: {e}") from e
    if not rows:
        raise InputError("No rows found in file.")
    return rows


def columns_from_header(header: list[str]) -> list[str]:
    if header and all(h for h in header):
        return list(header)
    return [f"col_{i + 1}" for i in range(len(header))]


@dataclass(frozen=True)
class ParsedUpload:
    columns: list[str]
    preview: list[list[str]]  # header row included
    row_count: int


def parse_upload(content: str, *, max_rows: int, preview_rows: int) -> ParsedUpload:
    rows = read_rows(content, max_rows=max_rows)
    columns = columns_from_header(rows[0])
    return ParsedUpload(columns=columns, preview=rows[:preview_rows], row_count=len(rows))


def column_indexes(columns: list[str], *, date: str, label: str, amount: str) -> tuple[int, int, int]:
    if not date or not label or not amount:
        raise InputError("Missing column mapping (date, label and amount are required).")
    try:
        return columns.index(date), columns.index(label), columns.index(amount)
    except ValueError:
        raise InputError("Invalid mapping columns.")
