from __future__ import annotations

import pytest

from src.leakfinder.scan.csv_io import (
    InputError,
    column_indexes,
    columns_from_header,
    decode_bytes,
    parse_upload,
    read_rows,
)


def test_semicolon_export_with_decimal_commas_is_not_split_on_commas():
    rows = read_rows("Date;Libelle;Montant\n05/10/2025;NETFLIX;-12,99\n")
    assert rows == [["Date", "Libelle", "Montant"], ["05/10/2025", "NETFLIX", "-12,99"]]


def test_comma_and_tab_exports():
    assert read_rows('date,label,amount\n2025-10-05,"ACME, INC",-3.50\n')[1] == ["2025-10-05", "ACME, INC", "-3.50"]
    assert read_rows("date\tlabel\tamount\n2025-10-05\tX\t-1\n")[1] == ["2025-10-05", "X", "-1"]


def test_empty_lines_are_skipped_and_max_rows_bounds_output():
    content = "a;b\n\n1;2\n;\n3;4\n5;6\n"
    assert read_rows(content) == [["a", "b"], ["1", "2"], ["3", "4"], ["5", "6"]]
    assert len(read_rows(content, max_rows=2)) == 2


@pytest.mark.parametrize("content", ["", "   \n\n"])
def test_empty_file_is_rejected(content):
    with pytest.raises(InputError):
        read_rows(content)


def test_decode_bytes_handles_bom_and_cp1252():
    assert decode_bytes(b"\xef\xbb\xbfDate;Libell\xc3\xa9") == "Date;Libellé"
    assert decode_bytes("Libellé".encode("cp1252")) == "Libellé"


def test_blank_header_cell_switches_to_positional_names():
    assert columns_from_header(["Date", "", "Montant"]) == ["col_1", "col_2", "col_3"]
    assert columns_from_header(["Date", "Libelle"]) == ["Date", "Libelle"]


def test_parse_upload_preview_includes_header():
    body = "Date;Libelle;Montant\n" + "".join(f"0{i % 9 + 1}/10/2025;X;-1\n" for i in range(50))
    parsed = parse_upload(body, max_rows=30, preview_rows=20)
    assert parsed.columns == ["Date", "Libelle", "Montant"]
    assert len(parsed.preview) == 20
    assert parsed.preview[0] == ["Date", "Libelle", "Montant"]
    assert parsed.row_count == 30


def test_column_indexes_validation():
    cols = ["Date", "Libelle", "Montant"]
    assert column_indexes(cols, date="Date", label="Libelle", amount="Montant") == (0, 1, 2)
    with pytest.raises(InputError, match="Missing column mapping"):
        column_indexes(cols, date="Date", label="", amount="Montant")
    with pytest.raises(InputError, match="Invalid mapping columns"):
        column_indexes(cols, date="Date", label="Label", amount="Montant")
