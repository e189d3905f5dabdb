"""Tests for file import parsing and row normalization."""

import io
import json
import struct
from datetime import date, datetime, timezone

import pandas as pd
import pytest
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from parcel_tracker.errors import ImportFileError
from parcel_tracker.importers import (
    TEMPLATE_ROW,
    build_import_template,
    group_text_rows,
    normalize_import_row,
    normalize_import_rows,
    parse_import_date,
    read_import_file,
    rows_to_records,
)

TODAY = date(2024, 3, 15)
NOW = datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


def test_read_json_array():
    content = json.dumps([{"LR_Number": "1", "Party": "A"}, "junk", {"lr": "2"}]).encode()
    assert read_import_file("parcels.json", content) == [{"LR_Number": "1", "Party": "A"}, {"lr": "2"}]


def test_read_json_rejects_objects():
    with pytest.raises(ImportFileError, match="array"):
        read_import_file("parcels.json", b'{"LR_Number": "1"}')


def test_read_csv_turns_blanks_into_none():
    content = b"LR_Number,Party,Weight\n101,Sharma,12.5\n102,Gupta,\n"
    rows = read_import_file("parcels.csv", content)
    assert rows[0] == {"LR_Number": 101, "Party": "Sharma", "Weight": 12.5}
    assert rows[1]["Weight"] is None


def test_template_round_trips_through_reader():
    rows = read_import_file("template.xlsx", build_import_template())
    assert len(rows) == 1
    assert list(rows[0]) == list(TEMPLATE_ROW)
    document = normalize_import_row(rows[0], "u1", today=TODAY, now=NOW)
    assert document["lrNumber"] == "12345"
    assert document["totalAmount"] == 1000


def test_unsupported_extension():
    with pytest.raises(ImportFileError, match="Unsupported"):
        read_import_file("parcels.txt", b"hello")


def test_normalize_row_with_aliases():
    row = {
        "LR No": 4521.0,
        "party name": "  Sharma Traders ",
        "State": "punjab",
        "Amount": "1,250",
        "Weight": 25,
        "Status": "PAID",
        "Payment Mode": "Bank",
        "Date": "10-03-2024",
    }
    document = normalize_import_row(row, "u1", today=TODAY, now=NOW)
    assert document == {
        "lrNumber": "4521",
        "partyName": "Sharma Traders",
        "state": "PUNJAB",
        "transport": "",
        "weight": 25.0,
        "rate": 0.0,
        "totalAmount": 1250.0,
        "paidAmount": 0.0,
        "status": "paid",
        "paymentMode": "bank",
        "weightImageUrl": "",
        "createdAt": NOW,
        "createdBy": "u1",
        "date": "2024-03-10",
    }


def test_normalize_row_defaults():
    document = normalize_import_row({"Party": "Gupta", "Status": "refunded"}, None, today=TODAY, now=NOW)
    assert document["lrNumber"] == "N/A"
    assert document["state"] == "DELHI"
    assert document["status"] == "pending"
    assert document["paymentMode"] == "cash"
    assert document["createdBy"] == "system"
    assert document["date"] == "2024-03-15"


def test_rows_without_lr_and_party_are_skipped():
    rows = [{"LR_Number": "1"}, {"Weight": 5}, {"Party": "A"}]
    documents = normalize_import_rows(rows, "u1", today=TODAY)
    assert [d["lrNumber"] for d in documents] == ["1", "N/A"]


@pytest.mark.parametrize("value, expected", [
    (45000, "2023-03-15"),
    (date(2024, 1, 2), "2024-01-02"),
    (datetime(2024, 1, 2, 15, 30), "2024-01-02"),
    ("2024-01-02", "2024-01-02"),
    ("2024/01/02", "2024-01-02"),
    ("02-01-2024", "2024-01-02"),
    ("02/01/2024", "2024-01-02"),
    ("31-02-2024", "2024-03-15"),
    ("yesterday", "2024-03-15"),
    (None, "2024-03-15"),
])
def test_parse_import_date(value, expected):
    assert parse_import_date(value, TODAY) == expected


def test_group_text_rows_by_y_with_tolerance():
    runs = [
        (200, 700, "Party"), (50, 702, "Date"), (120, 699, "LR No"),
        (50, 680, "2024-03-10"), (200, 683, "Sharma"), (120, 680, "LR1"),
        (50, 660, " "),
    ]
    assert group_text_rows(runs) == [
        ["Date", "LR No", "Party"],
        ["2024-03-10", "LR1", "Sharma"],
    ]


def test_rows_to_records_with_header():
    rows = [
        ["Transport Parcel Report"],
        ["Date", "LR No", "Party", "State", "Weight", "Amount", "Status", "Weight Img"],
        ["2024-03-10", "LR100", "Sharma", "DELHI", "10", "120", "pending", "View"],
        ["Total"],
    ]
    assert rows_to_records(rows) == [{
        "Date": "2024-03-10",
        "LR_Number": "LR100",
        "Party": "Sharma",
        "State": "DELHI",
        "Weight": "10",
        "Total_Amount": "120",
        "Status": "pending",
    }]


def test_rows_to_records_heuristic_without_header():
    rows = [["10-03-2024", "12345", "Sharma Traders", "DELHI", "10", "120"]]
    assert rows_to_records(rows) == [{
        "Date": "10-03-2024",
        "LR_Number": "12345",
        "Party": "Sharma Traders",
        "Weight": "10",
        "Total_Amount": "120",
    }]


def _text_pdf(lines):
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    y = 800
    for cells in lines:
        for x, text in zip((40, 140, 240, 340), cells):
            pdf.drawString(x, y, text)
        y -= 20
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def test_read_text_pdf():
    content = _text_pdf([
        ("Date", "LR No", "Party", "State"),
        ("2024-03-10", "LR100", "Sharma", "DELHI"),
        ("2024-03-11", "LR101", "Gupta", "PUNJAB"),
    ])
    rows = read_import_file("report.pdf", content)
    assert [(r["LR_Number"], r["Party"], r["State"]) for r in rows] == [
        ("LR100", "Sharma", "DELHI"),
        ("LR101", "Gupta", "PUNJAB"),
    ]


def test_pdf_without_text():
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.showPage()
    pdf.save()
    with pytest.raises(ImportFileError, match="No readable text"):
        read_import_file("scan.pdf", buffer.getvalue())


def test_template_sheet_name():
    workbook = pd.ExcelFile(io.BytesIO(build_import_template()))
    assert workbook.sheet_names == ["Template"]


def _biff_record(code, data=b""):
    return struct.pack("<HH", code, len(data)) + data


def _biff_bof(stream_type):
    return _biff_record(0x0809, struct.pack("<HHHHII", 0x0600, stream_type, 0x0DBB, 0x07CC, 0, 6))


def _biff_label(row, col, text):
    raw = text.encode("latin-1")
    return _biff_record(0x0204, struct.pack("<HHHHB", row, col, 0, len(raw), 0) + raw)


def _ole2_entry(name, kind, child, first, size):
    raw = name.encode("utf-16-le") + b"\0\0" if name else b""
    return (
        raw.ljust(64, b"\0")
        + struct.pack("<HBBiii", len(raw), kind, 1, -1, -1, child)
        + b"\0" * 36
        + struct.pack("<iiI", first, size, 0)
    )


def _xls_workbook(rows, sheet_name="Parcels"):
    """Build a BIFF8 workbook in an OLE2 container, as Excel 97-2003 saves it."""
    def boundsheet(offset):
        name = sheet_name.encode("latin-1")
        return _biff_record(0x0085, struct.pack("<IBBBB", offset, 0, 0, len(name), 0) + name)

    eof = _biff_record(0x000A)
    globals_size = len(_biff_bof(0x0005) + boundsheet(0) + eof)
    workbook_globals = _biff_bof(0x0005) + boundsheet(globals_size) + eof
    cells = b"".join(
        _biff_label(r, c, value) for r, row in enumerate(rows) for c, value in enumerate(row)
    )
    stream = workbook_globals + _biff_bof(0x0010) + cells + eof

    # Stream sectors 2-10 keep the workbook out of the mini stream
    sector = 512
    assert len(stream) <= 9 * sector
    stream = stream.ljust(9 * sector, b"\0")
    chain = [-3, -2] + list(range(3, 11)) + [-2]
    fat = struct.pack("<128i", *(chain + [-1] * (128 - len(chain))))
    directory = (
        _ole2_entry("Root Entry", 5, 1, -2, 0)
        + _ole2_entry("Workbook", 2, -1, 2, len(stream))
        + _ole2_entry("", 0, -1, -1, 0) * 2
    )
    header = (
        b"\xD0\xCF\x11\xE0\xA1\xB1\x1A\xE1" + b"\0" * 16
        + struct.pack("<HHHHH", 0x3E, 3, 0xFFFE, 9, 6) + b"\0" * 6
        + struct.pack("<9i", 0, 1, 1, 0, 4096, -2, 0, -2, 0)
        + struct.pack("<109i", 0, *[-1] * 108)
    )
    return header + fat + directory + stream


def test_read_legacy_xls_workbook():
    content = _xls_workbook([
        ["LR_Number", "Party", "Weight"],
        ["LR-101", "Sharma Traders", "12.5"],
    ])
    rows = read_import_file("legacy.xls", content)
    assert len(rows) == 1

    document = normalize_import_row(rows[0], "u1", today=TODAY, now=NOW)
    assert document["lrNumber"] == "LR-101"
    assert document["partyName"] == "Sharma Traders"
    assert document["weight"] == 12.5
