"""Bulk import of parcels from files.

Supported formats:
    - ``.xlsx`` / ``.xls`` / ``.csv`` read with pandas
    - ``.json`` holding an array of objects
    - text based ``.pdf`` reports read with pypdf

Every format is reduced to a list of loosely keyed dicts, which
``normalize_import_row`` turns into Firestore parcel documents.
"""

import io
import json
import logging
import re
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .errors import ImportFileError
from .schemas import ParcelStatus, PaymentMode


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".xls", ".csv", ".json", ".pdf")

# Text runs closer than this on the y axis belong to the same row
ROW_TOLERANCE = 5.0

EXCEL_EPOCH = date(1899, 12, 30)

NO_PDF_TEXT_MESSAGE = "No readable text found in the PDF. Scanned documents are not supported."

# Column aliases, compared after lowercasing and dropping spaces/underscores
FIELD_ALIASES = {
    "lr_number": ("lrnumber", "lrno", "lr"),
    "party_name": ("party", "partyname"),
    "state": ("state",),
    "transport": ("transport",),
    "weight": ("weight",),
    "rate": ("rate",),
    "total_amount": ("totalamount", "amount"),
    "paid_amount": ("paidamount",),
    "status": ("status",),
    "payment_mode": ("paymentmode",),
    "weight_image_url": ("weightimageurl",),
    "date": ("date",),
}

TEMPLATE_ROW = {
    "Date": "2023-10-25",
    "LR_Number": "12345",
    "Party": "Example Party",
    "Transport": "Example Transport",
    "State": "DELHI",
    "Weight": 100,
    "Rate": 10,
    "Total_Amount": 1000,
    "Paid_Amount": 0,
    "Status": "pending",
    "Payment_Mode": "cash",
}

# Header keywords of exported PDF reports, in match priority order
_PDF_HEADER_KEYS = (
    ("date", ("date",)),
    ("lr", ("lr no", "lr number")),
    ("party", ("party",)),
    ("state", ("state",)),
    ("weight", ("weight",)),
    ("amount", ("amount",)),
    ("status", ("status",)),
)

_PDF_RECORD_KEYS = {
    "date": "Date",
    "lr": "LR_Number",
    "party": "Party",
    "state": "State",
    "weight": "Weight",
    "amount": "Total_Amount",
    "status": "Status",
}

# State names that the heuristic must not take for a party
_HEURISTIC_STATE_WORDS = {"DELHI", "HARYANA", "PUNJAB", "UP", "RAJASTHAN"}

_DATE_PATTERN = re.compile(r"(\d{1,4}[-/]\d{1,2}[-/]\d{1,4})")


# ============================================================================
# File Readers
# ============================================================================


def read_import_file(filename: str, content: bytes) -> list[dict[str, Any]]:
    """Read the raw rows of an import file.

    Args:
        filename: Original file name; its extension selects the reader.
        content: File bytes.

    Returns:
        List of dicts keyed by the file's column names.

    Raises:
        ImportFileError: If the file cannot be read or holds no rows.
    """
    suffix = Path(filename).suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise ImportFileError(f"Unsupported file type: {suffix or filename}")

    if suffix == ".json":
        rows = _read_json(content)
    elif suffix == ".pdf":
        rows = _read_pdf(content)
    else:
        rows = _read_table(suffix, content)

    logger.info("Read %d rows from %s", len(rows), filename)
    return rows


def _read_json(content: bytes) -> list[dict[str, Any]]:
    try:
        data = json.loads(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ImportFileError(f"Invalid JSON file: {e}") from e
    if not isinstance(data, list):
        raise ImportFileError("JSON must be an array of objects")
    return [row for row in data if isinstance(row, dict)]


def _read_table(suffix: str, content: bytes) -> list[dict[str, Any]]:
    try:
        if suffix == ".csv":
            df = pd.read_csv(io.BytesIO(content))
        else:
            df = pd.read_excel(io.BytesIO(content), sheet_name=0)
    except (ValueError, ImportError, pd.errors.ParserError) as e:
        raise ImportFileError(f"Could not read spreadsheet: {e}") from e

    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def _read_pdf(content: bytes) -> list[dict[str, Any]]:
    try:
        reader = PdfReader(io.BytesIO(content))
        pages = list(reader.pages)
    except (PdfReadError, ValueError) as e:
        raise ImportFileError("Failed to parse PDF. Ensure it's a text-based PDF.") from e
    if not pages:
        raise ImportFileError("The PDF file is empty.")

    records: list[dict[str, Any]] = []
    for number, page in enumerate(pages, start=1):
        runs = _page_text_runs(page)
        if not runs:
            logger.warning("Page %d has no text content, it might be a scanned image", number)
            continue
        records.extend(rows_to_records(group_text_rows(runs)))

    if not records:
        raise ImportFileError(NO_PDF_TEXT_MESSAGE)
    return records


def _page_text_runs(page) -> list[tuple[float, float, str]]:
    runs: list[tuple[float, float, str]] = []

    def visitor(text, cm, tm, font_dict, font_size):
        text = text.strip()
        if not text:
            return
        # Position of the run in page space (text matrix times current matrix)
        x = tm[4] * cm[0] + tm[5] * cm[2] + cm[4]
        y = tm[4] * cm[1] + tm[5] * cm[3] + cm[5]
        runs.append((x, y, text))

    page.extract_text(visitor_text=visitor)
    return runs


def group_text_rows(
    runs: list[tuple[float, float, str]],
    tolerance: float = ROW_TOLERANCE,
) -> list[list[str]]:
    """Group positioned text runs into table rows.

    Runs whose y coordinates differ by less than ``tolerance`` share a row.
    Rows are returned top to bottom and cells left to right.

    Args:
        runs: ``(x, y, text)`` tuples in PDF coordinates (y grows upwards).
        tolerance: Maximum y distance within one row.

    Returns:
        List of rows, each a list of cell strings.
    """
    rows: dict[float, list[tuple[float, str]]] = {}
    for x, y, text in runs:
        text = text.strip()
        if not text:
            continue
        row_y = next((ry for ry in rows if abs(ry - y) < tolerance), None)
        if row_y is None:
            row_y = y
            rows[row_y] = []
        rows[row_y].append((x, text))

    return [
        [text for _, text in sorted(rows[y], key=lambda cell: cell[0])]
        for y in sorted(rows, reverse=True)
    ]


def _detect_header(row: list[str]) -> dict[str, int]:
    header: dict[str, int] = {}
    for idx, cell in enumerate(row):
        lowered = cell.lower()
        for key, words in _PDF_HEADER_KEYS:
            if any(word in lowered for word in words):
                header.setdefault(key, idx)
                break
    return header


def _heuristic_record(row: list[str]) -> dict[str, Any]:
    entry: dict[str, Any] = {}

    date_idx = next((i for i, c in enumerate(row) if _DATE_PATTERN.search(c)), None)
    if date_idx is not None:
        entry["Date"] = row[date_idx]

    lr_idx = next(
        (i for i, c in enumerate(row) if i != date_idx and len(c) >= 3 and c.isdigit()),
        None,
    )
    if lr_idx is not None:
        entry["LR_Number"] = row[lr_idx]

    taken = {date_idx, lr_idx}
    party_idx = next(
        (
            i for i, c in enumerate(row)
            if i not in taken
            and len(c) > 3
            and _to_number(c, default=None) is None
            and c.upper() not in _HEURISTIC_STATE_WORDS
        ),
        None,
    )
    if party_idx is not None:
        entry["Party"] = row[party_idx]

    numbers = [
        c for i, c in enumerate(row)
        if i not in taken and _to_number(re.sub(r"[^0-9.]", "", c), default=None) is not None
    ]
    if numbers:
        entry["Weight"] = numbers[0]
    if len(numbers) > 1:
        entry["Total_Amount"] = numbers[-1]
    return entry


def rows_to_records(rows: list[list[str]]) -> list[dict[str, Any]]:
    """Turn the text rows of one PDF page into import records.

    A row mentioning at least two known column titles is taken as the
    header, and later rows are mapped by its column positions. Until a
    header is found, rows of three or more cells are read heuristically:
    a date-like cell, an all-digit LR number, a text party name, and the
    first and last remaining numbers as weight and amount.

    Args:
        rows: Rows from ``group_text_rows``.

    Returns:
        Records keyed like the import template. Rows without LR number and
        party are dropped.
    """
    records = []
    header: dict[str, int] = {}

    for row in rows:
        if not header:
            row_text = " ".join(row).lower()
            if any(word in row_text for word in ("date", "lr no", "party", "lr number")):
                candidate = _detect_header(row)
                if len(candidate) >= 2:
                    header = candidate
                    continue

        if header and len(row) >= 2:
            entry = {
                _PDF_RECORD_KEYS[key]: row[idx]
                for key, idx in header.items()
                if idx < len(row) and row[idx]
            }
        elif not header and len(row) >= 3:
            entry = _heuristic_record(row)
        else:
            continue

        if entry.get("LR_Number") or entry.get("Party"):
            records.append(entry)

    return records


# ============================================================================
# Row Normalization
# ============================================================================


def _normalize_key(key: Any) -> str:
    return re.sub(r"[\s_]+", "", str(key)).lower()


def _pick(row: dict[str, Any], field: str) -> Any:
    aliases = FIELD_ALIASES[field]
    normalized = {_normalize_key(k): v for k, v in row.items()}
    for alias in aliases:
        value = normalized.get(alias)
        if value is not None and value != "":
            return value
    return None


def _to_number(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return default


def parse_import_date(value: Any, today: Optional[date] = None) -> str:
    """Normalize an import date to YYYY-MM-DD.

    Accepts Excel serial numbers, date objects, ISO strings and
    ``YYYY-MM-DD`` / ``DD-MM-YYYY`` with ``-`` or ``/`` separators.
    Anything else falls back to today.

    Args:
        value: Raw cell value.
        today: Fallback date.

    Returns:
        Date string in YYYY-MM-DD format.
    """
    fallback = (today or date.today()).isoformat()
    if value is None or value == "":
        return fallback
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return (EXCEL_EPOCH + timedelta(days=round(value))).isoformat()
        except OverflowError:
            return fallback

    text = str(value).strip()
    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        pass

    parts = re.split(r"[-/]", text)
    if len(parts) == 3 and all(p.strip().isdigit() for p in parts):
        if len(parts[0].strip()) == 4:
            year, month, day = parts
        else:
            day, month, year = parts
        try:
            return date(int(year), int(month), int(day)).isoformat()
        except ValueError:
            return fallback
    return fallback


def normalize_import_row(
    row: dict[str, Any],
    uid: Optional[str],
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Optional[dict[str, Any]]:
    """Convert one raw import row into a Firestore parcel document.

    Args:
        row: Raw row from ``read_import_file``.
        uid: Id of the importing user, ``"system"`` when unknown.
        today: Fallback for rows without a usable date.
        now: Creation timestamp written to ``createdAt``.

    Returns:
        The parcel document, or None when the row has neither an LR number
        nor a party name.
    """
    lr_number = _pick(row, "lr_number")
    party = _pick(row, "party_name")
    if lr_number is None and party is None:
        return None

    if isinstance(lr_number, float) and lr_number.is_integer():
        lr_number = int(lr_number)

    status = str(_pick(row, "status") or ParcelStatus.PENDING.value).strip().lower()
    if status not in {s.value for s in ParcelStatus}:
        status = ParcelStatus.PENDING.value
    mode = str(_pick(row, "payment_mode") or PaymentMode.CASH.value).strip().lower()
    if mode not in {m.value for m in PaymentMode}:
        mode = PaymentMode.CASH.value

    return {
        "lrNumber": str(lr_number if lr_number is not None else "N/A").strip(),
        "partyName": str(party or "Unknown").strip(),
        "state": str(_pick(row, "state") or "DELHI").strip().upper(),
        "transport": str(_pick(row, "transport") or "").strip(),
        "weight": _to_number(_pick(row, "weight")),
        "rate": _to_number(_pick(row, "rate")),
        "totalAmount": _to_number(_pick(row, "total_amount")),
        "paidAmount": _to_number(_pick(row, "paid_amount")),
        "status": status,
        "paymentMode": mode,
        "weightImageUrl": str(_pick(row, "weight_image_url") or ""),
        "createdAt": now or datetime.now(timezone.utc),
        "createdBy": uid or "system",
        "date": parse_import_date(_pick(row, "date"), today),
    }


def normalize_import_rows(
    rows: list[dict[str, Any]],
    uid: Optional[str],
    today: Optional[date] = None,
) -> list[dict[str, Any]]:
    """Normalize all rows, dropping the ones without LR number and party."""
    now = datetime.now(timezone.utc)
    documents = []
    for row in rows:
        document = normalize_import_row(row, uid, today=today, now=now)
        if document is not None:
            documents.append(document)
    skipped = len(rows) - len(documents)
    if skipped:
        logger.info("Skipped %d import rows without LR number or party", skipped)
    return documents


def build_import_template() -> bytes:
    """Build the Excel import template with one example row."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        pd.DataFrame([TEMPLATE_ROW]).to_excel(writer, sheet_name="Template", index=False)
    return buffer.getvalue()
