# hms_core/pharmacy/importers.py
"""
Parsing for the bulk inventory uploads: header mapping, lenient value coercion and
readers for the Excel stock workbook, the medication CSV and the drug-wise stock
report CSV. No database access; see services.bulk_upload for the write side.
"""
from __future__ import annotations

import calendar
import csv
import io
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

DEFAULT_EXPIRY = date(2099, 12, 31)
EXCEL_EPOCH = date(1899, 12, 30)

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_TRUE = {"true", "yes", "1", "y"}
_FALSE = {"false", "no", "0", "n"}


# -------------------------------------------------------------------
# Value coercion
# -------------------------------------------------------------------

def parse_number(value, default: Decimal = Decimal("0")) -> Decimal:
    """Keep digits, '.', '-' and parse; anything unusable gives `default`."""
    if value is None:
        return default
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return Decimal(str(value))
    cleaned = re.sub(r"[^0-9.\-]", "", str(value))
    if not cleaned:
        return default
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return default


def parse_int(value, default: int = 0) -> int:
    return int(parse_number(value, Decimal(default)))


def parse_bool(value, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    v = str(value).strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    return default


def _last_day(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def parse_expiry(value) -> date | None:
    """
    Excel serial, native date/datetime, YYYY-MM-DD, DD-MM-YYYY, MM-YYYY and MMM-YY(YY).
    Month-only forms resolve to the last day of that month. Unknown forms give None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    raw = str(value).strip()
    if not raw:
        return None

    try:
        if re.fullmatch(r"\d+(\.\d+)?", raw):
            serial = float(raw)
            if 0 < serial < 100000:
                parsed = EXCEL_EPOCH + timedelta(days=int(round(serial)))
                # a bare year such as 2027 would otherwise land in 1905
                if 2000 <= parsed.year <= 2100:
                    return parsed
            return None

        m = re.fullmatch(r"(\d{4})[/-](\d{1,2})[/-](\d{1,2})", raw)
        if m:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

        m = re.fullmatch(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})", raw)
        if m:
            return date(int(m.group(3)), int(m.group(2)), int(m.group(1)))

        m = re.fullmatch(r"(\d{1,2})[/-](\d{4})", raw)
        if m:
            return _last_day(int(m.group(2)), int(m.group(1)))

        m = re.fullmatch(r"([A-Za-z]{3})[\s/-](\d{2,4})", raw)
        if m and m.group(1).lower() in MONTHS:
            year = int(m.group(2))
            if year < 100:
                year += 2000
            return _last_day(year, MONTHS[m.group(1).lower()])
    except ValueError:
        # impossible calendar values such as 31-02-2026
        return None

    return None


def parse_ddmmyyyy(value) -> date | None:
    """Strict DD-MM-YYYY (a trailing time part is ignored)."""
    raw = str(value or "").strip().split(" ")[0]
    m = re.fullmatch(r"(\d{1,2})-(\d{1,2})-(\d{4})", raw)
    if not m:
        return None
    try:
        return date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
    except ValueError:
        return None


def batch_key(batch_number: str, expiry: date | None) -> str:
    return f"{(batch_number or '').strip()}__{expiry.isoformat() if expiry else ''}"


def medication_code_prefix(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "", name or "")[:4].upper() or "MED"


# -------------------------------------------------------------------
# Categories
# -------------------------------------------------------------------

_FORM_RULES = [
    ("Injectable", [r"injection", r"\binj\b", r"\biv\b", r"\bim\b"]),
    ("Tablet", [r"tablet", r"\btab"]),
    ("Capsule", [r"capsule", r"\bcap"]),
    ("Liquid", [r"syrup", r"suspension", r"liquid"]),
    ("Topical", [r"cream", r"ointment", r"\bgel\b"]),
    ("Drops", [r"drop", r"\beye\b", r"\bear\b"]),
    ("Respiratory", [r"inhaler", r"nebuli[sz]er"]),
    ("Powder", [r"powder", r"sachet"]),
]

_THERAPEUTIC_RULES = [
    ("Antibiotics", ["antibiotic", "amox", "azith", "cef", "augmentin", "levoflox"]),
    ("Cardiovascular", ["amlodipine", "atenolol", "metoprolol", "losartan"]),
    ("Pain Management", ["paracetamol", "ibuprofen", "diclofenac", "ketorol"]),
    ("Vitamins & Supplements", ["vitamin", "multivitamin", "zinc", "calcium"]),
    ("Gastrointestinal", ["pantoprazole", "omeprazole", "ranitidine"]),
    ("Respiratory", ["salbutamol", "montelukast"]),
    ("Diabetes", ["metformin", "glimepiride"]),
    ("Neurology", ["levetiracetam", "phenytoin"]),
]

GENERAL_CATEGORY = "General Medicine"


def dosage_form_category(*parts: str) -> str:
    """Category for workbook imports, from the dosage form words in name/combination/product."""
    text = " ".join(p for p in parts if p).lower()
    for category, patterns in _FORM_RULES:
        if any(re.search(p, text) for p in patterns):
            return category
    return GENERAL_CATEGORY


def therapeutic_category(name: str, generic_name: str = "") -> str:
    """Category for CSV imports, from well-known molecule names."""
    text = f"{name or ''} {generic_name or ''}".lower()
    for category, needles in _THERAPEUTIC_RULES:
        if any(n in text for n in needles):
            return category
    return GENERAL_CATEGORY


# -------------------------------------------------------------------
# Excel stock workbook
# -------------------------------------------------------------------

def _norm_header(value) -> str:
    return re.sub(r"\s+", "", str(value or "")).lower()


def map_stock_header(header) -> str | None:
    """Workbook column header -> canonical field, or None when the column is ignored."""
    h = _norm_header(header)
    if not h:
        return None
    if "medicine" in h:
        return "medicine"
    if "batchno" in h or "batch" in h:
        return "batch"
    if "purchaserat" in h:
        return "purchase_rate"
    if h == "mrp":
        return "mrp"
    if "expiry" in h:
        return "expiry"
    if "qty" in h or "quantity" in h:
        return "quantity"
    if h == "pack":
        return "pack"
    if "combination" in h:
        return "combination"
    if h in ("iv", "im") or "route" in h:
        return "route"
    if "ampoule" in h or "ampolue" in h:
        return "ampoule"
    if "brand" in h:
        return "brand"
    if "product" in h:
        return "product"
    return None


@dataclass
class SheetRows:
    name: str
    columns: dict[str, int] = field(default_factory=dict)
    # (excel row number, {field: raw value})
    rows: list[tuple[int, dict[str, Any]]] = field(default_factory=list)

    @property
    def has_medicine_column(self) -> bool:
        return "medicine" in self.columns


def read_stock_workbook(content: bytes) -> list[SheetRows]:
    """Every sheet: header on row 1, data rows as {canonical field: raw cell value}."""
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError) as exc:
        raise ValueError("File is not a readable Excel workbook.") from exc
    sheets: list[SheetRows] = []
    try:
        for ws in wb.worksheets:
            sheet = SheetRows(name=ws.title)
            rows = ws.iter_rows(values_only=True)
            header = next(rows, None) or ()

            for idx, cell in enumerate(header):
                key = map_stock_header(cell)
                if key and key not in sheet.columns:
                    sheet.columns[key] = idx

            for offset, values in enumerate(rows, start=2):
                record = {
                    key: (values[idx] if idx < len(values) else None)
                    for key, idx in sheet.columns.items()
                }
                if all(v is None or str(v).strip() == "" for v in record.values()):
                    continue
                sheet.rows.append((offset, record))

            sheets.append(sheet)
    finally:
        wb.close()
    return sheets


# -------------------------------------------------------------------
# Medication CSV
# -------------------------------------------------------------------

MEDICATION_CSV_COLUMNS = {
    "name": "name",
    "medicine": "name",
    "medicinename": "name",
    "genericname": "generic_name",
    "generic": "generic_name",
    "category": "category",
    "manufacturer": "manufacturer",
    "dosageform": "dosage_form",
    "strength": "strength",
    "unit": "unit",
    "purchaseprice": "purchase_price",
    "sellingprice": "selling_price",
    "mrp": "mrp",
    "minimumstocklevel": "minimum_stock_level",
    "minimumstock": "minimum_stock_level",
    "minstock": "minimum_stock_level",
    "prescriptionrequired": "prescription_required",
    "hsncode": "hsn_code",
    "hsn": "hsn_code",
    "gstpercent": "gst_percent",
    "gst": "gst_percent",
}


def _csv_key(header: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (header or "").lower())


def decode_upload(content: bytes | str) -> str:
    if isinstance(content, str):
        return content
    return content.decode("utf-8-sig", errors="replace")


def read_medication_csv(content: bytes | str) -> tuple[list[str], Iterator[tuple[int, dict[str, str]]]]:
    """
    (mapped columns, iterator of (line number, {field: value})). Raises ValueError when
    no name/medicine column is present.
    """
    reader = csv.reader(io.StringIO(decode_upload(content)))
    header = next(reader, None)
    if not header:
        raise ValueError("CSV file is empty.")

    mapping: dict[int, str] = {}
    for idx, col in enumerate(header):
        fld = MEDICATION_CSV_COLUMNS.get(_csv_key(col))
        if fld and fld not in mapping.values():
            mapping[idx] = fld

    if "name" not in mapping.values():
        raise ValueError("CSV must have a 'name' or 'medicine' column.")

    def rows() -> Iterator[tuple[int, dict[str, str]]]:
        for line_no, values in enumerate(reader, start=2):
            if not any((v or "").strip() for v in values):
                continue
            yield line_no, {
                fld: (values[idx].strip() if idx < len(values) else "")
                for idx, fld in mapping.items()
            }

    return sorted(set(mapping.values())), rows()


# -------------------------------------------------------------------
# Drug-wise stock report CSV
# -------------------------------------------------------------------

@dataclass
class ReportBatch:
    medication_name: str
    batch_number: str
    expiry_date: date
    received_quantity: int
    current_quantity: int
    purchase_price: Decimal
    selling_price: Decimal
    line: int


_REPORT_FIELDS = {
    "batch": ["batch", "batchno", "batchnumber"],
    "expiry": ["expdate", "expirydate", "exp"],
    "pur_qty": ["purqty", "purchaseqty"],
    "stock_qty": ["stockqty", "stock"],
    "rate": ["rate", "purchaseprice"],
    "mrp": ["mrp", "sellingprice"],
    "name": ["drugname", "name"],
}


def _dense(cells: list[str]) -> list[str]:
    return [c.strip() for c in cells if c and c.strip()]


def normalize_medication_name(name: str) -> str:
    return re.sub(r"\s+", " ", (name or "").strip())


def parse_stock_report(content: bytes | str) -> tuple[dict[str, list[ReportBatch]], list[str]]:
    """
    Sections start at a "Drug Name" row; a row with "Sl No" and "Batch" is the column
    header; data rows start with a number. Batches are de-duplicated per medicine on
    batch number + expiry. Returns ({lower name: batches}, errors).
    """
    meds: dict[str, list[ReportBatch]] = {}
    errors: list[str] = []

    current_name: str | None = None
    header: dict[str, int] | None = None

    for line_no, cells in enumerate(csv.reader(io.StringIO(decode_upload(content))), start=1):
        dense = _dense(cells)
        if not dense:
            continue

        first = (cells[0] or "").strip() if cells else ""
        if _csv_key(first) == "drugname":
            rest = _dense(cells[1:])
            if rest:
                current_name = normalize_medication_name(rest[-1])
            continue

        keys = [_csv_key(c) for c in cells]
        if "slno" in keys and "batch" in keys:
            # raw positions: an empty data cell must not shift the columns after it
            header = {}
            for i, k in enumerate(keys):
                if k:
                    header.setdefault(k, i)
            continue

        if header is None or not re.fullmatch(r"\d+", first):
            continue

        def cell(name: str) -> str:
            for alias in _REPORT_FIELDS[name]:
                pos = header.get(alias)
                value = (cells[pos] or "").strip() if pos is not None and pos < len(cells) else ""
                if value:
                    return value
            return ""

        med_name = normalize_medication_name(current_name or cell("name"))
        batch_no = cell("batch")
        expiry_raw = cell("expiry")
        if not med_name or not batch_no or not expiry_raw:
            continue

        expiry = parse_ddmmyyyy(expiry_raw)
        if expiry is None:
            errors.append(f'{med_name} [line {line_no}]: invalid expiry date "{expiry_raw}"')
            continue

        stock_qty = max(parse_int(cell("stock_qty")), 0)
        meds.setdefault(med_name.lower(), []).append(
            ReportBatch(
                medication_name=med_name,
                batch_number=batch_no,
                expiry_date=expiry,
                received_quantity=max(parse_int(cell("pur_qty")), 0) or stock_qty,
                current_quantity=stock_qty,
                purchase_price=max(parse_number(cell("rate")), Decimal("0")),
                selling_price=max(parse_number(cell("mrp")), Decimal("0")),
                line=line_no,
            )
        )

    for key, batches in meds.items():
        seen: set[str] = set()
        unique = []
        for b in batches:
            k = batch_key(b.batch_number, b.expiry_date)
            if k in seen:
                continue
            seen.add(k)
            unique.append(b)
        meds[key] = unique

    return meds, errors
