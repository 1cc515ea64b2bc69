import io
from datetime import date
from decimal import Decimal

import pytest
from openpyxl import Workbook

from hms_core.pharmacy.importers import (
    GENERAL_CATEGORY,
    batch_key,
    dosage_form_category,
    map_stock_header,
    medication_code_prefix,
    parse_bool,
    parse_expiry,
    parse_int,
    parse_number,
    parse_stock_report,
    read_medication_csv,
    read_stock_workbook,
    therapeutic_category,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("45000", date(2023, 3, 15)),  # Excel serial
        (date(2027, 5, 1), date(2027, 5, 1)),
        ("2026-08-15", date(2026, 8, 15)),
        ("15/08/2026", date(2026, 8, 15)),
        ("03-2026", date(2026, 3, 31)),
        ("Feb-27", date(2027, 2, 28)),
        ("Dec 2028", date(2028, 12, 31)),
        ("31-02-2026", None),
        ("2027", None),  # a bare year is not a serial date
        ("soon", None),
        ("", None),
    ],
)
def test_parse_expiry(raw, expected):
    assert parse_expiry(raw) == expected


def test_numbers_are_parsed_leniently():
    assert parse_number("₹1,250.50") == Decimal("1250.50")
    assert parse_number("abc", Decimal("7")) == Decimal("7")
    assert parse_number("1.2.3") == Decimal("0")
    assert parse_int("12 units") == 12
    assert parse_bool("Yes") is True
    assert parse_bool("n") is False
    assert parse_bool("maybe", default=True) is True


def test_codes_and_keys():
    assert medication_code_prefix("Dolo-650") == "DOLO"
    assert medication_code_prefix("") == "MED"
    assert batch_key(" B1 ", date(2027, 1, 31)) == "B1__2027-01-31"


def test_categories():
    assert dosage_form_category("Amoxicillin 500 Cap") == "Capsule"
    assert dosage_form_category("Ceftriaxone", "", "Inj 1g") == "Injectable"
    assert dosage_form_category("Mystery") == GENERAL_CATEGORY
    assert therapeutic_category("Dolo", "Paracetamol") == "Pain Management"
    assert therapeutic_category("Amlodipine 5") == "Cardiovascular"
    assert therapeutic_category("Mystery") == GENERAL_CATEGORY


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Medicine Name", "medicine"),
        ("Batch No", "batch"),
        ("Purchase Rate", "purchase_rate"),
        ("MRP", "mrp"),
        ("Expiry Date", "expiry"),
        ("Qty", "quantity"),
        ("IV", "route"),
        ("Remarks", None),
        (None, None),
    ],
)
def test_map_stock_header(header, expected):
    assert map_stock_header(header) == expected


def _workbook_bytes() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Tablets"
    ws.append(["Medicine Name", "Batch No", "Expiry", "Qty", "Purchase Rate", "MRP", "Remarks"])
    ws.append(["Dolo 650", "D1", "12-2027", 30, 1.2, 2.0, "x"])
    ws.append([None, None, None, None, None, None, None])
    ws.append(["Pan 40", "P7", "2027-06-30", 10, 4, 6.5, None])

    other = wb.create_sheet("Notes")
    other.append(["Comment"])
    other.append(["nothing to import"])

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_read_stock_workbook():
    sheets = read_stock_workbook(_workbook_bytes())
    assert [s.name for s in sheets] == ["Tablets", "Notes"]

    tablets, notes = sheets
    assert tablets.has_medicine_column
    assert not notes.has_medicine_column

    # blank row 3 is dropped, row numbers are Excel's
    assert [rowno for rowno, _ in tablets.rows] == [2, 4]
    _, first = tablets.rows[0]
    assert first["medicine"] == "Dolo 650"
    assert first["batch"] == "D1"
    assert first["quantity"] == 30
    assert "Remarks" not in first


def test_read_medication_csv_maps_headers():
    content = (
        "\ufeffMedicine Name,Generic Name,MRP,Prescription Required\n"
        "Dolo 650,Paracetamol,30,no\n"
        ",,,\n"
        "Augmentin 625,Amoxicillin,220,yes\n"
    ).encode("utf-8")

    columns, rows = read_medication_csv(content)
    assert columns == ["generic_name", "mrp", "name", "prescription_required"]

    rows = list(rows)
    assert [line for line, _ in rows] == [2, 4]
    assert rows[1][1] == {
        "name": "Augmentin 625",
        "generic_name": "Amoxicillin",
        "mrp": "220",
        "prescription_required": "yes",
    }


def test_read_medication_csv_requires_a_name_column():
    with pytest.raises(ValueError):
        read_medication_csv("generic,mrp\nx,1\n")


STOCK_REPORT = """Drug Wise Stock Report,,,,,,
Drug Name :,,Paracetamol  500mg,,,,
Sl No,Batch,Exp Date,Pur Qty,Stock Qty,Rate,MRP
1,PCM1,31-12-2027,100,80,1.50,2.50
2,PCM1,31-12-2027,100,80,1.50,2.50
3,PCM2,32-13-2027,10,10,1,2
Drug Name :,,Amoxicillin,,,,
Sl No,Batch,Exp Date,Pur Qty,Stock Qty,Rate,MRP
1,AMX9,01-06-2028,0,50,3,5
"""


def test_parse_stock_report():
    meds, errors = parse_stock_report(STOCK_REPORT)

    assert set(meds) == {"paracetamol 500mg", "amoxicillin"}

    (pcm,) = meds["paracetamol 500mg"]
    assert pcm.medication_name == "Paracetamol 500mg"
    assert pcm.batch_number == "PCM1"
    assert pcm.expiry_date == date(2027, 12, 31)
    assert pcm.received_quantity == 100
    assert pcm.current_quantity == 80
    assert pcm.purchase_price == Decimal("1.50")
    assert pcm.selling_price == Decimal("2.50")

    (amx,) = meds["amoxicillin"]
    # no purchase quantity on the report: received falls back to stock on hand
    assert amx.received_quantity == 50

    assert len(errors) == 1
    assert "line 6" in errors[0]
    assert "32-13-2027" in errors[0]


def test_stock_report_empty_cell_keeps_columns_aligned():
    report = (
        "Drug Name :,,Cetirizine,,,,\n"
        "Sl No,Batch,Exp Date,Pur Qty,Stock Qty,Rate,MRP\n"
        "1,B1,31-12-2027,,40,1.50,2.50\n"
    )
    meds, errors = parse_stock_report(report)

    assert errors == []
    (row,) = meds["cetirizine"]
    assert row.current_quantity == 40
    assert row.received_quantity == 40
    assert row.purchase_price == Decimal("1.50")
    assert row.selling_price == Decimal("2.50")
