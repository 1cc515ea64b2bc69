import io
from datetime import date

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from openpyxl import Workbook

from hms_core.audit.models import AuditEvent
from hms_core.pharmacy.models import Medication, MedicineBatch

pytestmark = pytest.mark.django_db

UPLOAD = "/api/v1/pharmacy/bulk-upload/"


def _xlsx() -> SimpleUploadedFile:
    wb = Workbook()
    ws = wb.active
    ws.title = "Tablets"
    ws.append(["Medicine Name", "Batch No", "Expiry", "Qty", "Purchase Rate", "MRP"])
    ws.append(["Dolo 650 Tab", "D1", "12-2027", 30, 1.2, 2.0])
    ws.append(["Pan 40", "P7", "2027-06-30", 10, 4, 6.5])
    wb.create_sheet("Notes").append(["Comment"])

    buf = io.BytesIO()
    wb.save(buf)
    return SimpleUploadedFile(
        "stock.xlsx",
        buf.getvalue(),
        content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def test_stock_workbook_creates_medicines_and_batches(api_client):
    resp = api_client.post(f"{UPLOAD}stock-workbook/", {"file": _xlsx()}, format="multipart")
    assert resp.status_code == 200, resp.data
    assert resp.data["success_count"] == 2
    assert resp.data["error_count"] == 1  # the Notes sheet has no medicine column
    assert resp.data["upload_id"]

    dolo = Medication.objects.get(name="Dolo 650 Tab")
    assert dolo.category == "Tablet"
    assert dolo.available_stock == 30
    batch = MedicineBatch.objects.get(medication=dolo, batch_number="D1")
    assert batch.expiry_date == date(2027, 12, 31)

    assert AuditEvent.objects.filter(event_code="pharmacy.bulk_upload").count() == 1

    # a second run finds every batch already there
    resp = api_client.post(f"{UPLOAD}stock-workbook/", {"file": _xlsx()}, format="multipart")
    assert resp.data["success_count"] == 0
    assert resp.data["skipped_count"] == 2
    assert Medication.objects.filter(name="Dolo 650 Tab").count() == 1


def test_stock_workbook_wants_an_excel_file(api_client):
    upload = SimpleUploadedFile("stock.csv", b"a,b\n", content_type="text/csv")
    resp = api_client.post(f"{UPLOAD}stock-workbook/", {"file": upload}, format="multipart")
    assert resp.status_code == 400
    assert "file" in resp.data["error"]["details"]


def test_corrupt_workbook_is_a_validation_error(api_client):
    upload = SimpleUploadedFile("stock.xlsx", b"not a zip file", content_type="application/octet-stream")
    resp = api_client.post(f"{UPLOAD}stock-workbook/", {"file": upload}, format="multipart")
    assert resp.status_code == 400
    assert resp.data["error"]["code"] == "validation_error"
    assert "file" in resp.data["error"]["details"]
    assert Medication.objects.count() == 0


def test_medications_csv_skips_duplicates(api_client, medication):
    content = (
        "Medicine Name,Generic Name,MRP,Prescription Required\n"
        "Dolo 650,Paracetamol,30,no\n"
        "paracetamol 500mg,Paracetamol,2,no\n"
        "Augmentin 625,Amoxicillin,220,yes\n"
        ",Nameless,1,no\n"
    ).encode("utf-8")
    upload = SimpleUploadedFile("meds.csv", content, content_type="text/csv")

    resp = api_client.post(f"{UPLOAD}medications-csv/", {"file": upload}, format="multipart")
    assert resp.status_code == 200, resp.data
    assert resp.data["success_count"] == 2
    assert resp.data["duplicate_count"] == 1
    assert resp.data["error_count"] == 1
    assert resp.data["errors"] == ["Row 5: Name is required."]

    augmentin = Medication.objects.get(name="Augmentin 625")
    assert augmentin.prescription_required is True
    assert augmentin.category == "Antibiotics"


def test_medications_csv_without_name_column(api_client):
    upload = SimpleUploadedFile("meds.csv", b"generic,mrp\nx,1\n", content_type="text/csv")
    resp = api_client.post(f"{UPLOAD}medications-csv/", {"file": upload}, format="multipart")
    assert resp.status_code == 400


def test_batches_json(api_client, medication):
    row = {"medication_id": str(medication.id), "batch_number": "J1", "expiry_date": "2028-03-31", "quantity": "25"}
    resp = api_client.post(
        f"{UPLOAD}batches/",
        {"batches": [row, row, {"medication_id": str(medication.id)}, {**row, "medication_id": "nope"}]},
        format="json",
    )
    assert resp.status_code == 200, resp.data
    assert resp.data["success_count"] == 1
    assert resp.data["skipped_count"] == 1
    assert resp.data["error_count"] == 2

    medication.refresh_from_db()
    assert medication.available_stock == 25


def test_stock_report(api_client, medication):
    report = (
        "Drug Wise Stock Report,,,,,,\n"
        "Drug Name :,,Paracetamol  500mg,,,,\n"
        "Sl No,Batch,Exp Date,Pur Qty,Stock Qty,Rate,MRP\n"
        "1,PCM1,31-12-2027,100,80,1.50,2.50\n"
        "2,PCM2,32-13-2027,10,10,1,2\n"
        "Drug Name :,,Amoxicillin,,,,\n"
        "Sl No,Batch,Exp Date,Pur Qty,Stock Qty,Rate,MRP\n"
        "1,AMX9,01-06-2028,0,50,3,5\n"
    )
    upload = SimpleUploadedFile("report.csv", report.encode("utf-8"), content_type="text/csv")

    resp = api_client.post(f"{UPLOAD}stock-report/", {"file": upload}, format="multipart")
    assert resp.status_code == 200, resp.data
    assert resp.data["total_medicines"] == 2
    assert resp.data["success_count"] == 2
    assert resp.data["error_count"] == 1

    # the existing medicine is reused; prices follow the report
    medication.refresh_from_db()
    assert medication.available_stock == 80
    assert medication.total_stock == 100
    assert str(medication.mrp) == "2.50"
    assert Medication.objects.filter(name__iexact="amoxicillin").exists()


def test_bulk_upload_is_pharmacy_only(role_client):
    resp = role_client("BILLING").post(f"{UPLOAD}batches/", {"batches": [{}]}, format="json")
    assert resp.status_code == 403
