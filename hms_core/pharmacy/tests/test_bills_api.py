from datetime import date, timedelta
from decimal import Decimal

import pytest

from hms_core.audit.models import AuditEvent
from hms_core.pharmacy.models import Medication, MedicineBatch, PharmacyBill, StockTransaction

pytestmark = pytest.mark.django_db

BILLS = "/api/v1/pharmacy/bills/"


def _bill(api_client, medication, qty, **extra):
    payload = {"items": [{"medication": str(medication.id), "quantity": qty}]}
    payload.update(extra)
    return api_client.post(BILLS, payload, format="json")


def test_quote_writes_nothing(api_client, medication, batch):
    resp = api_client.post(
        f"{BILLS}quote/",
        {"items": [{"medication": str(medication.id), "quantity": 10}]},
        format="json",
    )
    assert resp.status_code == 200, resp.data
    # 10 x 2.00 = 20; 18% tax = 3.60 -> 4
    assert resp.data["subtotal"] == "20.00"
    assert resp.data["tax_amount"] == "4.00"
    assert resp.data["cgst_amount"] == "2.00"
    assert resp.data["total_amount"] == "24.00"

    batch.refresh_from_db()
    assert batch.current_quantity == 100
    assert PharmacyBill.objects.count() == 0


def test_patient_bill_dispenses_stock(api_client, patient, medication, batch):
    resp = _bill(api_client, medication, 10, patient=str(patient.id))
    assert resp.status_code == 201, resp.data
    assert resp.data["bill_number"].startswith("PH-")
    assert resp.data["customer_type"] == "patient"
    assert resp.data["customer_name"] == patient.name
    assert resp.data["payment_status"] == "pending"
    assert resp.data["balance_due"] == "24.00"

    batch.refresh_from_db()
    medication.refresh_from_db()
    assert batch.current_quantity == 90
    assert medication.available_stock == 90
    assert StockTransaction.objects.filter(transaction_type="sale", quantity=-10).count() == 1


def test_walk_in_needs_a_name(api_client, medication, batch):
    resp = _bill(api_client, medication, 1)
    assert resp.status_code == 400
    assert "customer_name" in resp.data["error"]["details"]

    resp = _bill(api_client, medication, 1, customer_name="Walk In", amount_paid="10.00")
    assert resp.status_code == 201
    assert resp.data["customer_type"] == "walk_in"
    assert resp.data["payment_status"] == "paid"


def test_fifo_uses_earliest_expiry_and_skips_expired(api_client, medication, batch):
    early = MedicineBatch.objects.create(
        medication=medication,
        batch_number="EARLY",
        expiry_date=date.today() + timedelta(days=20),
        received_quantity=5,
        current_quantity=5,
        selling_price=Decimal("2.00"),
    )
    MedicineBatch.objects.create(
        medication=medication,
        batch_number="OLD",
        expiry_date=date.today() - timedelta(days=1),
        received_quantity=50,
        current_quantity=50,
    )

    resp = _bill(api_client, medication, 8, customer_name="Walk In")
    assert resp.status_code == 201, resp.data
    assert [(i["batch_number"], i["quantity"]) for i in resp.data["items"]] == [("EARLY", 5), ("PCM001", 3)]

    early.refresh_from_db()
    assert early.current_quantity == 0


def test_insufficient_stock_is_a_conflict(api_client, medication, batch):
    resp = _bill(api_client, medication, 101, customer_name="Walk In")
    assert resp.status_code == 409
    assert "Insufficient stock" in resp.data["error"]["message"]

    batch.refresh_from_db()
    assert batch.current_quantity == 100


def test_named_batch_lines_add_up(api_client, medication, batch):
    line = {"medication": str(medication.id), "batch": str(batch.id), "quantity": 60}
    resp = api_client.post(BILLS, {"customer_name": "X", "items": [line, line]}, format="json")
    assert resp.status_code == 409


@pytest.mark.parametrize("second_line_names_batch", [True, False])
def test_two_lines_on_one_batch_decrement_both(api_client, medication, batch, second_line_names_batch):
    first = {"medication": str(medication.id), "batch": str(batch.id), "quantity": 3}
    second = {"medication": str(medication.id), "quantity": 4}
    if second_line_names_batch:
        second["batch"] = str(batch.id)

    resp = api_client.post(BILLS, {"customer_name": "X", "items": [first, second]}, format="json")
    assert resp.status_code == 201, resp.data

    batch.refresh_from_db()
    medication.refresh_from_db()
    assert batch.current_quantity == 93
    assert medication.available_stock == 93

    api_client.post(f"{BILLS}{resp.data['id']}/cancel/", {}, format="json")
    batch.refresh_from_db()
    assert batch.current_quantity == 100


def test_batch_of_other_medication_is_rejected(api_client, batch):
    other = Medication.objects.create(medication_code="MED-OTHR-0001", name="Other")
    resp = api_client.post(
        BILLS,
        {"customer_name": "X", "items": [{"medication": str(other.id), "batch": str(batch.id), "quantity": 1}]},
        format="json",
    )
    assert resp.status_code == 400


def test_payments_move_through_partial_to_paid(api_client, patient, medication, batch):
    bill_id = _bill(api_client, medication, 10, patient=str(patient.id)).data["id"]

    resp = api_client.post(f"{BILLS}{bill_id}/payments/", {"amount": "10.00"}, format="json")
    assert resp.data["payment_status"] == "partial"
    assert resp.data["balance_due"] == "14.00"

    resp = api_client.post(f"{BILLS}{bill_id}/payments/", {"amount": "20.00", "payment_method": "upi"}, format="json")
    assert resp.data["payment_status"] == "paid"
    assert resp.data["balance_due"] == "0.00"
    assert resp.data["payment_method"] == "upi"

    assert api_client.post(f"{BILLS}{bill_id}/payments/", {"amount": "0"}, format="json").status_code == 400


def test_cancel_restores_stock_once(api_client, patient, medication, batch):
    bill_id = _bill(api_client, medication, 10, patient=str(patient.id)).data["id"]

    resp = api_client.post(f"{BILLS}{bill_id}/cancel/", {"reason": "wrong patient"}, format="json")
    assert resp.status_code == 200
    assert resp.data["status"] == "cancelled"

    batch.refresh_from_db()
    medication.refresh_from_db()
    assert batch.current_quantity == 100
    assert medication.available_stock == 100

    assert api_client.post(f"{BILLS}{bill_id}/cancel/", {}, format="json").status_code == 409
    assert api_client.post(f"{BILLS}{bill_id}/payments/", {"amount": "1"}, format="json").status_code == 409


def test_list_filters_and_sales_history(api_client, patient, medication, batch):
    _bill(api_client, medication, 2, patient=str(patient.id))
    _bill(api_client, medication, 3, customer_name="Walk In")

    resp = api_client.get(BILLS, {"patient": str(patient.id)})
    assert resp.data["count"] == 1

    resp = api_client.get(BILLS, {"q": "walk"})
    assert [b["customer_name"] for b in resp.data["results"]] == ["Walk In"]

    resp = api_client.get("/api/v1/pharmacy/medications/sales-history/", {"batch_number": "PCM001"})
    assert resp.status_code == 200
    assert sorted(r["quantity"] for r in resp.data["results"]) == [2, 3]

    assert api_client.get("/api/v1/pharmacy/medications/sales-history/").status_code == 400


def test_billing_roles(role_client, medication, batch):
    payload = {"customer_name": "X", "items": [{"medication": str(medication.id), "quantity": 1}]}
    assert role_client("BILLING").post(BILLS, payload, format="json").status_code == 201
    assert role_client("NURSE").post(BILLS, payload, format="json").status_code == 403
    assert role_client("NURSE").post(f"{BILLS}quote/", payload, format="json").status_code == 200


def _return(api_client, bill, qty, **extra):
    payload = {"items": [{"bill_item": bill["items"][0]["id"], "quantity": qty}]}
    payload.update(extra)
    return api_client.post(f"{BILLS}{bill['id']}/returns/", payload, format="json")


def test_return_restocks_and_refunds_the_paid_share(api_client, medication, batch):
    bill = _bill(api_client, medication, 10, customer_name="Walk In", amount_paid="24.00").data

    resp = _return(api_client, bill, 5, reason="changed prescription")
    assert resp.status_code == 200, resp.data
    # half the subtotal comes back with its share of tax: 10 * 24 / 20
    assert resp.data["return_amount"] == "12.00"
    assert resp.data["refund_amount"] == "12.00"
    assert resp.data["bill"]["returned_amount"] == "12.00"
    assert resp.data["bill"]["amount_paid"] == "12.00"
    assert resp.data["bill"]["balance_due"] == "0.00"
    assert resp.data["bill"]["items"][0]["returned_quantity"] == 5

    batch.refresh_from_db()
    medication.refresh_from_db()
    assert batch.current_quantity == 95
    assert medication.available_stock == 95
    assert StockTransaction.objects.filter(transaction_type="return", quantity=5, batch=batch).count() == 1
    assert AuditEvent.objects.filter(event_code="pharmacy.bill.returned", entity_id=bill["id"]).exists()

    # only 5 left on the line
    resp = _return(api_client, bill, 6)
    assert resp.status_code == 409

    resp = _return(api_client, bill, 5)
    assert resp.status_code == 200
    assert resp.data["bill"]["returned_amount"] == "24.00"
    assert resp.data["bill"]["amount_paid"] == "0.00"
    assert resp.data["bill"]["payment_status"] == "paid"
    batch.refresh_from_db()
    assert batch.current_quantity == 100


def test_return_on_unpaid_bill_lowers_the_balance(api_client, patient, medication, batch):
    bill = _bill(api_client, medication, 10, patient=str(patient.id)).data

    resp = _return(api_client, bill, 4)
    assert resp.status_code == 200, resp.data
    # 8 * 24 / 20 = 9.60, rounded to 10
    assert resp.data["return_amount"] == "10.00"
    assert resp.data["refund_amount"] == "0.00"
    assert resp.data["bill"]["balance_due"] == "14.00"
    assert resp.data["bill"]["payment_status"] == "pending"

    resp = api_client.post(f"{BILLS}{bill['id']}/payments/", {"amount": "14.00"}, format="json")
    assert resp.data["payment_status"] == "paid"


def test_cancel_after_return_restores_only_the_rest(api_client, patient, medication, batch):
    bill = _bill(api_client, medication, 10, patient=str(patient.id)).data
    assert _return(api_client, bill, 4).status_code == 200

    assert api_client.post(f"{BILLS}{bill['id']}/cancel/", {}, format="json").status_code == 200

    batch.refresh_from_db()
    medication.refresh_from_db()
    assert batch.current_quantity == 100
    assert medication.available_stock == 100
    assert StockTransaction.objects.get(transaction_type="cancellation").quantity == 6

    # nothing comes back from a cancelled bill
    assert _return(api_client, bill, 1).status_code == 409


def test_return_rejects_lines_of_another_bill(api_client, medication, batch):
    first = _bill(api_client, medication, 2, customer_name="A").data
    second = _bill(api_client, medication, 2, customer_name="B").data

    resp = api_client.post(
        f"{BILLS}{first['id']}/returns/",
        {"items": [{"bill_item": second["items"][0]["id"], "quantity": 1}]},
        format="json",
    )
    assert resp.status_code == 400
    assert resp.data["error"]["code"] == "validation_error"

    batch.refresh_from_db()
    assert batch.current_quantity == 96


def test_returns_are_for_pharmacists(role_client, api_client, medication, batch):
    bill = _bill(api_client, medication, 2, customer_name="Walk In").data
    assert _return(role_client("BILLING"), bill, 1).status_code == 403
    assert _return(role_client("PHARMACIST"), bill, 1).status_code == 200
