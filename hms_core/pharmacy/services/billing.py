# hms_core/pharmacy/services/billing.py
from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from hms_core.audit.services import AuditService
from hms_core.common.api.exceptions import ConflictError
from hms_core.common.events import publish
from hms_core.common.money import ZERO, q2, to_decimal
from hms_core.common.numbering import next_sequence_number
from hms_core.patients.models import Patient
from hms_core.pharmacy.calculations import (
    compute_bill_totals,
    payment_state,
    return_credit,
    settle_after_return,
)
from hms_core.pharmacy.models import (
    BillStatus,
    CustomerType,
    Medication,
    MedicineBatch,
    PharmacyBill,
    PharmacyBillItem,
    StockTransactionType,
)
from hms_core.pharmacy.services.inventory import (
    apply_batch_stock,
    apply_medication_stock,
    record_stock_movement,
)

logger = logging.getLogger(__name__)

BILL_CREATED_EVENT = "pharmacy.bill.created"


def _batch_price(batch: MedicineBatch) -> Decimal:
    return batch.selling_price if batch.selling_price and batch.selling_price > 0 else batch.medication.selling_price


def _sellable_batches(medication_id: UUID, *, lock: bool):
    qs = MedicineBatch.objects.select_related("medication").filter(
        medication_id=medication_id,
        is_active=True,
        current_quantity__gt=0,
        expiry_date__gte=timezone.localdate(),
    )
    if lock:
        qs = qs.select_for_update()
    return qs.order_by("expiry_date", "created_at")


def resolve_bill_lines(items: list[dict], *, lock: bool) -> list[dict]:
    """
    items: [{medication, batch?, quantity, unit_price?}] -> priced lines, one per batch.

    A line naming a batch is taken from that batch; a line without one is filled from
    the medication's batches, earliest expiry first. Short stock raises ConflictError.
    """
    if not items:
        raise ValidationError({"items": "At least one item is required."})

    lines: list[dict] = []
    # quantities already claimed in this request, so two lines on one batch add up
    claimed: dict[UUID, int] = defaultdict(int)

    for idx, item in enumerate(items):
        qty = int(item.get("quantity") or 0)
        if qty <= 0:
            raise ValidationError({f"items[{idx}].quantity": "Quantity must be > 0."})

        medication_id = item.get("medication")
        batch_id = item.get("batch")
        price_override = item.get("unit_price")

        if batch_id:
            qs = MedicineBatch.objects.select_related("medication")
            if lock:
                qs = qs.select_for_update()
            batch = qs.get(id=batch_id)
            if medication_id and batch.medication_id != medication_id:
                raise ValidationError({f"items[{idx}].batch": "Batch does not belong to this medication."})

            free = batch.current_quantity - claimed[batch.id]
            if qty > free:
                raise ConflictError(
                    f"Insufficient stock for {batch.medication.name} batch {batch.batch_number}: "
                    f"{max(free, 0)} available, {qty} requested."
                )
            claimed[batch.id] += qty
            lines.append(_line(batch, qty, price_override))
            continue

        if not medication_id:
            raise ValidationError({f"items[{idx}].medication": "Medication or batch is required."})

        med = Medication.objects.get(id=medication_id)
        remaining = qty
        for batch in _sellable_batches(medication_id, lock=lock):
            free = batch.current_quantity - claimed[batch.id]
            if free <= 0:
                continue
            take = min(free, remaining)
            claimed[batch.id] += take
            lines.append(_line(batch, take, price_override))
            remaining -= take
            if remaining == 0:
                break

        if remaining:
            raise ConflictError(f"Insufficient stock for {med.name}: {qty - remaining} available, {qty} requested.")

    return lines


def _line(batch: MedicineBatch, qty: int, price_override) -> dict:
    price = _batch_price(batch) if price_override in (None, "") else to_decimal(price_override, "unit_price")
    return {
        "medication": batch.medication,
        "batch": batch,
        "batch_number": batch.batch_number,
        "quantity": qty,
        "unit_price": q2(price),
    }


class PharmacyBillingService:
    @staticmethod
    def quote(
        *,
        items: list[dict],
        discount_type: str = "flat",
        discount_value=ZERO,
        tax_percent=None,
    ) -> dict:
        """Bill totals for the requested lines. Nothing is written."""
        lines = resolve_bill_lines(items, lock=False)
        return compute_bill_totals(
            lines,
            discount_type=discount_type,
            discount_value=discount_value,
            tax_percent=tax_percent,
        )

    @staticmethod
    def _next_bill_number_locked() -> str:
        prefix = f"{settings.HMS_PHARMACY_BILL_PREFIX}-{timezone.localdate():%y%m}-"
        return next_sequence_number(model=PharmacyBill, field="bill_number", prefix=prefix, width=4)

    @staticmethod
    @transaction.atomic
    def create_bill(
        *,
        actor_user_id: int | None,
        items: list[dict],
        patient_id: UUID | None = None,
        customer_name: str = "",
        customer_phone: str = "",
        prescription_id: UUID | None = None,
        discount_type: str = "flat",
        discount_value=ZERO,
        tax_percent=None,
        amount_paid=ZERO,
        payment_method: str = "cash",
        notes: str = "",
    ) -> PharmacyBill:
        patient = Patient.objects.get(id=patient_id) if patient_id else None
        if patient is None and not (customer_name or "").strip():
            raise ValidationError({"customer_name": "Customer name is required for walk-in sales."})

        lines = resolve_bill_lines(items, lock=True)
        totals = compute_bill_totals(
            lines,
            discount_type=discount_type,
            discount_value=discount_value,
            tax_percent=tax_percent,
        )

        paid = to_decimal(amount_paid, "amount_paid", default=ZERO)
        if paid < 0:
            raise ValidationError({"amount_paid": "Must not be negative."})
        paid, balance, pay_status = payment_state(totals["total_amount"], paid)

        bill = PharmacyBill.objects.create(
            bill_number=PharmacyBillingService._next_bill_number_locked(),
            patient=patient,
            customer_name=(customer_name or "").strip() or (patient.name if patient else ""),
            customer_phone=(customer_phone or "").strip() or (patient.phone if patient else ""),
            customer_type=CustomerType.PATIENT if patient else CustomerType.WALK_IN,
            prescription_id=prescription_id,
            subtotal=totals["subtotal"],
            discount_type=totals["discount_type"],
            discount_value=totals["discount_value"],
            discount_amount=totals["discount_amount"],
            tax_percent=totals["tax_percent"],
            tax_amount=totals["tax_amount"],
            cgst_amount=totals["cgst_amount"],
            sgst_amount=totals["sgst_amount"],
            total_amount=totals["total_amount"],
            amount_paid=paid,
            balance_due=balance,
            payment_method=payment_method,
            payment_status=pay_status,
            status=BillStatus.COMPLETED,
            notes=notes or "",
            created_by_id=actor_user_id,
        )

        dispensed: dict[str, int] = defaultdict(int)
        for line in totals["lines"]:
            batch = line["batch"]
            PharmacyBillItem.objects.create(
                bill=bill,
                medication=line["medication"],
                batch=batch,
                batch_number=line["batch_number"],
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                total_amount=line["total_amount"],
            )

            apply_batch_stock(batch.id, delta=-line["quantity"])
            apply_medication_stock(batch.medication_id, available_delta=-line["quantity"])
            record_stock_movement(
                medication_id=batch.medication_id,
                batch_id=batch.id,
                transaction_type=StockTransactionType.SALE,
                quantity=-line["quantity"],
                reference=bill.bill_number,
                actor_user_id=actor_user_id,
            )
            dispensed[str(batch.medication_id)] += line["quantity"]

        AuditService.log(
            event_code="pharmacy.bill.created",
            entity_type="PharmacyBill",
            entity_id=bill.id,
            actor_user_id=actor_user_id,
            metadata={
                "bill_number": bill.bill_number,
                "total_amount": bill.total_amount,
                "payment_status": bill.payment_status,
                "prescription_id": prescription_id,
            },
        )

        publish(
            BILL_CREATED_EVENT,
            {
                "bill_id": str(bill.id),
                "prescription_id": str(prescription_id) if prescription_id else None,
                "items": [{"medication_id": m, "quantity": q} for m, q in dispensed.items()],
            },
        )
        logger.info("pharmacy bill %s total %s (%s)", bill.bill_number, bill.total_amount, bill.payment_status)
        return bill

    @staticmethod
    @transaction.atomic
    def record_payment(*, actor_user_id: int | None, bill_id: UUID, amount, payment_method: str | None = None) -> PharmacyBill:
        bill = PharmacyBill.objects.select_for_update().get(id=bill_id)
        if bill.status == BillStatus.CANCELLED:
            raise ConflictError(f"Bill {bill.bill_number} is cancelled.")

        amount = to_decimal(amount, "amount")
        if amount <= 0:
            raise ValidationError({"amount": "Amount must be > 0."})

        bill.amount_paid, bill.balance_due, bill.payment_status = payment_state(
            bill.total_amount - bill.returned_amount, bill.amount_paid + amount
        )
        if payment_method:
            bill.payment_method = payment_method
        bill.save(update_fields=["amount_paid", "balance_due", "payment_status", "payment_method", "updated_at"])

        AuditService.log(
            event_code="pharmacy.bill.payment",
            entity_type="PharmacyBill",
            entity_id=bill.id,
            actor_user_id=actor_user_id,
            metadata={"amount": q2(amount), "balance_due": bill.balance_due, "payment_status": bill.payment_status},
        )
        return bill

    @staticmethod
    @transaction.atomic
    def cancel_bill(*, actor_user_id: int | None, bill_id: UUID, reason: str = "") -> PharmacyBill:
        bill = PharmacyBill.objects.select_for_update().get(id=bill_id)
        if bill.status != BillStatus.COMPLETED:
            raise ConflictError(f"Bill {bill.bill_number} is {bill.status}.")

        for item in bill.items.select_related("batch"):
            # returned units are already back on the shelf
            qty = item.quantity - item.returned_quantity
            if qty <= 0:
                continue
            if item.batch_id:
                apply_batch_stock(item.batch_id, delta=qty)
            apply_medication_stock(item.medication_id, available_delta=qty)
            record_stock_movement(
                medication_id=item.medication_id,
                batch_id=item.batch_id,
                transaction_type=StockTransactionType.CANCELLATION,
                quantity=qty,
                reference=bill.bill_number,
                notes=reason,
                actor_user_id=actor_user_id,
            )

        bill.status = BillStatus.CANCELLED
        if reason:
            bill.notes = f"{bill.notes}\nCancelled: {reason}".strip()
        bill.save(update_fields=["status", "notes", "updated_at"])

        AuditService.log(
            event_code="pharmacy.bill.cancelled",
            entity_type="PharmacyBill",
            entity_id=bill.id,
            actor_user_id=actor_user_id,
            metadata={"bill_number": bill.bill_number, "reason": reason or ""},
        )
        return bill

    @staticmethod
    @transaction.atomic
    def return_items(
        *,
        actor_user_id: int | None,
        bill_id: UUID,
        items: list[dict],
        reason: str = "",
        refund_method: str | None = None,
    ) -> dict:
        """
        Take back dispensed units: items are [{bill_item, quantity}].

        Units go back to their batch and medication, the bill's total shrinks by the
        returned share, and anything paid above the new total is refunded.
        """
        bill = PharmacyBill.objects.select_for_update().get(id=bill_id)
        if bill.status != BillStatus.COMPLETED:
            raise ConflictError(f"Bill {bill.bill_number} is {bill.status}.")
        if not items:
            raise ValidationError({"items": "At least one item is required."})

        bill_items = {i.id: i for i in bill.items.select_for_update()}
        wanted: dict[UUID, int] = defaultdict(int)
        for idx, item in enumerate(items):
            item_id = item.get("bill_item")
            if item_id not in bill_items:
                raise ValidationError({f"items[{idx}].bill_item": "Not a line of this bill."})
            qty = int(item.get("quantity") or 0)
            if qty <= 0:
                raise ValidationError({f"items[{idx}].quantity": "Quantity must be > 0."})
            wanted[item_id] += qty

        returned_gross = ZERO
        lines = []
        for item_id, qty in wanted.items():
            line = bill_items[item_id]
            left = line.quantity - line.returned_quantity
            if qty > left:
                raise ConflictError(
                    f"Cannot return {qty} of {line.batch_number or line.medication_id}: {left} still returnable."
                )
            returned_gross += q2(qty * line.unit_price)
            lines.append((line, qty))

        returns_everything = all(
            line.quantity - line.returned_quantity == wanted.get(line.id, 0) for line in bill_items.values()
        )
        credit = return_credit(
            subtotal=bill.subtotal,
            total=bill.total_amount,
            returned_gross=returned_gross,
            already_returned=bill.returned_amount,
            returns_everything=returns_everything,
        )

        for line, qty in lines:
            line.returned_quantity += qty
            line.save(update_fields=["returned_quantity", "updated_at"])
            if line.batch_id:
                apply_batch_stock(line.batch_id, delta=qty)
            apply_medication_stock(line.medication_id, available_delta=qty)
            record_stock_movement(
                medication_id=line.medication_id,
                batch_id=line.batch_id,
                transaction_type=StockTransactionType.RETURN,
                quantity=qty,
                reference=bill.bill_number,
                notes=reason,
                actor_user_id=actor_user_id,
            )

        bill.returned_amount = q2(bill.returned_amount + credit)
        settlement = settle_after_return(net_total=bill.total_amount - bill.returned_amount, paid=bill.amount_paid)
        bill.amount_paid = settlement["amount_paid"]
        bill.balance_due = settlement["balance_due"]
        bill.payment_status = settlement["payment_status"]
        if reason:
            bill.notes = f"{bill.notes}\nReturned: {reason}".strip()
        bill.save(
            update_fields=["returned_amount", "amount_paid", "balance_due", "payment_status", "notes", "updated_at"]
        )

        AuditService.log(
            event_code="pharmacy.bill.returned",
            entity_type="PharmacyBill",
            entity_id=bill.id,
            actor_user_id=actor_user_id,
            metadata={
                "bill_number": bill.bill_number,
                "return_amount": credit,
                "refund_amount": settlement["refund_amount"],
                "refund_method": refund_method or bill.payment_method,
                "items": [{"bill_item_id": str(line.id), "quantity": qty} for line, qty in lines],
                "reason": reason or "",
            },
        )
        logger.info(
            "pharmacy bill %s return %s, refund %s", bill.bill_number, credit, settlement["refund_amount"]
        )
        return {
            "bill": bill,
            "return_amount": credit,
            "refund_amount": settlement["refund_amount"],
            "refund_method": refund_method or bill.payment_method,
        }
