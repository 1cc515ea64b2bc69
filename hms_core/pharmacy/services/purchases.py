# hms_core/pharmacy/services/purchases.py
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from hms_core.audit.services import AuditService
from hms_core.common.api.exceptions import ConflictError
from hms_core.common.money import ZERO, q2
from hms_core.common.numbering import next_sequence_number
from hms_core.pharmacy.calculations import (
    expand_free_lines,
    purchase_net_amount,
    recalc_purchase_line,
    summarize_purchase,
    validate_purchase_line,
)
from hms_core.pharmacy.models import (
    DrugPurchase,
    DrugPurchaseItem,
    Medication,
    MedicineBatch,
    PurchaseFlag,
    PurchaseStatus,
    StockTransactionType,
    Supplier,
)
from hms_core.pharmacy.services.inventory import apply_medication_stock, record_stock_movement

logger = logging.getLogger(__name__)

ITEM_FIELDS = (
    "batch_number",
    "expiry_date",
    "pack_size",
    "quantity",
    "rate",
    "mrp",
    "discount_percent",
    "gst_percent",
    "subtotal",
    "discount_amount",
    "taxable_amount",
    "gst_amount",
    "cgst_amount",
    "sgst_amount",
    "total_amount",
    "single_unit_rate",
    "profit_percent",
    "stock_units",
    "flag",
)


def prepare_purchase_lines(items: list[dict]) -> list[dict]:
    """Expand free quantities, recalculate every line and reject the set if any line is unusable."""
    if not items:
        raise ValidationError({"items": "At least one item is required."})

    lines = [recalc_purchase_line(line) for line in expand_free_lines(items)]

    problems = {}
    for idx, line in enumerate(lines):
        errors = validate_purchase_line(line)
        if errors:
            problems[f"items[{idx}]"] = errors
    if problems:
        raise ValidationError(problems)
    return lines


def _per_unit(amount: Decimal, pack_size: int) -> Decimal:
    return q2(amount / pack_size) if pack_size > 0 else q2(amount)


class PurchaseService:
    @staticmethod
    def recalculate(*, items: list[dict], cash_discount=ZERO, bill_discount=ZERO) -> dict:
        """Preview of lines and header totals for the purchase entry form."""
        lines = [recalc_purchase_line(line) for line in expand_free_lines(items or [])]
        summary = summarize_purchase(lines)
        summary["net_amount"] = purchase_net_amount(
            total_amount=summary["total_amount"],
            cash_discount=cash_discount,
            bill_discount=bill_discount,
        )
        return {"lines": lines, "summary": summary}

    @staticmethod
    def _next_purchase_number_locked() -> str:
        prefix = f"PUR-{timezone.localdate():%y%m}-"
        return next_sequence_number(model=DrugPurchase, field="purchase_number", prefix=prefix, width=4)

    @staticmethod
    @transaction.atomic
    def create_purchase(
        *,
        actor_user_id: int | None,
        supplier_id: UUID,
        items: list[dict],
        invoice_number: str = "",
        invoice_date: date | None = None,
        purchase_date: date | None = None,
        cash_discount=ZERO,
        bill_discount=ZERO,
        paid_amount=ZERO,
        payment_mode: str = "credit",
        remarks: str = "",
        status: str = PurchaseStatus.DRAFT,
    ) -> DrugPurchase:
        if not supplier_id:
            raise ValidationError({"supplier": "This field is required."})
        supplier = Supplier.objects.get(id=supplier_id)

        lines = prepare_purchase_lines(items)
        med_ids = {line["medication"] for line in lines}
        known = set(Medication.objects.filter(id__in=med_ids).values_list("id", flat=True))
        missing = sorted(str(m) for m in med_ids - known)
        if missing:
            raise ValidationError({"items": f"Unknown medication(s): {', '.join(missing)}"})

        summary = summarize_purchase(lines)
        net = purchase_net_amount(
            total_amount=summary["total_amount"],
            cash_discount=cash_discount,
            bill_discount=bill_discount,
        )

        purchase = DrugPurchase.objects.create(
            purchase_number=PurchaseService._next_purchase_number_locked(),
            supplier=supplier,
            invoice_number=(invoice_number or "").strip(),
            invoice_date=invoice_date,
            purchase_date=purchase_date or timezone.localdate(),
            status=PurchaseStatus.DRAFT,
            total_quantity=summary["total_quantity"],
            subtotal=summary["subtotal"],
            discount_amount=summary["discount_amount"],
            taxable_amount=summary["taxable_amount"],
            cgst_amount=summary["cgst_amount"],
            sgst_amount=summary["sgst_amount"],
            total_tax=summary["total_gst"],
            total_amount=summary["total_amount"],
            cash_discount=q2(summary["total_amount"] - net),
            net_amount=net,
            paid_amount=q2(paid_amount or ZERO),
            payment_mode=payment_mode,
            remarks=remarks or "",
            created_by_id=actor_user_id,
        )

        DrugPurchaseItem.objects.bulk_create(
            [
                DrugPurchaseItem(
                    purchase=purchase,
                    medication_id=line["medication"],
                    **{k: line[k] for k in ITEM_FIELDS if k in line},
                )
                for line in lines
            ]
        )

        AuditService.log(
            event_code="pharmacy.purchase.created",
            entity_type="DrugPurchase",
            entity_id=purchase.id,
            actor_user_id=actor_user_id,
            metadata={
                "purchase_number": purchase.purchase_number,
                "supplier_code": supplier.supplier_code,
                "invoice_number": purchase.invoice_number,
                "net_amount": purchase.net_amount,
                "lines": len(lines),
            },
        )

        if status == PurchaseStatus.RECEIVED:
            return PurchaseService.receive(actor_user_id=actor_user_id, purchase_id=purchase.id)
        return purchase

    @staticmethod
    @transaction.atomic
    def receive(*, actor_user_id: int | None, purchase_id: UUID) -> DrugPurchase:
        """
        Post every line to stock. Purchase and Free lines add `stock_units` to the batch
        (created on first sight); Return lines take them back out.
        """
        purchase = DrugPurchase.objects.select_for_update().get(id=purchase_id)
        if purchase.status != PurchaseStatus.DRAFT:
            raise ConflictError(f"Purchase {purchase.purchase_number} is {purchase.status}.")

        for item in purchase.items.select_related("medication").order_by("created_at", "id"):
            if item.flag == PurchaseFlag.RETURN:
                PurchaseService._post_return(purchase, item, actor_user_id)
            else:
                PurchaseService._post_receipt(purchase, item, actor_user_id)

        purchase.status = PurchaseStatus.RECEIVED
        purchase.received_at = timezone.now()
        purchase.save(update_fields=["status", "received_at", "updated_at"])

        AuditService.log(
            event_code="pharmacy.purchase.received",
            entity_type="DrugPurchase",
            entity_id=purchase.id,
            actor_user_id=actor_user_id,
            metadata={"purchase_number": purchase.purchase_number, "total_quantity": purchase.total_quantity},
        )
        logger.info("purchase %s received", purchase.purchase_number)
        return purchase

    @staticmethod
    def _post_receipt(purchase: DrugPurchase, item: DrugPurchaseItem, actor_user_id: int | None) -> None:
        units = item.stock_units
        unit_cost = item.single_unit_rate.quantize(Decimal("0.01")) if item.flag != PurchaseFlag.FREE else ZERO
        unit_mrp = _per_unit(item.mrp, item.pack_size)

        batch, created = MedicineBatch.objects.select_for_update().get_or_create(
            medication_id=item.medication_id,
            batch_number=item.batch_number,
            expiry_date=item.expiry_date,
            defaults={
                "received_quantity": 0,
                "current_quantity": 0,
                "purchase_price": unit_cost,
                "selling_price": unit_mrp,
                "mrp": unit_mrp,
                "supplier_id": purchase.supplier_id,
                "received_date": purchase.purchase_date,
            },
        )
        batch.received_quantity += units
        batch.current_quantity += units
        batch.is_active = True
        update_fields = ["received_quantity", "current_quantity", "is_active", "updated_at"]
        if not created and item.flag == PurchaseFlag.PURCHASE:
            batch.purchase_price = unit_cost
            if unit_mrp > 0:
                batch.selling_price = unit_mrp
                batch.mrp = unit_mrp
            update_fields += ["purchase_price", "selling_price", "mrp"]
        batch.save(update_fields=update_fields)

        apply_medication_stock(item.medication_id, available_delta=units, received_delta=units)

        if item.flag == PurchaseFlag.PURCHASE:
            med_updates = {"purchase_price": unit_cost}
            if unit_mrp > 0:
                med_updates.update(selling_price=unit_mrp, mrp=unit_mrp)
            Medication.objects.filter(id=item.medication_id).update(**med_updates)

        record_stock_movement(
            medication_id=item.medication_id,
            batch_id=batch.id,
            transaction_type=StockTransactionType.PURCHASE,
            quantity=units,
            reference=purchase.purchase_number,
            notes=item.flag,
            actor_user_id=actor_user_id,
        )

    @staticmethod
    def _post_return(purchase: DrugPurchase, item: DrugPurchaseItem, actor_user_id: int | None) -> None:
        units = item.stock_units
        batch = (
            MedicineBatch.objects.select_for_update()
            .filter(medication_id=item.medication_id, batch_number=item.batch_number, expiry_date=item.expiry_date)
            .first()
        )
        if batch is None:
            raise ValidationError(
                {"items": f"Return of {item.medication.name} batch {item.batch_number}: batch not in stock."}
            )
        if batch.current_quantity < units:
            raise ConflictError(
                f"Return of {units} units exceeds stock of batch {batch.batch_number} ({batch.current_quantity})."
            )

        batch.current_quantity -= units
        batch.save(update_fields=["current_quantity", "updated_at"])
        apply_medication_stock(item.medication_id, available_delta=-units)

        record_stock_movement(
            medication_id=item.medication_id,
            batch_id=batch.id,
            transaction_type=StockTransactionType.RETURN,
            quantity=-units,
            reference=purchase.purchase_number,
            notes="Return to supplier",
            actor_user_id=actor_user_id,
        )

    @staticmethod
    @transaction.atomic
    def cancel(*, actor_user_id: int | None, purchase_id: UUID) -> DrugPurchase:
        purchase = DrugPurchase.objects.select_for_update().get(id=purchase_id)
        if purchase.status != PurchaseStatus.DRAFT:
            raise ConflictError(f"Only draft purchases can be cancelled; {purchase.purchase_number} is {purchase.status}.")

        purchase.status = PurchaseStatus.CANCELLED
        purchase.save(update_fields=["status", "updated_at"])

        AuditService.log(
            event_code="pharmacy.purchase.cancelled",
            entity_type="DrugPurchase",
            entity_id=purchase.id,
            actor_user_id=actor_user_id,
            metadata={"purchase_number": purchase.purchase_number},
        )
        return purchase

