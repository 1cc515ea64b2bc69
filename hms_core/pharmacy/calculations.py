# hms_core/pharmacy/calculations.py
"""
Pure money arithmetic for pharmacy bills and supplier purchases.

Nothing here touches the database; services call these and persist the results.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable

from django.conf import settings
from rest_framework.exceptions import ValidationError

from hms_core.common.money import ZERO, q2, round_rupees, to_decimal

HUNDRED = Decimal("100")
DEFAULT_PURCHASE_GST = Decimal("5")
MIN_EXPIRY_YEAR = 2000
MAX_EXPIRY_YEAR = 2100


def _non_negative(value, field: str, *, default: Decimal | None = None) -> Decimal:
    d = to_decimal(value, field, default=default)
    if d < 0:
        raise ValidationError({field: "Must not be negative."})
    return d


# -------------------------------------------------------------------
# Bills
# -------------------------------------------------------------------

def compute_bill_totals(
    items: Iterable[dict],
    *,
    discount_type: str = "flat",
    discount_value=ZERO,
    tax_percent=None,
) -> dict:
    """
    items: [{"quantity", "unit_price"}]. Every stage rounds to whole rupees, half-up.

    Returns subtotal, discount_amount, after_discount, tax_amount, cgst_amount,
    sgst_amount, total_amount and the priced lines (with their `total_amount`).
    """
    lines = []
    raw_subtotal = ZERO
    for idx, item in enumerate(items):
        qty = _non_negative(item.get("quantity"), f"items[{idx}].quantity")
        price = _non_negative(item.get("unit_price"), f"items[{idx}].unit_price")
        line_total = q2(qty * price)
        raw_subtotal += line_total
        lines.append({**item, "total_amount": line_total})

    subtotal = round_rupees(raw_subtotal)

    value = _non_negative(discount_value, "discount_value", default=ZERO)
    if discount_type == "percent":
        if value > HUNDRED:
            raise ValidationError({"discount_value": "Percent discount cannot exceed 100."})
        discount = round_rupees(subtotal * value / HUNDRED)
    elif discount_type == "flat":
        discount = round_rupees(value)
    else:
        raise ValidationError({"discount_type": "Expected 'flat' or 'percent'."})
    discount = min(discount, subtotal)

    after_discount = subtotal - discount

    tax_pct = _non_negative(tax_percent, "tax_percent", default=Decimal(str(settings.HMS_DEFAULT_TAX_PERCENT)))
    tax = round_rupees(after_discount * tax_pct / HUNDRED)
    half = q2(tax / 2)

    return {
        "lines": lines,
        "subtotal": subtotal,
        "discount_type": discount_type,
        "discount_value": q2(value),
        "discount_amount": discount,
        "after_discount": q2(after_discount),
        "tax_percent": q2(tax_pct),
        "tax_amount": tax,
        "cgst_amount": half,
        "sgst_amount": q2(tax - half),
        "total_amount": q2(after_discount + tax),
    }


def payment_state(total: Decimal, paid: Decimal) -> tuple[Decimal, Decimal, str]:
    """(amount_paid, balance_due, payment_status); overpayment leaves a zero balance."""
    paid = q2(paid or ZERO)
    balance = q2(max(total - paid, ZERO))
    if paid <= 0:
        status = "pending"
    elif balance == 0:
        status = "paid"
    else:
        status = "partial"
    return paid, balance, status


def return_credit(
    *,
    subtotal: Decimal,
    total: Decimal,
    returned_gross: Decimal,
    already_returned: Decimal,
    returns_everything: bool,
) -> Decimal:
    """
    Credit for returned lines: their share of the bill's subtotal applied to its total,
    so discount and tax come back in proportion. The last return takes whatever is left.
    """
    remaining = q2(max(total - already_returned, ZERO))
    if returns_everything or subtotal <= 0:
        return remaining
    return min(round_rupees(returned_gross * total / subtotal), remaining)


def settle_after_return(*, net_total: Decimal, paid: Decimal) -> dict:
    """Money owed the other way once a bill shrinks: paid above the new total is refunded."""
    refund = q2(max(paid - net_total, ZERO))
    new_paid, balance, status = payment_state(net_total, paid - refund)
    if net_total <= 0:
        status = "paid"
    return {"refund_amount": refund, "amount_paid": new_paid, "balance_due": balance, "payment_status": status}


# -------------------------------------------------------------------
# Purchases
# -------------------------------------------------------------------

def recalc_purchase_line(line: dict) -> dict:
    """
    Recompute every derived figure of one purchase line from its inputs
    (quantity, rate, pack_size, discount_percent, gst_percent, mrp, drug_return).
    """
    qty = to_decimal(line.get("quantity"), "quantity", default=ZERO)
    rate = to_decimal(line.get("rate"), "rate", default=ZERO)
    pack = to_decimal(line.get("pack_size"), "pack_size", default=Decimal("1"))
    disc_pct = to_decimal(line.get("discount_percent"), "discount_percent", default=ZERO)
    gst_pct = to_decimal(line.get("gst_percent"), "gst_percent", default=DEFAULT_PURCHASE_GST)
    mrp = to_decimal(line.get("mrp"), "mrp", default=ZERO)

    subtotal = q2(qty * rate)
    discount = q2(subtotal * disc_pct / HUNDRED)
    taxable = q2(subtotal - discount)
    gst = q2(taxable * gst_pct / HUNDRED)
    cgst = q2(gst / 2)

    out = dict(line)
    out.update(
        {
            "subtotal": subtotal,
            "discount_amount": discount,
            "taxable_amount": taxable,
            "gst_amount": gst,
            "cgst_amount": cgst,
            "sgst_amount": q2(gst - cgst),
            "total_amount": q2(taxable + gst),
            "stock_units": int(qty * pack),
        }
    )

    if line.get("flag") != "Free":
        out["flag"] = "Return" if line.get("drug_return") else "Purchase"

    if pack > 0:
        out["single_unit_rate"] = (rate / pack).quantize(Decimal("0.0001"))
    if mrp > 0 and rate > 0:
        out["profit_percent"] = q2((mrp - rate) / rate * HUNDRED)
    else:
        out["profit_percent"] = q2(to_decimal(line.get("profit_percent"), "profit_percent", default=ZERO))

    return out


def expand_free_lines(lines: Iterable[dict]) -> list[dict]:
    """
    A line with `free_quantity` gains a sibling `Free` line: batch "<batch>-1",
    rate 0, optional free expiry / mrp. The free quantity is removed from the original.
    """
    out: list[dict] = []
    for line in lines:
        free_qty = int(to_decimal(line.get("free_quantity"), "free_quantity", default=ZERO))
        base = {k: v for k, v in line.items() if k not in ("free_quantity", "free_expiry_date", "free_mrp")}
        out.append(base)

        if free_qty > 0 and not line.get("drug_return"):
            batch = str(line.get("batch_number") or "")
            out.append(
                {
                    **base,
                    "batch_number": batch if batch.endswith("-1") else f"{batch}-1",
                    "expiry_date": line.get("free_expiry_date") or line.get("expiry_date"),
                    "mrp": line.get("free_mrp") or line.get("mrp"),
                    "quantity": free_qty,
                    "rate": ZERO,
                    "discount_percent": ZERO,
                    "flag": "Free",
                }
            )
    return out


def validate_purchase_line(line: dict) -> list[str]:
    """Problems with one line; empty when the line is usable."""
    errors: list[str] = []
    if not line.get("medication"):
        errors.append("medication is required")
    if not str(line.get("batch_number") or "").strip():
        errors.append("batch_number is required")

    expiry = line.get("expiry_date")
    if not expiry:
        errors.append("expiry_date is required")
    elif isinstance(expiry, date) and not (MIN_EXPIRY_YEAR <= expiry.year <= MAX_EXPIRY_YEAR):
        errors.append(f"expiry year must be between {MIN_EXPIRY_YEAR} and {MAX_EXPIRY_YEAR}")

    try:
        if to_decimal(line.get("quantity"), "quantity", default=ZERO) <= 0:
            errors.append("quantity must be greater than 0")
        if to_decimal(line.get("pack_size"), "pack_size", default=Decimal("1")) <= 0:
            errors.append("pack_size must be greater than 0")
    except ValidationError:
        errors.append("quantity and pack_size must be numbers")

    return errors


def summarize_purchase(lines: Iterable[dict]) -> dict:
    """Header totals over recalculated lines. Return lines are excluded from stock quantity."""
    lines = list(lines)

    def total(key: str) -> Decimal:
        return q2(sum((to_decimal(l.get(key), key, default=ZERO) for l in lines), ZERO))

    subtotal = total("subtotal")
    discount = total("discount_amount")
    gst = total("gst_amount")

    return {
        "total_quantity": sum(
            int(to_decimal(l.get("quantity"), "quantity", default=ZERO)) for l in lines if l.get("flag") != "Return"
        ),
        "subtotal": subtotal,
        "discount_amount": discount,
        "discount_percent": q2(discount / subtotal * HUNDRED) if subtotal > 0 else ZERO,
        "taxable_amount": total("taxable_amount"),
        "total_gst": gst,
        "cgst_amount": total("cgst_amount"),
        "sgst_amount": total("sgst_amount"),
        "total_amount": total("total_amount"),
    }


def purchase_net_amount(*, total_amount: Decimal, cash_discount=ZERO, bill_discount=ZERO) -> Decimal:
    cash = _non_negative(cash_discount, "cash_discount", default=ZERO)
    bill = _non_negative(bill_discount, "bill_discount", default=ZERO)
    return q2(max(total_amount - cash - bill, ZERO))
