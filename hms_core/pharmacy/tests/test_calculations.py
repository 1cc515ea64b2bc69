from datetime import date
from decimal import Decimal

import pytest
from rest_framework.exceptions import ValidationError

from hms_core.pharmacy.calculations import (
    compute_bill_totals,
    expand_free_lines,
    payment_state,
    purchase_net_amount,
    recalc_purchase_line,
    return_credit,
    settle_after_return,
    summarize_purchase,
    validate_purchase_line,
)


def test_bill_totals_round_each_stage_to_whole_rupees():
    out = compute_bill_totals(
        [
            {"quantity": 3, "unit_price": Decimal("10.50")},
            {"quantity": 2, "unit_price": Decimal("25")},
        ],
        discount_type="percent",
        discount_value=Decimal("10"),
        tax_percent=Decimal("18"),
    )

    assert [l["total_amount"] for l in out["lines"]] == [Decimal("31.50"), Decimal("50.00")]
    # 81.50 -> 82, 10% = 8.20 -> 8, 18% of 74 = 13.32 -> 13
    assert out["subtotal"] == Decimal("82.00")
    assert out["discount_amount"] == Decimal("8.00")
    assert out["after_discount"] == Decimal("74.00")
    assert out["tax_amount"] == Decimal("13.00")
    assert out["cgst_amount"] == Decimal("6.50")
    assert out["sgst_amount"] == Decimal("6.50")
    assert out["total_amount"] == Decimal("87.00")


def test_bill_tax_splits_evenly_into_cgst_and_sgst():
    out = compute_bill_totals([{"quantity": 1, "unit_price": "100"}], tax_percent="7")
    assert out["tax_amount"] == Decimal("7.00")
    assert out["cgst_amount"] == Decimal("3.50")
    assert out["sgst_amount"] == Decimal("3.50")
    assert out["total_amount"] == Decimal("107.00")


def test_flat_discount_is_capped_at_subtotal():
    out = compute_bill_totals(
        [{"quantity": 1, "unit_price": "82"}], discount_type="flat", discount_value="500", tax_percent="18"
    )
    assert out["discount_amount"] == Decimal("82.00")
    assert out["tax_amount"] == Decimal("0.00")
    assert out["total_amount"] == Decimal("0.00")


def test_default_tax_comes_from_settings(settings):
    settings.HMS_DEFAULT_TAX_PERCENT = 12
    out = compute_bill_totals([{"quantity": 1, "unit_price": "100"}])
    assert out["tax_percent"] == Decimal("12.00")
    assert out["tax_amount"] == Decimal("12.00")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"discount_type": "percent", "discount_value": "101"},
        {"discount_type": "bogus", "discount_value": "1"},
        {"discount_type": "flat", "discount_value": "-5"},
    ],
)
def test_bad_discounts_are_rejected(kwargs):
    with pytest.raises(ValidationError):
        compute_bill_totals([{"quantity": 1, "unit_price": "10"}], tax_percent="0", **kwargs)


def test_negative_quantity_is_rejected():
    with pytest.raises(ValidationError) as exc:
        compute_bill_totals([{"quantity": -1, "unit_price": "10"}], tax_percent="0")
    assert "items[0].quantity" in exc.value.detail


def test_payment_state():
    assert payment_state(Decimal("100.00"), Decimal("0")) == (Decimal("0.00"), Decimal("100.00"), "pending")
    assert payment_state(Decimal("100.00"), Decimal("40")) == (Decimal("40.00"), Decimal("60.00"), "partial")
    # overpayment keeps the paid amount but never goes negative on balance
    assert payment_state(Decimal("100.00"), Decimal("120")) == (Decimal("120.00"), Decimal("0.00"), "paid")


def test_return_credit_is_proportional_and_capped():
    kw = {"subtotal": Decimal("20.00"), "total": Decimal("24.00"), "already_returned": Decimal("0.00")}
    assert return_credit(returned_gross=Decimal("8.00"), returns_everything=False, **kw) == Decimal("10.00")

    # the last return takes what is left, not its own rounded share
    kw["already_returned"] = Decimal("10.00")
    assert return_credit(returned_gross=Decimal("12.00"), returns_everything=True, **kw) == Decimal("14.00")


def test_settle_after_return():
    out = settle_after_return(net_total=Decimal("12.00"), paid=Decimal("20.00"))
    assert out == {
        "refund_amount": Decimal("8.00"),
        "amount_paid": Decimal("12.00"),
        "balance_due": Decimal("0.00"),
        "payment_status": "paid",
    }
    assert settle_after_return(net_total=Decimal("0.00"), paid=Decimal("0.00"))["payment_status"] == "paid"


def test_recalc_purchase_line():
    out = recalc_purchase_line(
        {
            "quantity": 10,
            "rate": "50",
            "pack_size": 10,
            "discount_percent": "10",
            "gst_percent": "12",
            "mrp": "80",
        }
    )
    assert out["subtotal"] == Decimal("500.00")
    assert out["discount_amount"] == Decimal("50.00")
    assert out["taxable_amount"] == Decimal("450.00")
    assert out["gst_amount"] == Decimal("54.00")
    assert out["cgst_amount"] == Decimal("27.00")
    assert out["sgst_amount"] == Decimal("27.00")
    assert out["total_amount"] == Decimal("504.00")
    assert out["stock_units"] == 100
    assert out["single_unit_rate"] == Decimal("5.0000")
    assert out["profit_percent"] == Decimal("60.00")
    assert out["flag"] == "Purchase"


def test_recalc_marks_returns():
    out = recalc_purchase_line({"quantity": 2, "rate": "10", "drug_return": True})
    assert out["flag"] == "Return"


def test_free_quantity_becomes_its_own_zero_rate_line():
    lines = expand_free_lines(
        [
            {
                "medication": "m1",
                "batch_number": "B1",
                "expiry_date": date(2027, 1, 31),
                "quantity": 10,
                "rate": "50",
                "mrp": "80",
                "free_quantity": 2,
                "free_mrp": "90",
            }
        ]
    )

    assert len(lines) == 2
    paid, free = lines
    assert "free_quantity" not in paid
    assert paid["quantity"] == 10

    assert free["batch_number"] == "B1-1"
    assert free["quantity"] == 2
    assert free["rate"] == Decimal("0")
    assert free["mrp"] == "90"
    assert free["expiry_date"] == date(2027, 1, 31)
    assert recalc_purchase_line(free)["flag"] == "Free"
    assert recalc_purchase_line(free)["total_amount"] == Decimal("0.00")


def test_returns_never_get_free_lines():
    lines = expand_free_lines([{"batch_number": "B1", "quantity": 1, "free_quantity": 5, "drug_return": True}])
    assert len(lines) == 1


def test_validate_purchase_line_collects_every_problem():
    errors = validate_purchase_line({"batch_number": " ", "expiry_date": date(1999, 1, 1), "quantity": 0})
    assert "medication is required" in errors
    assert "batch_number is required" in errors
    assert any("expiry year" in e for e in errors)
    assert "quantity must be greater than 0" in errors

    ok = {"medication": "m1", "batch_number": "B1", "expiry_date": date(2027, 1, 1), "quantity": 1}
    assert validate_purchase_line(ok) == []


def test_summary_excludes_returns_from_quantity():
    lines = [
        recalc_purchase_line({"quantity": 10, "rate": "10", "gst_percent": "0"}),
        recalc_purchase_line({"quantity": 3, "rate": "10", "gst_percent": "0", "drug_return": True}),
    ]
    summary = summarize_purchase(lines)
    assert summary["total_quantity"] == 10
    assert summary["subtotal"] == Decimal("130.00")
    assert summary["total_gst"] == Decimal("0.00")
    assert summary["discount_percent"] == Decimal("0.00")


def test_purchase_net_amount():
    assert purchase_net_amount(total_amount=Decimal("1000.00"), cash_discount="50", bill_discount="30") == Decimal(
        "920.00"
    )
    assert purchase_net_amount(total_amount=Decimal("100.00"), cash_discount="2000") == Decimal("0.00")
    with pytest.raises(ValidationError):
        purchase_net_amount(total_amount=Decimal("100.00"), cash_discount="-1")


def test_summary_reads_quantity_strings():
    summary = summarize_purchase([{"quantity": "2.5", "flag": "Purchase"}, {"quantity": "4", "flag": "Free"}])
    assert summary["total_quantity"] == 6

    with pytest.raises(ValidationError):
        summarize_purchase([{"quantity": "two", "flag": "Purchase"}])
