# hms_core/pharmacy/models.py
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from hms_core.common.models import UUIDModel
from hms_core.patients.models import Patient

ZERO = Decimal("0.00")


def _money(**kwargs):
    return models.DecimalField(max_digits=12, decimal_places=2, default=ZERO, **kwargs)


# -------------------------------------------------------------------
# Catalogue + stock
# -------------------------------------------------------------------

class MedicationStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class Medication(UUIDModel):
    medication_code = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255, db_index=True)
    generic_name = models.CharField(max_length=255, blank=True)
    manufacturer = models.CharField(max_length=255, blank=True)

    category = models.CharField(max_length=64, blank=True, db_index=True)
    dosage_form = models.CharField(max_length=64, blank=True)
    strength = models.CharField(max_length=64, blank=True)
    combination = models.TextField(blank=True)
    route = models.CharField(max_length=32, blank=True)
    unit = models.CharField(max_length=32, blank=True)

    purchase_price = _money()
    selling_price = _money()
    mrp = _money()

    # total_stock = ever received, available_stock = on the shelf now
    total_stock = models.IntegerField(default=0)
    available_stock = models.IntegerField(default=0)
    minimum_stock_level = models.PositiveIntegerField(default=10)

    prescription_required = models.BooleanField(default=False)
    hsn_code = models.CharField(max_length=16, blank=True)
    gst_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("5.00"))

    status = models.CharField(
        max_length=16, choices=MedicationStatus.choices, default=MedicationStatus.ACTIVE, db_index=True
    )

    class Meta:
        db_table = "medications"
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.medication_code})"

    @property
    def is_low_stock(self) -> bool:
        return self.available_stock <= self.minimum_stock_level


class Supplier(UUIDModel):
    supplier_code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255, db_index=True)
    contact_person = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)
    gstin = models.CharField(max_length=32, blank=True)
    address = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "pharmacy_supplier"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class MedicineBatch(UUIDModel):
    """
    One received lot of a medication. (medication, batch_number, expiry_date) is the
    duplicate key used by every import path.
    """
    medication = models.ForeignKey(Medication, on_delete=models.CASCADE, related_name="batches")
    batch_number = models.CharField(max_length=64, db_index=True)
    manufacturing_date = models.DateField(null=True, blank=True)
    expiry_date = models.DateField(db_index=True)

    received_quantity = models.IntegerField(default=0)
    current_quantity = models.IntegerField(default=0)

    purchase_price = _money()
    selling_price = _money()
    mrp = _money()

    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.SET_NULL,
        related_name="batches",
        null=True,
        blank=True,
    )
    received_date = models.DateField(default=timezone.localdate)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "medicine_batches"
        ordering = ["expiry_date", "batch_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["medication", "batch_number", "expiry_date"],
                name="uq_batch_medication_number_expiry",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.batch_number} exp {self.expiry_date}"


class StockTransactionType(models.TextChoices):
    PURCHASE = "purchase", "Purchase"
    SALE = "sale", "Sale"
    RETURN = "return", "Return"
    ADJUSTMENT = "adjustment", "Adjustment"
    EXPIRED = "expired", "Expired"
    CANCELLATION = "cancellation", "Cancellation"


class StockTransaction(UUIDModel):
    medication = models.ForeignKey(Medication, on_delete=models.CASCADE, related_name="stock_transactions")
    batch = models.ForeignKey(
        MedicineBatch,
        on_delete=models.SET_NULL,
        related_name="stock_transactions",
        null=True,
        blank=True,
    )
    transaction_type = models.CharField(max_length=16, choices=StockTransactionType.choices, db_index=True)
    quantity = models.IntegerField()  # signed: + into stock, - out of stock
    reference = models.CharField(max_length=64, blank=True)
    notes = models.TextField(blank=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="stock_transactions",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "pharmacy_stock_transaction"
        indexes = [
            models.Index(fields=["medication", "created_at"]),
        ]


# -------------------------------------------------------------------
# Pharmacy bills
# -------------------------------------------------------------------

class CustomerType(models.TextChoices):
    PATIENT = "patient", "Patient"
    WALK_IN = "walk_in", "Walk In"


class DiscountType(models.TextChoices):
    FLAT = "flat", "Flat"
    PERCENT = "percent", "Percent"


class PaymentMethod(models.TextChoices):
    CASH = "cash", "Cash"
    CARD = "card", "Card"
    UPI = "upi", "UPI"
    INSURANCE = "insurance", "Insurance"
    CREDIT = "credit", "Credit"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PARTIAL = "partial", "Partial"
    PAID = "paid", "Paid"


class BillStatus(models.TextChoices):
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class PharmacyBill(UUIDModel):
    bill_number = models.CharField(max_length=32, unique=True)

    patient = models.ForeignKey(
        Patient,
        on_delete=models.PROTECT,
        related_name="pharmacy_bills",
        null=True,
        blank=True,
    )
    customer_name = models.CharField(max_length=255, blank=True)
    customer_phone = models.CharField(max_length=32, blank=True)
    customer_type = models.CharField(max_length=16, choices=CustomerType.choices, default=CustomerType.WALK_IN)

    # plain UUID: prescriptions depends on pharmacy, not the other way round
    prescription_id = models.UUIDField(null=True, blank=True, db_index=True)

    subtotal = _money()
    discount_type = models.CharField(max_length=16, choices=DiscountType.choices, default=DiscountType.FLAT)
    discount_value = _money()
    discount_amount = _money()
    tax_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("18.00"))
    tax_amount = _money()
    cgst_amount = _money()
    sgst_amount = _money()
    total_amount = _money()
    returned_amount = _money()

    amount_paid = _money()
    balance_due = _money()
    payment_method = models.CharField(max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    payment_status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )
    status = models.CharField(max_length=16, choices=BillStatus.choices, default=BillStatus.COMPLETED, db_index=True)

    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="pharmacy_bills",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "billing"

    def __str__(self) -> str:
        return self.bill_number


class PharmacyBillItem(UUIDModel):
    bill = models.ForeignKey(PharmacyBill, on_delete=models.CASCADE, related_name="items")
    medication = models.ForeignKey(Medication, on_delete=models.PROTECT, related_name="bill_items")
    batch = models.ForeignKey(
        MedicineBatch,
        on_delete=models.SET_NULL,
        related_name="bill_items",
        null=True,
        blank=True,
    )
    batch_number = models.CharField(max_length=64, blank=True, db_index=True)
    quantity = models.PositiveIntegerField()
    returned_quantity = models.PositiveIntegerField(default=0)
    unit_price = _money()
    total_amount = _money()

    class Meta:
        db_table = "billing_item"


# -------------------------------------------------------------------
# Supplier purchases
# -------------------------------------------------------------------

class PurchaseStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    RECEIVED = "received", "Received"
    CANCELLED = "cancelled", "Cancelled"


class PurchaseFlag(models.TextChoices):
    PURCHASE = "Purchase", "Purchase"
    RETURN = "Return", "Return"
    FREE = "Free", "Free"


class DrugPurchase(UUIDModel):
    purchase_number = models.CharField(max_length=32, unique=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name="purchases")

    invoice_number = models.CharField(max_length=64, blank=True, db_index=True)
    invoice_date = models.DateField(null=True, blank=True)
    purchase_date = models.DateField(default=timezone.localdate)
    status = models.CharField(max_length=16, choices=PurchaseStatus.choices, default=PurchaseStatus.DRAFT, db_index=True)

    total_quantity = models.IntegerField(default=0)
    subtotal = _money()
    discount_amount = _money()
    taxable_amount = _money()
    cgst_amount = _money()
    sgst_amount = _money()
    total_tax = _money()
    total_amount = _money()
    cash_discount = _money()
    net_amount = _money()

    paid_amount = _money()
    payment_mode = models.CharField(max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.CREDIT)
    remarks = models.TextField(blank=True)

    received_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="drug_purchases",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "pharmacy_drug_purchase"

    def __str__(self) -> str:
        return self.purchase_number


class DrugPurchaseItem(UUIDModel):
    purchase = models.ForeignKey(DrugPurchase, on_delete=models.CASCADE, related_name="items")
    medication = models.ForeignKey(Medication, on_delete=models.PROTECT, related_name="purchase_items")

    batch_number = models.CharField(max_length=64)
    expiry_date = models.DateField()
    pack_size = models.PositiveIntegerField(default=1)
    quantity = models.PositiveIntegerField()
    rate = _money()
    mrp = _money()
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)
    gst_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("5.00"))

    subtotal = _money()
    discount_amount = _money()
    taxable_amount = _money()
    gst_amount = _money()
    cgst_amount = _money()
    sgst_amount = _money()
    total_amount = _money()
    single_unit_rate = models.DecimalField(max_digits=12, decimal_places=4, default=ZERO)
    profit_percent = models.DecimalField(max_digits=8, decimal_places=2, default=ZERO)
    stock_units = models.PositiveIntegerField(default=0)

    flag = models.CharField(max_length=16, choices=PurchaseFlag.choices, default=PurchaseFlag.PURCHASE)

    class Meta:
        db_table = "pharmacy_drug_purchase_item"
