# hms_core/pharmacy/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hms_core.pharmacy.models import (
    DiscountType,
    DrugPurchase,
    DrugPurchaseItem,
    Medication,
    MedicationStatus,
    MedicineBatch,
    PaymentMethod,
    PharmacyBill,
    PharmacyBillItem,
    PurchaseStatus,
    Supplier,
)

MONEY = {"max_digits": 12, "decimal_places": 2}


# -------------------------------------------------------------------
# Medications + batches
# -------------------------------------------------------------------

class MedicationWriteSerializer(serializers.Serializer):
    medication_code = serializers.CharField(max_length=64, required=False, allow_blank=True)
    name = serializers.CharField(max_length=255, required=False)
    generic_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    manufacturer = serializers.CharField(max_length=255, required=False, allow_blank=True)
    category = serializers.CharField(max_length=64, required=False, allow_blank=True)
    dosage_form = serializers.CharField(max_length=64, required=False, allow_blank=True)
    strength = serializers.CharField(max_length=64, required=False, allow_blank=True)
    combination = serializers.CharField(required=False, allow_blank=True)
    route = serializers.CharField(max_length=32, required=False, allow_blank=True)
    unit = serializers.CharField(max_length=32, required=False, allow_blank=True)
    purchase_price = serializers.DecimalField(**MONEY, required=False, min_value=0)
    selling_price = serializers.DecimalField(**MONEY, required=False, min_value=0)
    mrp = serializers.DecimalField(**MONEY, required=False, min_value=0)
    minimum_stock_level = serializers.IntegerField(required=False, min_value=0)
    prescription_required = serializers.BooleanField(required=False)
    hsn_code = serializers.CharField(max_length=16, required=False, allow_blank=True)
    gst_percent = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, min_value=0, max_value=100)
    status = serializers.ChoiceField(choices=MedicationStatus.choices, required=False)

    def validate(self, attrs):
        if self.partial:
            if not attrs:
                raise serializers.ValidationError("At least one field is required.")
            attrs.pop("medication_code", None)
            return attrs
        if not (attrs.get("name") or "").strip():
            raise serializers.ValidationError({"name": "This field is required."})
        return attrs


class MedicationSerializer(serializers.ModelSerializer):
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Medication
        fields = [
            "id",
            "medication_code",
            "name",
            "generic_name",
            "manufacturer",
            "category",
            "dosage_form",
            "strength",
            "combination",
            "route",
            "unit",
            "purchase_price",
            "selling_price",
            "mrp",
            "total_stock",
            "available_stock",
            "minimum_stock_level",
            "is_low_stock",
            "prescription_required",
            "hsn_code",
            "gst_percent",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class MedicationMiniSerializer(serializers.ModelSerializer):
    class Meta:
        model = Medication
        fields = ["id", "medication_code", "name", "generic_name", "strength", "dosage_form", "selling_price"]
        read_only_fields = fields


class MedicineBatchSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source="supplier.name", read_only=True, default=None)

    class Meta:
        model = MedicineBatch
        fields = [
            "id",
            "medication",
            "batch_number",
            "manufacturing_date",
            "expiry_date",
            "received_quantity",
            "current_quantity",
            "purchase_price",
            "selling_price",
            "mrp",
            "supplier",
            "supplier_name",
            "received_date",
            "is_active",
            "created_at",
        ]
        read_only_fields = fields


class BatchCreateSerializer(serializers.Serializer):
    batch_number = serializers.CharField(max_length=64)
    expiry_date = serializers.DateField()
    manufacturing_date = serializers.DateField(required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=0)
    purchase_price = serializers.DecimalField(**MONEY, required=False, min_value=0)
    selling_price = serializers.DecimalField(**MONEY, required=False, min_value=0)
    mrp = serializers.DecimalField(**MONEY, required=False, min_value=0)
    supplier = serializers.UUIDField(required=False, allow_null=True)
    received_date = serializers.DateField(required=False, allow_null=True)


class StockAdjustmentSerializer(serializers.Serializer):
    batch = serializers.UUIDField()
    quantity = serializers.IntegerField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    expired = serializers.BooleanField(required=False, default=False)

    def validate_quantity(self, value):
        if value == 0:
            raise serializers.ValidationError("Quantity must not be zero.")
        return value


class ExpiryAlertSerializer(serializers.Serializer):
    batch = MedicineBatchSerializer()
    medication = MedicationMiniSerializer()
    days_to_expiry = serializers.IntegerField()
    expired = serializers.BooleanField()


# -------------------------------------------------------------------
# Bills
# -------------------------------------------------------------------

class BillLineInputSerializer(serializers.Serializer):
    medication = serializers.UUIDField(required=False, allow_null=True)
    batch = serializers.UUIDField(required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(**MONEY, required=False, allow_null=True, min_value=0)

    def validate(self, attrs):
        if not attrs.get("medication") and not attrs.get("batch"):
            raise serializers.ValidationError("medication or batch is required.")
        return attrs


class BillQuoteSerializer(serializers.Serializer):
    items = BillLineInputSerializer(many=True, allow_empty=False)
    discount_type = serializers.ChoiceField(choices=DiscountType.choices, default=DiscountType.FLAT)
    discount_value = serializers.DecimalField(**MONEY, default=0, min_value=0)
    tax_percent = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True, min_value=0)


class BillCreateSerializer(BillQuoteSerializer):
    patient = serializers.UUIDField(required=False, allow_null=True)
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    customer_phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    prescription_id = serializers.UUIDField(required=False, allow_null=True)
    amount_paid = serializers.DecimalField(**MONEY, default=0, min_value=0)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class QuoteLineSerializer(serializers.Serializer):
    medication = MedicationMiniSerializer()
    batch = serializers.UUIDField(source="batch.id")
    batch_number = serializers.CharField()
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(**MONEY)
    total_amount = serializers.DecimalField(**MONEY)


class BillQuoteResultSerializer(serializers.Serializer):
    lines = QuoteLineSerializer(many=True)
    subtotal = serializers.DecimalField(**MONEY)
    discount_type = serializers.CharField()
    discount_value = serializers.DecimalField(**MONEY)
    discount_amount = serializers.DecimalField(**MONEY)
    after_discount = serializers.DecimalField(**MONEY)
    tax_percent = serializers.DecimalField(max_digits=5, decimal_places=2)
    tax_amount = serializers.DecimalField(**MONEY)
    cgst_amount = serializers.DecimalField(**MONEY)
    sgst_amount = serializers.DecimalField(**MONEY)
    total_amount = serializers.DecimalField(**MONEY)


class PaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(**MONEY)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be > 0.")
        return value


class CancelBillSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class PharmacyBillItemSerializer(serializers.ModelSerializer):
    medication = MedicationMiniSerializer(read_only=True)

    class Meta:
        model = PharmacyBillItem
        fields = [
            "id",
            "medication",
            "batch",
            "batch_number",
            "quantity",
            "returned_quantity",
            "unit_price",
            "total_amount",
        ]
        read_only_fields = fields


class PharmacyBillSerializer(serializers.ModelSerializer):
    items = PharmacyBillItemSerializer(many=True, read_only=True)
    patient_uhid = serializers.CharField(source="patient.uhid", read_only=True, default=None)

    class Meta:
        model = PharmacyBill
        fields = [
            "id",
            "bill_number",
            "patient",
            "patient_uhid",
            "customer_name",
            "customer_phone",
            "customer_type",
            "prescription_id",
            "subtotal",
            "discount_type",
            "discount_value",
            "discount_amount",
            "tax_percent",
            "tax_amount",
            "cgst_amount",
            "sgst_amount",
            "total_amount",
            "returned_amount",
            "amount_paid",
            "balance_due",
            "payment_method",
            "payment_status",
            "status",
            "notes",
            "items",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class BillReturnItemSerializer(serializers.Serializer):
    bill_item = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class BillReturnSerializer(serializers.Serializer):
    items = BillReturnItemSerializer(many=True, allow_empty=False)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    refund_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)


class BillReturnResultSerializer(serializers.Serializer):
    bill = PharmacyBillSerializer()
    return_amount = serializers.DecimalField(**MONEY)
    refund_amount = serializers.DecimalField(**MONEY)
    refund_method = serializers.CharField()


class BatchSaleSerializer(serializers.ModelSerializer):
    bill_number = serializers.CharField(source="bill.bill_number", read_only=True)
    bill_date = serializers.DateTimeField(source="bill.created_at", read_only=True)
    customer_name = serializers.CharField(source="bill.customer_name", read_only=True)
    bill_status = serializers.CharField(source="bill.status", read_only=True)
    medication_name = serializers.CharField(source="medication.name", read_only=True)

    class Meta:
        model = PharmacyBillItem
        fields = [
            "id",
            "bill_number",
            "bill_date",
            "customer_name",
            "bill_status",
            "medication_name",
            "batch_number",
            "quantity",
            "unit_price",
            "total_amount",
        ]
        read_only_fields = fields


# -------------------------------------------------------------------
# Suppliers + purchases
# -------------------------------------------------------------------

class SupplierWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    contact_person = serializers.CharField(max_length=255, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    gstin = serializers.CharField(max_length=32, required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if self.partial:
            if not attrs:
                raise serializers.ValidationError("At least one field is required.")
            return attrs
        if not (attrs.get("name") or "").strip():
            raise serializers.ValidationError({"name": "This field is required."})
        return attrs


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = [
            "id",
            "supplier_code",
            "name",
            "contact_person",
            "phone",
            "email",
            "gstin",
            "address",
            "is_active",
            "created_at",
        ]
        read_only_fields = fields


class PurchaseLineInputSerializer(serializers.Serializer):
    medication = serializers.UUIDField()
    batch_number = serializers.CharField(max_length=64)
    expiry_date = serializers.DateField()
    pack_size = serializers.IntegerField(min_value=1, default=1)
    quantity = serializers.IntegerField(min_value=1)
    rate = serializers.DecimalField(**MONEY, min_value=0)
    mrp = serializers.DecimalField(**MONEY, min_value=0, default=0)
    discount_percent = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100, default=0)
    gst_percent = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100, default=5)
    profit_percent = serializers.DecimalField(max_digits=8, decimal_places=2, required=False)
    drug_return = serializers.BooleanField(default=False)
    free_quantity = serializers.IntegerField(min_value=0, default=0)
    free_expiry_date = serializers.DateField(required=False, allow_null=True)
    free_mrp = serializers.DecimalField(**MONEY, min_value=0, required=False, allow_null=True)


class PurchaseRecalculateSerializer(serializers.Serializer):
    items = PurchaseLineInputSerializer(many=True)
    cash_discount = serializers.DecimalField(**MONEY, min_value=0, default=0)
    bill_discount = serializers.DecimalField(**MONEY, min_value=0, default=0)


class PurchaseCreateSerializer(PurchaseRecalculateSerializer):
    supplier = serializers.UUIDField()
    invoice_number = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    invoice_date = serializers.DateField(required=False, allow_null=True)
    purchase_date = serializers.DateField(required=False, allow_null=True)
    paid_amount = serializers.DecimalField(**MONEY, min_value=0, default=0)
    payment_mode = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CREDIT)
    remarks = serializers.CharField(required=False, allow_blank=True, default="")
    status = serializers.ChoiceField(
        choices=[PurchaseStatus.DRAFT, PurchaseStatus.RECEIVED], default=PurchaseStatus.DRAFT
    )

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("At least one item is required.")
        return value


class PurchaseLineResultSerializer(serializers.Serializer):
    medication = serializers.UUIDField()
    batch_number = serializers.CharField()
    expiry_date = serializers.DateField()
    pack_size = serializers.IntegerField()
    quantity = serializers.IntegerField()
    rate = serializers.DecimalField(**MONEY)
    mrp = serializers.DecimalField(**MONEY)
    flag = serializers.CharField()
    subtotal = serializers.DecimalField(**MONEY)
    discount_amount = serializers.DecimalField(**MONEY)
    taxable_amount = serializers.DecimalField(**MONEY)
    gst_amount = serializers.DecimalField(**MONEY)
    cgst_amount = serializers.DecimalField(**MONEY)
    sgst_amount = serializers.DecimalField(**MONEY)
    total_amount = serializers.DecimalField(**MONEY)
    single_unit_rate = serializers.DecimalField(max_digits=12, decimal_places=4, required=False)
    profit_percent = serializers.DecimalField(max_digits=8, decimal_places=2)
    stock_units = serializers.IntegerField()


class PurchaseSummarySerializer(serializers.Serializer):
    total_quantity = serializers.IntegerField()
    subtotal = serializers.DecimalField(**MONEY)
    discount_amount = serializers.DecimalField(**MONEY)
    discount_percent = serializers.DecimalField(max_digits=8, decimal_places=2)
    taxable_amount = serializers.DecimalField(**MONEY)
    total_gst = serializers.DecimalField(**MONEY)
    cgst_amount = serializers.DecimalField(**MONEY)
    sgst_amount = serializers.DecimalField(**MONEY)
    total_amount = serializers.DecimalField(**MONEY)
    net_amount = serializers.DecimalField(**MONEY)


class PurchaseRecalculateResultSerializer(serializers.Serializer):
    lines = PurchaseLineResultSerializer(many=True)
    summary = PurchaseSummarySerializer()


class DrugPurchaseItemSerializer(serializers.ModelSerializer):
    medication = MedicationMiniSerializer(read_only=True)

    class Meta:
        model = DrugPurchaseItem
        fields = [
            "id",
            "medication",
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
        ]
        read_only_fields = fields


class DrugPurchaseSerializer(serializers.ModelSerializer):
    supplier = SupplierSerializer(read_only=True)
    items = DrugPurchaseItemSerializer(many=True, read_only=True)

    class Meta:
        model = DrugPurchase
        fields = [
            "id",
            "purchase_number",
            "supplier",
            "invoice_number",
            "invoice_date",
            "purchase_date",
            "status",
            "total_quantity",
            "subtotal",
            "discount_amount",
            "taxable_amount",
            "cgst_amount",
            "sgst_amount",
            "total_tax",
            "total_amount",
            "cash_discount",
            "net_amount",
            "paid_amount",
            "payment_mode",
            "remarks",
            "received_at",
            "items",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class PurchaseHistorySerializer(serializers.ModelSerializer):
    purchase_number = serializers.CharField(source="purchase.purchase_number", read_only=True)
    purchase_date = serializers.DateField(source="purchase.purchase_date", read_only=True)
    invoice_number = serializers.CharField(source="purchase.invoice_number", read_only=True)
    supplier_name = serializers.CharField(source="purchase.supplier.name", read_only=True)
    purchase_status = serializers.CharField(source="purchase.status", read_only=True)

    class Meta:
        model = DrugPurchaseItem
        fields = [
            "id",
            "purchase_number",
            "purchase_date",
            "invoice_number",
            "supplier_name",
            "purchase_status",
            "batch_number",
            "expiry_date",
            "quantity",
            "pack_size",
            "rate",
            "mrp",
            "total_amount",
            "flag",
        ]
        read_only_fields = fields


# -------------------------------------------------------------------
# Bulk upload
# -------------------------------------------------------------------

class UploadFileSerializer(serializers.Serializer):
    file = serializers.FileField()


class BatchUploadRowSerializer(serializers.Serializer):
    medication_id = serializers.CharField(required=False, allow_blank=True)
    batch_number = serializers.CharField(required=False, allow_blank=True)
    expiry_date = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    manufacturing_date = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    quantity = serializers.CharField(required=False, allow_blank=True)
    purchase_price = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    selling_price = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    mrp = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    supplier_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class BatchUploadSerializer(serializers.Serializer):
    batches = BatchUploadRowSerializer(many=True, allow_empty=False)


class UploadRowResultSerializer(serializers.Serializer):
    row = serializers.IntegerField()
    sheet = serializers.CharField(required=False)
    status = serializers.ChoiceField(choices=["success", "error", "skipped"])
    message = serializers.CharField()
    medicine = serializers.CharField(required=False)
    batch = serializers.CharField(required=False)


class UploadResultSerializer(serializers.Serializer):
    # counters differ per upload kind; only the common ones are required
    upload_id = serializers.UUIDField()
    success_count = serializers.IntegerField()
    error_count = serializers.IntegerField()
    skipped_count = serializers.IntegerField(required=False)
    duplicate_count = serializers.IntegerField(required=False)
    total_rows = serializers.IntegerField(required=False)
    total_processed = serializers.IntegerField(required=False)
    total_medicines = serializers.IntegerField(required=False)
    errors = serializers.ListField(child=serializers.CharField(), required=False)
    results = UploadRowResultSerializer(many=True)
