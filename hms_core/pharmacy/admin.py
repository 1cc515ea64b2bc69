# hms_core/pharmacy/admin.py
from django.contrib import admin

from hms_core.pharmacy.models import (
    DrugPurchase,
    DrugPurchaseItem,
    Medication,
    MedicineBatch,
    PharmacyBill,
    PharmacyBillItem,
    StockTransaction,
    Supplier,
)


class MedicineBatchInline(admin.TabularInline):
    model = MedicineBatch
    extra = 0
    fields = ("batch_number", "expiry_date", "received_quantity", "current_quantity", "selling_price", "is_active")
    readonly_fields = ("received_quantity", "current_quantity")


@admin.register(Medication)
class MedicationAdmin(admin.ModelAdmin):
    list_display = ("medication_code", "name", "category", "available_stock", "minimum_stock_level", "status")
    list_filter = ("status", "category", "prescription_required")
    search_fields = ("medication_code", "name", "generic_name")
    readonly_fields = ("total_stock", "available_stock", "created_at", "updated_at")
    inlines = [MedicineBatchInline]


@admin.register(MedicineBatch)
class MedicineBatchAdmin(admin.ModelAdmin):
    list_display = ("batch_number", "medication", "expiry_date", "current_quantity", "is_active")
    list_filter = ("is_active",)
    search_fields = ("batch_number", "medication__name")
    raw_id_fields = ("medication", "supplier")


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ("supplier_code", "name", "phone", "gstin", "is_active")
    search_fields = ("supplier_code", "name", "phone")


@admin.register(StockTransaction)
class StockTransactionAdmin(admin.ModelAdmin):
    list_display = ("created_at", "medication", "batch", "transaction_type", "quantity", "reference")
    list_filter = ("transaction_type",)
    search_fields = ("reference", "medication__name")
    raw_id_fields = ("medication", "batch", "performed_by")


class PharmacyBillItemInline(admin.TabularInline):
    model = PharmacyBillItem
    extra = 0
    raw_id_fields = ("medication", "batch")


@admin.register(PharmacyBill)
class PharmacyBillAdmin(admin.ModelAdmin):
    list_display = ("bill_number", "customer_name", "total_amount", "payment_status", "status", "created_at")
    list_filter = ("status", "payment_status", "payment_method")
    search_fields = ("bill_number", "customer_name", "customer_phone", "patient__uhid")
    raw_id_fields = ("patient", "created_by")
    inlines = [PharmacyBillItemInline]


class DrugPurchaseItemInline(admin.TabularInline):
    model = DrugPurchaseItem
    extra = 0
    raw_id_fields = ("medication",)


@admin.register(DrugPurchase)
class DrugPurchaseAdmin(admin.ModelAdmin):
    list_display = ("purchase_number", "supplier", "invoice_number", "purchase_date", "net_amount", "status")
    list_filter = ("status",)
    search_fields = ("purchase_number", "invoice_number", "supplier__name")
    raw_id_fields = ("supplier", "created_by")
    inlines = [DrugPurchaseItemInline]
