# hms_core/pharmacy/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from hms_core.common.api.pagination import clamp_limit, paginate
from hms_core.common.api.params import UUID_LOOKUP_REGEX, query_bool, query_date, query_uuid
from hms_core.common.permissions import (
    BulkUploadPermission,
    PharmacyBillingPermission,
    PharmacyPermission,
    PurchasePermission,
)
from hms_core.pharmacy.api.serializers import (
    BatchCreateSerializer,
    BatchSaleSerializer,
    BatchUploadSerializer,
    BillCreateSerializer,
    BillQuoteResultSerializer,
    BillQuoteSerializer,
    BillReturnResultSerializer,
    BillReturnSerializer,
    CancelBillSerializer,
    DrugPurchaseSerializer,
    ExpiryAlertSerializer,
    MedicationSerializer,
    MedicationWriteSerializer,
    MedicineBatchSerializer,
    PaymentSerializer,
    PharmacyBillSerializer,
    PurchaseCreateSerializer,
    PurchaseHistorySerializer,
    PurchaseRecalculateResultSerializer,
    PurchaseRecalculateSerializer,
    StockAdjustmentSerializer,
    SupplierSerializer,
    SupplierWriteSerializer,
    UploadFileSerializer,
    UploadResultSerializer,
)
from hms_core.pharmacy.models import (
    DrugPurchase,
    Medication,
    MedicineBatch,
    PharmacyBill,
    StockTransactionType,
    Supplier,
)
from hms_core.pharmacy.selectors import (
    batch_sales_history,
    batches_for,
    categories as distinct_categories,
    expiry_alerts as batches_near_expiry,
    list_bills,
    list_medications,
    list_purchases,
    list_suppliers,
    low_stock as low_stock_medications,
    medication_purchase_history,
    search_medications,
    search_purchases,
)
from hms_core.pharmacy.services.billing import PharmacyBillingService
from hms_core.pharmacy.services.bulk_upload import BulkUploadService
from hms_core.pharmacy.services.inventory import BatchService, MedicationService, StockService, SupplierService
from hms_core.pharmacy.services.purchases import PurchaseService


def _actor(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


def _uploaded_bytes(request) -> tuple[str, bytes]:
    ser = UploadFileSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    upload = ser.validated_data["file"]
    return upload.name or "", upload.read()


def _int_param(request, name: str) -> int | None:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError({name: f"Invalid {name} (int expected)"})


class MedicationViewSet(viewsets.ViewSet):
    permission_classes = [PharmacyPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = MedicationSerializer
    queryset = Medication.objects.none()

    @extend_schema(
        tags=["Pharmacy"],
        responses={200: MedicationSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="category", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = list_medications(
            q=request.query_params.get("q", ""),
            category=request.query_params.get("category") or None,
            status=request.query_params.get("status") or None,
        )
        return paginate(request, qs, MedicationSerializer)

    @extend_schema(tags=["Pharmacy"], request=MedicationWriteSerializer, responses={201: MedicationSerializer})
    def create(self, request):
        ser = MedicationWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        med = MedicationService.create_medication(actor_user_id=_actor(request), **ser.validated_data)
        return Response(MedicationSerializer(med).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Pharmacy"], responses={200: MedicationSerializer})
    def retrieve(self, request, pk=None):
        med = Medication.objects.get(id=UUID(str(pk)))
        return Response(MedicationSerializer(med).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy"], request=MedicationWriteSerializer, responses={200: MedicationSerializer})
    def partial_update(self, request, pk=None):
        ser = MedicationWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        med = MedicationService.update_medication(
            actor_user_id=_actor(request),
            medication_id=UUID(str(pk)),
            data=ser.validated_data,
        )
        return Response(MedicationSerializer(med).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy"], request=MedicationWriteSerializer, responses={200: MedicationSerializer})
    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    @extend_schema(tags=["Pharmacy"], responses={204: None})
    def destroy(self, request, pk=None):
        MedicationService.delete_medication(actor_user_id=_actor(request), medication_id=UUID(str(pk)))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["Pharmacy"],
        responses={200: MedicationSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="limit", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    @action(detail=False, methods=["get"], url_path="search")
    def search(self, request):
        limit = clamp_limit(request.query_params.get("limit"), default=20, maximum=100)
        meds = search_medications(request.query_params.get("q", ""), limit=limit)
        return Response(MedicationSerializer(meds, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy"], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="categories")
    def categories(self, request):
        return Response({"categories": distinct_categories()}, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy"], responses={200: MedicationSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="low-stock")
    def low_stock(self, request):
        return Response(MedicationSerializer(low_stock_medications(), many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Pharmacy"],
        responses={200: ExpiryAlertSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="days",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Look-ahead window in days (default from settings).",
            ),
        ],
    )
    @action(detail=False, methods=["get"], url_path="expiry-alerts")
    def expiry_alerts(self, request):
        alerts = batches_near_expiry(days=_int_param(request, "days"))
        return Response(ExpiryAlertSerializer(alerts, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Pharmacy"],
        responses={200: MedicineBatchSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="in_stock",
                type=OpenApiTypes.BOOL,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Only batches with stock left.",
            ),
        ],
    )
    @action(detail=True, methods=["get"], url_path="batches")
    def batches(self, request, pk=None):
        med = Medication.objects.get(id=UUID(str(pk)))
        qs = batches_for(med.id, include_empty=not query_bool(request, "in_stock"))
        return Response(MedicineBatchSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy"], request=BatchCreateSerializer, responses={201: MedicineBatchSerializer})
    @batches.mapping.post
    def add_batch(self, request, pk=None):
        ser = BatchCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        batch = BatchService.create_batch(
            actor_user_id=_actor(request),
            medication_id=UUID(str(pk)),
            supplier_id=data.pop("supplier", None),
            **data,
        )
        return Response(MedicineBatchSerializer(batch).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Pharmacy"], request=StockAdjustmentSerializer, responses={200: MedicineBatchSerializer})
    @action(detail=True, methods=["post"], url_path="adjust-stock")
    def adjust_stock(self, request, pk=None):
        ser = StockAdjustmentSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        batch_id = ser.validated_data["batch"]
        if not MedicineBatch.objects.filter(id=batch_id, medication_id=UUID(str(pk))).exists():
            raise ValidationError({"batch": "Batch does not belong to this medication."})

        batch = StockService.adjust(
            actor_user_id=_actor(request),
            batch_id=batch_id,
            quantity=ser.validated_data["quantity"],
            reason=ser.validated_data["reason"],
            transaction_type=(
                StockTransactionType.EXPIRED if ser.validated_data["expired"] else StockTransactionType.ADJUSTMENT
            ),
        )
        return Response(MedicineBatchSerializer(batch).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Pharmacy"],
        responses={200: BatchSaleSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="batch_number", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="medication", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    @action(detail=False, methods=["get"], url_path="sales-history")
    def sales_history(self, request):
        qs = batch_sales_history(
            request.query_params.get("batch_number", ""),
            medication_id=query_uuid(request, "medication"),
        )
        return paginate(request, qs, BatchSaleSerializer)

    @extend_schema(tags=["Pharmacy"], responses={200: PurchaseHistorySerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="purchase-history")
    def purchase_history(self, request, pk=None):
        med = Medication.objects.get(id=UUID(str(pk)))
        return paginate(request, medication_purchase_history(med.id), PurchaseHistorySerializer)


class PharmacyBillViewSet(viewsets.ViewSet):
    permission_classes = [PharmacyBillingPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = PharmacyBillSerializer
    queryset = PharmacyBill.objects.none()

    @extend_schema(
        tags=["Pharmacy Billing"],
        responses={200: PharmacyBillSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="patient", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="payment_status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="date_from", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="date_to", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="q",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Bill number, customer name/phone or UHID.",
            ),
        ],
    )
    def list(self, request):
        qs = list_bills(
            patient_id=query_uuid(request, "patient"),
            status=request.query_params.get("status") or None,
            payment_status=request.query_params.get("payment_status") or None,
            date_from=query_date(request, "date_from"),
            date_to=query_date(request, "date_to"),
            q=request.query_params.get("q", ""),
        )
        return paginate(request, qs, PharmacyBillSerializer)

    @extend_schema(tags=["Pharmacy Billing"], responses={200: PharmacyBillSerializer})
    def retrieve(self, request, pk=None):
        bill = PharmacyBill.objects.select_related("patient").prefetch_related("items__medication").get(
            id=UUID(str(pk))
        )
        return Response(PharmacyBillSerializer(bill).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Billing"], request=BillCreateSerializer, responses={201: PharmacyBillSerializer})
    def create(self, request):
        ser = BillCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        bill = PharmacyBillingService.create_bill(
            actor_user_id=_actor(request),
            patient_id=data.pop("patient", None),
            **data,
        )
        return Response(PharmacyBillSerializer(bill).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Pharmacy Billing"], request=BillQuoteSerializer, responses={200: BillQuoteResultSerializer})
    @action(detail=False, methods=["post"], url_path="quote")
    def quote(self, request):
        ser = BillQuoteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        totals = PharmacyBillingService.quote(**ser.validated_data)
        return Response(BillQuoteResultSerializer(totals).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Billing"], request=PaymentSerializer, responses={200: PharmacyBillSerializer})
    @action(detail=True, methods=["post"], url_path="payments")
    def payments(self, request, pk=None):
        ser = PaymentSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        bill = PharmacyBillingService.record_payment(
            actor_user_id=_actor(request),
            bill_id=UUID(str(pk)),
            amount=ser.validated_data["amount"],
            payment_method=ser.validated_data.get("payment_method"),
        )
        return Response(PharmacyBillSerializer(bill).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Billing"], request=CancelBillSerializer, responses={200: PharmacyBillSerializer})
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        ser = CancelBillSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        bill = PharmacyBillingService.cancel_bill(
            actor_user_id=_actor(request),
            bill_id=UUID(str(pk)),
            reason=ser.validated_data["reason"],
        )
        return Response(PharmacyBillSerializer(bill).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Billing"], request=BillReturnSerializer, responses={200: BillReturnResultSerializer})
    @action(detail=True, methods=["post"], url_path="returns")
    def returns(self, request, pk=None):
        ser = BillReturnSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        v = ser.validated_data

        result = PharmacyBillingService.return_items(
            actor_user_id=_actor(request),
            bill_id=UUID(str(pk)),
            items=v["items"],
            reason=v["reason"],
            refund_method=v.get("refund_method"),
        )
        return Response(BillReturnResultSerializer(result).data, status=status.HTTP_200_OK)


class SupplierViewSet(viewsets.ViewSet):
    permission_classes = [PurchasePermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = SupplierSerializer
    queryset = Supplier.objects.none()

    @extend_schema(
        tags=["Pharmacy Purchases"],
        responses={200: SupplierSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="is_active", type=OpenApiTypes.BOOL, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = list_suppliers(q=request.query_params.get("q", ""), is_active=query_bool(request, "is_active"))
        return paginate(request, qs, SupplierSerializer)

    @extend_schema(tags=["Pharmacy Purchases"], request=SupplierWriteSerializer, responses={201: SupplierSerializer})
    def create(self, request):
        ser = SupplierWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        supplier = SupplierService.create_supplier(actor_user_id=_actor(request), **ser.validated_data)
        return Response(SupplierSerializer(supplier).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Pharmacy Purchases"], responses={200: SupplierSerializer})
    def retrieve(self, request, pk=None):
        supplier = Supplier.objects.get(id=UUID(str(pk)))
        return Response(SupplierSerializer(supplier).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Purchases"], request=SupplierWriteSerializer, responses={200: SupplierSerializer})
    def partial_update(self, request, pk=None):
        ser = SupplierWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        supplier = SupplierService.update_supplier(
            actor_user_id=_actor(request),
            supplier_id=UUID(str(pk)),
            data=ser.validated_data,
        )
        return Response(SupplierSerializer(supplier).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Purchases"], request=SupplierWriteSerializer, responses={200: SupplierSerializer})
    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    @extend_schema(tags=["Pharmacy Purchases"], responses={204: None})
    def destroy(self, request, pk=None):
        SupplierService.delete_supplier(actor_user_id=_actor(request), supplier_id=UUID(str(pk)))
        return Response(status=status.HTTP_204_NO_CONTENT)


class DrugPurchaseViewSet(viewsets.ViewSet):
    permission_classes = [PurchasePermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = DrugPurchaseSerializer
    queryset = DrugPurchase.objects.none()

    @extend_schema(
        tags=["Pharmacy Purchases"],
        responses={200: DrugPurchaseSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="supplier", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = list_purchases(
            supplier_id=query_uuid(request, "supplier"),
            status=request.query_params.get("status") or None,
        )
        return paginate(request, qs, DrugPurchaseSerializer)

    @extend_schema(tags=["Pharmacy Purchases"], responses={200: DrugPurchaseSerializer})
    def retrieve(self, request, pk=None):
        purchase = DrugPurchase.objects.select_related("supplier").prefetch_related("items__medication").get(
            id=UUID(str(pk))
        )
        return Response(DrugPurchaseSerializer(purchase).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Purchases"], request=PurchaseCreateSerializer, responses={201: DrugPurchaseSerializer})
    def create(self, request):
        ser = PurchaseCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        purchase = PurchaseService.create_purchase(
            actor_user_id=_actor(request),
            supplier_id=data.pop("supplier"),
            **data,
        )
        return Response(DrugPurchaseSerializer(purchase).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Pharmacy Purchases"], responses={200: DrugPurchaseSerializer})
    def destroy(self, request, pk=None):
        # drafts are cancelled, never deleted
        purchase = PurchaseService.cancel(actor_user_id=_actor(request), purchase_id=UUID(str(pk)))
        return Response(DrugPurchaseSerializer(purchase).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Pharmacy Purchases"],
        request=PurchaseRecalculateSerializer,
        responses={200: PurchaseRecalculateResultSerializer},
    )
    @action(detail=False, methods=["post"], url_path="recalculate")
    def recalculate(self, request):
        ser = PurchaseRecalculateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = PurchaseService.recalculate(**ser.validated_data)
        return Response(PurchaseRecalculateResultSerializer(result).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Purchases"], request=None, responses={200: DrugPurchaseSerializer})
    @action(detail=True, methods=["post"], url_path="receive")
    def receive(self, request, pk=None):
        purchase = PurchaseService.receive(actor_user_id=_actor(request), purchase_id=UUID(str(pk)))
        return Response(DrugPurchaseSerializer(purchase).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Pharmacy Purchases"],
        responses={200: DrugPurchaseSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="bill_number",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=True,
                description="Supplier invoice number or purchase number.",
            ),
        ],
    )
    @action(detail=False, methods=["get"], url_path="search")
    def search(self, request):
        qs = search_purchases(request.query_params.get("bill_number", ""))
        return Response(DrugPurchaseSerializer(qs, many=True).data, status=status.HTTP_200_OK)


class BulkUploadViewSet(viewsets.ViewSet):
    permission_classes = [BulkUploadPermission]
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    serializer_class = UploadFileSerializer

    @extend_schema(tags=["Pharmacy Bulk Upload"], request=UploadFileSerializer, responses={200: UploadResultSerializer})
    @action(detail=False, methods=["post"], url_path="stock-workbook")
    def stock_workbook(self, request):
        name, content = _uploaded_bytes(request)
        if not name.lower().endswith((".xlsx", ".xlsm")):
            raise ValidationError({"file": "Upload an Excel workbook (.xlsx)."})

        result = BulkUploadService.import_stock_workbook(actor_user_id=_actor(request), content=content)
        return Response(result, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Bulk Upload"], request=UploadFileSerializer, responses={200: UploadResultSerializer})
    @action(detail=False, methods=["post"], url_path="medications-csv")
    def medications_csv(self, request):
        _name, content = _uploaded_bytes(request)
        result = BulkUploadService.import_medications_csv(actor_user_id=_actor(request), content=content)
        return Response(result, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Bulk Upload"], request=BatchUploadSerializer, responses={200: UploadResultSerializer})
    @action(detail=False, methods=["post"], url_path="batches")
    def batches(self, request):
        ser = BatchUploadSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = BulkUploadService.import_batches(actor_user_id=_actor(request), rows=ser.validated_data["batches"])
        return Response(result, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy Bulk Upload"], request=UploadFileSerializer, responses={200: UploadResultSerializer})
    @action(detail=False, methods=["post"], url_path="stock-report")
    def stock_report(self, request):
        _name, content = _uploaded_bytes(request)
        result = BulkUploadService.import_stock_report(actor_user_id=_actor(request), content=content)
        return Response(result, status=status.HTTP_200_OK)
