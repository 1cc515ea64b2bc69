# hms_core/prescriptions/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from hms_core.common.api.pagination import clamp_limit, paginate
from hms_core.common.api.params import UUID_LOOKUP_REGEX, query_date, query_uuid
from hms_core.common.permissions import PrescriptionPermission
from hms_core.pharmacy.api.serializers import MedicationSerializer
from hms_core.prescriptions.api.serializers import (
    PrescriptionCreateSerializer,
    PrescriptionMedicinesSerializer,
    PrescriptionSerializer,
    PrescriptionStatsSerializer,
    PrescriptionStatusSerializer,
)
from hms_core.prescriptions.models import Prescription
from hms_core.prescriptions.selectors import list_prescriptions, medicine_search as search_medicines, prescription_stats
from hms_core.prescriptions.services import PrescriptionService


def _actor(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


def _get(pk) -> Prescription:
    return (
        Prescription.objects.select_related("patient", "doctor")
        .prefetch_related("items__medication")
        .get(id=UUID(str(pk)))
    )


class PrescriptionViewSet(viewsets.ViewSet):
    permission_classes = [PrescriptionPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = PrescriptionSerializer
    queryset = Prescription.objects.none()

    @extend_schema(
        tags=["Prescriptions"],
        responses={200: PrescriptionSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="patient", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="doctor", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="date_from", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="date_to", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="q",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Prescription id, patient name or UHID.",
            ),
        ],
    )
    def list(self, request):
        qs = list_prescriptions(
            patient_id=query_uuid(request, "patient"),
            doctor_id=query_uuid(request, "doctor"),
            status=request.query_params.get("status") or None,
            date_from=query_date(request, "date_from"),
            date_to=query_date(request, "date_to"),
            q=request.query_params.get("q", ""),
        )
        return paginate(request, qs, PrescriptionSerializer)

    @extend_schema(tags=["Prescriptions"], request=PrescriptionCreateSerializer, responses={201: PrescriptionSerializer})
    def create(self, request):
        ser = PrescriptionCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        rx = PrescriptionService.create_prescription(
            actor_user_id=_actor(request),
            patient_id=data.pop("patient"),
            doctor_id=data.pop("doctor"),
            appointment_id=data.pop("appointment", None),
            **data,
        )
        return Response(PrescriptionSerializer(_get(rx.id)).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Prescriptions"], responses={200: PrescriptionSerializer})
    def retrieve(self, request, pk=None):
        return Response(PrescriptionSerializer(_get(pk)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Prescriptions"], responses={204: None})
    def destroy(self, request, pk=None):
        PrescriptionService.delete_prescription(actor_user_id=_actor(request), prescription_id=UUID(str(pk)))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Prescriptions"], request=PrescriptionStatusSerializer, responses={200: PrescriptionSerializer})
    @action(detail=True, methods=["patch", "post"], url_path="status")
    def status(self, request, pk=None):
        ser = PrescriptionStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        rx = PrescriptionService.update_status(
            actor_user_id=_actor(request),
            prescription_id=UUID(str(pk)),
            status=ser.validated_data["status"],
        )
        return Response(PrescriptionSerializer(_get(rx.id)).data)

    @extend_schema(
        tags=["Prescriptions"],
        request=PrescriptionMedicinesSerializer,
        responses={200: PrescriptionSerializer},
    )
    @action(detail=True, methods=["put"], url_path="medicines")
    def medicines(self, request, pk=None):
        ser = PrescriptionMedicinesSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        rx = PrescriptionService.replace_medicines(
            actor_user_id=_actor(request),
            prescription_id=UUID(str(pk)),
            items=ser.validated_data["items"],
        )
        return Response(PrescriptionSerializer(_get(rx.id)).data)

    @extend_schema(
        tags=["Prescriptions"],
        responses={200: MedicationSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="limit", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    @action(detail=False, methods=["get"], url_path="medicine-search")
    def medicine_search(self, request):
        limit = clamp_limit(request.query_params.get("limit"), default=20, maximum=100)
        meds = search_medicines(request.query_params.get("q", ""), limit=limit)
        return Response(MedicationSerializer(meds, many=True).data)

    @extend_schema(
        tags=["Prescriptions"],
        responses={200: PrescriptionStatsSerializer},
        parameters=[
            OpenApiParameter(name="doctor", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        data = prescription_stats(doctor_id=query_uuid(request, "doctor"))
        return Response(PrescriptionStatsSerializer(data).data)
