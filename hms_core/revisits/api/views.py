# hms_core/revisits/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from hms_core.common.api.pagination import clamp_limit, paginate
from hms_core.common.api.params import UUID_LOOKUP_REGEX, query_uuid
from hms_core.common.permissions import RevisitPermission
from hms_core.revisits.api.serializers import (
    PatientLookupSerializer,
    PatientRevisitSerializer,
    RevisitStatsSerializer,
    RevisitWriteSerializer,
)
from hms_core.revisits.models import PatientRevisit
from hms_core.revisits.selectors import (
    find_patient_by_uhid,
    list_revisits,
    recent_revisits,
    revisit_stats,
    visit_history,
)
from hms_core.revisits.services import RevisitService


def _actor(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


class RevisitViewSet(viewsets.ViewSet):
    permission_classes = [RevisitPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = PatientRevisitSerializer
    queryset = PatientRevisit.objects.none()

    @extend_schema(
        tags=["Revisits"],
        responses={200: PatientRevisitSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="patient", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="visit_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = list_revisits(
            patient_id=query_uuid(request, "patient"),
            visit_type=request.query_params.get("visit_type") or None,
        )
        return paginate(request, qs, PatientRevisitSerializer)

    @extend_schema(tags=["Revisits"], request=RevisitWriteSerializer, responses={201: PatientRevisitSerializer})
    def create(self, request):
        ser = RevisitWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        if not data.get("patient"):
            raise ValidationError({"patient": "This field is required."})
        revisit = RevisitService.create_revisit(
            actor_user_id=_actor(request),
            patient_id=data.pop("patient"),
            doctor_id=data.pop("doctor", None),
            staff_id=data.pop("staff", None),
            **data,
        )
        return Response(PatientRevisitSerializer(revisit).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Revisits"], responses={200: PatientRevisitSerializer})
    def retrieve(self, request, pk=None):
        revisit = PatientRevisit.objects.select_related("patient", "doctor", "staff").get(id=UUID(str(pk)))
        return Response(PatientRevisitSerializer(revisit).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Revisits"], request=RevisitWriteSerializer, responses={200: PatientRevisitSerializer})
    def partial_update(self, request, pk=None):
        ser = RevisitWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        revisit = RevisitService.update_revisit(
            actor_user_id=_actor(request),
            revisit_id=UUID(str(pk)),
            data=ser.validated_data,
        )
        return Response(PatientRevisitSerializer(revisit).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Revisits"], request=RevisitWriteSerializer, responses={200: PatientRevisitSerializer})
    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    @extend_schema(
        tags=["Revisits"],
        responses={200: PatientLookupSerializer},
        parameters=[
            OpenApiParameter(name="uhid", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=True),
        ],
    )
    @action(detail=False, methods=["get"], url_path="search-patient")
    def search_patient(self, request):
        uhid = (request.query_params.get("uhid") or "").strip()
        if not uhid:
            raise ValidationError({"uhid": "This parameter is required."})

        patient = find_patient_by_uhid(uhid)
        visits = list_revisits(patient_id=patient.id)
        data = {"patient": patient, "last_visit": visits.first(), "total_visits": visits.count()}
        return Response(PatientLookupSerializer(data).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Revisits"],
        responses={200: PatientRevisitSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="patient", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="limit", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    @action(detail=False, methods=["get"], url_path="history")
    def history(self, request):
        patient_id = query_uuid(request, "patient")
        if patient_id is None:
            raise ValidationError({"patient": "This parameter is required."})

        limit = clamp_limit(request.query_params.get("limit"), default=5, maximum=50)
        qs = visit_history(patient_id, limit=limit)
        return Response(PatientRevisitSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Revisits"],
        responses={200: PatientRevisitSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="limit", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    @action(detail=False, methods=["get"], url_path="recent")
    def recent(self, request):
        limit = clamp_limit(request.query_params.get("limit"), default=20, maximum=100)
        return Response(PatientRevisitSerializer(recent_revisits(limit=limit), many=True).data)

    @extend_schema(tags=["Revisits"], responses={200: RevisitStatsSerializer})
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(RevisitStatsSerializer(revisit_stats()).data, status=status.HTTP_200_OK)
