# hms_core/beds/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from hms_core.beds.api.serializers import (
    AllocateSerializer,
    BedAllocationSerializer,
    BedSerializer,
    BedStatsSerializer,
    BedWriteSerializer,
    DischargeSerializer,
    OccupancySerializer,
    TransferSerializer,
)
from hms_core.beds.models import Bed, BedAllocation
from hms_core.beds.selectors import (
    available_beds,
    bed_stats,
    beds_with_display_status,
    department_status,
    list_allocations,
    list_beds,
    occupancy_by_type,
    patient_bed_history,
)
from hms_core.beds.services import AllocationService, BedService
from hms_core.common.api.pagination import paginate
from hms_core.common.api.params import UUID_LOOKUP_REGEX, query_uuid
from hms_core.common.permissions import IPDPermission


def _actor(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


def _floor_param(request) -> int | None:
    raw = request.query_params.get("floor")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError({"floor": "Invalid floor (int expected)"})


class BedViewSet(viewsets.ViewSet):
    permission_classes = [IPDPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = BedSerializer
    queryset = Bed.objects.none()

    @extend_schema(
        tags=["Beds"],
        responses={200: BedSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="status",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Matches the display status (occupied beds without an active allocation read as available).",
            ),
            OpenApiParameter(name="bed_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="department", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="floor", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = list_beds(
            status=request.query_params.get("status") or None,
            bed_type=request.query_params.get("bed_type") or None,
            department=request.query_params.get("department") or None,
            floor=_floor_param(request),
        )
        return paginate(request, qs, BedSerializer)

    @extend_schema(tags=["Beds"], request=BedWriteSerializer, responses={201: BedSerializer})
    def create(self, request):
        ser = BedWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        bed = BedService.create_bed(actor_user_id=_actor(request), **ser.validated_data)
        return Response(BedSerializer(bed).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Beds"], responses={200: BedSerializer})
    def retrieve(self, request, pk=None):
        bed = beds_with_display_status().get(id=UUID(str(pk)))
        return Response(BedSerializer(bed).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Beds"], request=BedWriteSerializer, responses={200: BedSerializer})
    def partial_update(self, request, pk=None):
        ser = BedWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        bed = BedService.update_bed(actor_user_id=_actor(request), bed_id=UUID(str(pk)), data=ser.validated_data)
        return Response(BedSerializer(bed).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Beds"], request=BedWriteSerializer, responses={200: BedSerializer})
    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    @extend_schema(tags=["Beds"], responses={204: None})
    def destroy(self, request, pk=None):
        BedService.delete_bed(actor_user_id=_actor(request), bed_id=UUID(str(pk)))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["Beds"],
        responses={200: BedSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="bed_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False)
        ],
    )
    @action(detail=False, methods=["get"], url_path="available")
    def available(self, request):
        qs = available_beds(bed_type=request.query_params.get("bed_type") or None)
        return Response(BedSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Beds"], responses={200: BedStatsSerializer})
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(BedStatsSerializer(bed_stats()).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Beds"], responses={200: OccupancySerializer})
    @action(detail=False, methods=["get"], url_path="occupancy")
    def occupancy(self, request):
        data = {"by_type": occupancy_by_type(), "by_department": department_status()}
        return Response(OccupancySerializer(data).data, status=status.HTTP_200_OK)


class BedAllocationViewSet(viewsets.ViewSet):
    permission_classes = [IPDPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = BedAllocationSerializer
    queryset = BedAllocation.objects.none()

    @extend_schema(
        tags=["Beds"],
        responses={200: BedAllocationSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="bed", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = list_allocations(
            status=request.query_params.get("status") or None,
            bed_id=query_uuid(request, "bed"),
        )
        return paginate(request, qs, BedAllocationSerializer)

    @extend_schema(tags=["Beds"], responses={200: BedAllocationSerializer})
    def retrieve(self, request, pk=None):
        allocation = BedAllocation.objects.select_related("bed", "patient", "doctor").get(id=UUID(str(pk)))
        return Response(BedAllocationSerializer(allocation).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Beds"], request=AllocateSerializer, responses={201: BedAllocationSerializer})
    @action(detail=False, methods=["post"], url_path="allocate")
    def allocate(self, request):
        ser = AllocateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        allocation = AllocationService.allocate(
            actor_user_id=_actor(request),
            bed_id=data.pop("bed"),
            patient_id=data.pop("patient"),
            doctor_id=data.pop("doctor", None),
            **data,
        )
        return Response(BedAllocationSerializer(allocation).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Beds"], request=DischargeSerializer, responses={200: BedAllocationSerializer})
    @action(detail=True, methods=["post"], url_path="discharge")
    def discharge(self, request, pk=None):
        ser = DischargeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        allocation = AllocationService.discharge(
            actor_user_id=_actor(request),
            allocation_id=UUID(str(pk)),
            discharge_date=ser.validated_data.get("discharge_date"),
            discharge_notes=ser.validated_data["discharge_notes"],
        )
        return Response(BedAllocationSerializer(allocation).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Beds"], request=TransferSerializer, responses={201: BedAllocationSerializer})
    @action(detail=True, methods=["post"], url_path="transfer")
    def transfer(self, request, pk=None):
        ser = TransferSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        allocation = AllocationService.transfer(
            actor_user_id=_actor(request),
            allocation_id=UUID(str(pk)),
            new_bed_id=ser.validated_data["new_bed"],
            reason=ser.validated_data["reason"],
        )
        return Response(BedAllocationSerializer(allocation).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Beds"], responses={200: BedAllocationSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path=r"patient/(?P<patient_id>[^/.]+)")
    def patient_history(self, request, patient_id=None):
        qs = patient_bed_history(UUID(str(patient_id)))
        return Response(BedAllocationSerializer(qs, many=True).data, status=status.HTTP_200_OK)
