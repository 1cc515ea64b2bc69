# hms_core/doctors/api/views.py
from __future__ import annotations

from uuid import UUID

from django.utils import timezone
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from hms_core.common.api.pagination import paginate
from hms_core.common.api.params import UUID_LOOKUP_REGEX, query_date, query_uuid
from hms_core.common.permissions import AppointmentPermission, DoctorPermission
from hms_core.doctors.api.serializers import (
    AlternativeSlotSerializer,
    AlternativeSlotsRequestSerializer,
    AppointmentRequestSerializer,
    AppointmentSerializer,
    AppointmentStatsSerializer,
    AvailabilitySerializer,
    CancelSerializer,
    DoctorSerializer,
    DoctorWithSlotsSerializer,
    DoctorWriteSerializer,
    RescheduleSerializer,
    SessionSlotsSerializer,
    ValidationResultSerializer,
)
from hms_core.doctors.models import Appointment, Doctor
from hms_core.doctors.scheduling import parse_hhmm
from hms_core.doctors.selectors import (
    appointment_stats,
    available_slots as free_slots,
    doctors_with_slots,
    is_slot_available,
    list_appointments,
    list_doctors,
    specializations as distinct_specializations,
)
from hms_core.doctors.services import AppointmentService, DoctorService


def _actor(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


DATE_PARAM = OpenApiParameter(
    name="date",
    type=OpenApiTypes.DATE,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Defaults to today.",
)


class DoctorViewSet(viewsets.ViewSet):
    permission_classes = [DoctorPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = DoctorSerializer
    queryset = Doctor.objects.none()

    @extend_schema(
        tags=["Doctors"],
        responses={200: DoctorSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="specialization", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False
            ),
            OpenApiParameter(name="department", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = list_doctors(
            specialization=request.query_params.get("specialization") or None,
            department=request.query_params.get("department") or None,
            status=request.query_params.get("status") or None,
            q=request.query_params.get("q", ""),
        )
        return paginate(request, qs, DoctorSerializer)

    @extend_schema(tags=["Doctors"], request=DoctorWriteSerializer, responses={201: DoctorSerializer})
    def create(self, request):
        ser = DoctorWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        doctor = DoctorService.create_doctor(actor_user_id=_actor(request), **ser.validated_data)
        return Response(DoctorSerializer(doctor).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Doctors"], responses={200: DoctorSerializer})
    def retrieve(self, request, pk=None):
        doctor = Doctor.objects.get(id=UUID(str(pk)))
        return Response(DoctorSerializer(doctor).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Doctors"], request=DoctorWriteSerializer, responses={200: DoctorSerializer})
    def partial_update(self, request, pk=None):
        ser = DoctorWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        doctor = DoctorService.update_doctor(
            actor_user_id=_actor(request),
            doctor_id=UUID(str(pk)),
            data=ser.validated_data,
        )
        return Response(DoctorSerializer(doctor).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Doctors"], request=DoctorWriteSerializer, responses={200: DoctorSerializer})
    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    @extend_schema(tags=["Doctors"], responses={204: None})
    def destroy(self, request, pk=None):
        DoctorService.delete_doctor(actor_user_id=_actor(request), doctor_id=UUID(str(pk)))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Doctors"], request=AvailabilitySerializer, responses={200: DoctorSerializer})
    @action(detail=True, methods=["put"], url_path="availability")
    def availability(self, request, pk=None):
        ser = AvailabilitySerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        doctor = DoctorService.set_availability(
            actor_user_id=_actor(request),
            doctor_id=UUID(str(pk)),
            availability_hours=ser.validated_data["availability_hours"],
        )
        return Response(DoctorSerializer(doctor).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Doctors"],
        responses={200: SessionSlotsSerializer},
        parameters=[
            DATE_PARAM,
            OpenApiParameter(
                name="time",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="HH:MM; when given the response is {available: bool}.",
            ),
        ],
    )
    @action(detail=True, methods=["get"], url_path="available-slots")
    def available_slots(self, request, pk=None):
        doctor = Doctor.objects.get(id=UUID(str(pk)))
        day = query_date(request, "date") or timezone.localdate()

        raw_time = request.query_params.get("time")
        if raw_time:
            try:
                at = parse_hhmm(raw_time)
            except ValueError:
                raise ValidationError({"time": "Invalid time (HH:MM expected)"})
            return Response({"available": is_slot_available(doctor, day, at)}, status=status.HTTP_200_OK)

        return Response(SessionSlotsSerializer(free_slots(doctor, day)).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Doctors"],
        responses={200: DoctorWithSlotsSerializer(many=True)},
        parameters=[
            DATE_PARAM,
            OpenApiParameter(
                name="specialization", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False
            ),
        ],
    )
    @action(detail=False, methods=["get"], url_path="with-slots")
    def with_slots(self, request):
        rows = doctors_with_slots(
            day=query_date(request, "date") or timezone.localdate(),
            specialization=request.query_params.get("specialization") or None,
        )
        return Response(DoctorWithSlotsSerializer(rows, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Doctors"], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="specializations")
    def specializations(self, request):
        return Response({"specializations": distinct_specializations()}, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Doctors"],
        responses={200: AppointmentStatsSerializer},
        parameters=[
            OpenApiParameter(name="doctor", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False)
        ],
    )
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        data = appointment_stats(doctor_id=query_uuid(request, "doctor"))
        return Response(AppointmentStatsSerializer(data).data, status=status.HTTP_200_OK)


class AppointmentViewSet(viewsets.ViewSet):
    permission_classes = [AppointmentPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = AppointmentSerializer
    queryset = Appointment.objects.none()

    @extend_schema(
        tags=["Appointments"],
        responses={200: AppointmentSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="doctor", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="patient", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="date", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = list_appointments(
            doctor_id=query_uuid(request, "doctor"),
            patient_id=query_uuid(request, "patient"),
            day=query_date(request, "date"),
            status=request.query_params.get("status") or None,
        )
        return paginate(request, qs, AppointmentSerializer)

    @extend_schema(tags=["Appointments"], responses={200: AppointmentSerializer})
    def retrieve(self, request, pk=None):
        appt = Appointment.objects.select_related("patient", "doctor").get(id=UUID(str(pk)))
        return Response(AppointmentSerializer(appt).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Appointments"], request=AppointmentRequestSerializer, responses={201: AppointmentSerializer})
    def create(self, request):
        ser = AppointmentRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        appt, warnings = AppointmentService.create_appointment(
            actor_user_id=_actor(request),
            patient_id=data.pop("patient"),
            doctor_id=data.pop("doctor"),
            **data,
        )

        body = AppointmentSerializer(appt).data
        body["warnings"] = warnings
        return Response(body, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Appointments"], request=AppointmentRequestSerializer, responses={200: ValidationResultSerializer})
    @action(detail=False, methods=["post"], url_path="validate")
    def validate(self, request):
        ser = AppointmentRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        v = ser.validated_data

        check = AppointmentService.validate(
            patient_id=v["patient"],
            doctor_id=v["doctor"],
            appointment_date=v["appointment_date"],
            appointment_time=v["appointment_time"],
            duration_minutes=v["duration_minutes"],
            is_emergency=v["is_emergency"] or v["type"] == "emergency",
        )
        return Response(ValidationResultSerializer(check.as_dict()).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Appointments"],
        request=AlternativeSlotsRequestSerializer,
        responses={200: AlternativeSlotSerializer(many=True)},
    )
    @action(detail=False, methods=["post"], url_path="alternatives")
    def alternatives(self, request):
        ser = AlternativeSlotsRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        v = ser.validated_data

        rows = AppointmentService.alternative_slots(
            doctor_id=v["doctor"],
            appointment_date=v["appointment_date"],
            patient_id=v.get("patient"),
            duration_minutes=v["duration_minutes"],
            is_emergency=v["is_emergency"],
            limit=v["limit"],
        )
        return Response(AlternativeSlotSerializer(rows, many=True).data, status=status.HTTP_200_OK)

    def _transition(self, request, pk, name: str, reason: str = "") -> Response:
        appt = AppointmentService.transition(
            actor_user_id=_actor(request),
            appointment_id=UUID(str(pk)),
            action=name,
            reason=reason,
        )
        return Response(AppointmentSerializer(appt).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Appointments"], request=None, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="confirm")
    def confirm(self, request, pk=None):
        return self._transition(request, pk, "confirm")

    @extend_schema(tags=["Appointments"], request=None, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="check-in")
    def checkin(self, request, pk=None):
        return self._transition(request, pk, "check_in")

    @extend_schema(tags=["Appointments"], request=None, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="start")
    def start(self, request, pk=None):
        return self._transition(request, pk, "start")

    @extend_schema(tags=["Appointments"], request=None, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        return self._transition(request, pk, "complete")

    @extend_schema(tags=["Appointments"], request=CancelSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        ser = CancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return self._transition(request, pk, "cancel", reason=ser.validated_data["reason"])

    @extend_schema(tags=["Appointments"], request=None, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="no-show")
    def no_show(self, request, pk=None):
        return self._transition(request, pk, "no_show")

    @extend_schema(tags=["Appointments"], request=RescheduleSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="reschedule")
    def reschedule(self, request, pk=None):
        ser = RescheduleSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appt, warnings = AppointmentService.reschedule(
            actor_user_id=_actor(request),
            appointment_id=UUID(str(pk)),
            **ser.validated_data,
        )
        body = AppointmentSerializer(appt).data
        body["warnings"] = warnings
        return Response(body, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Appointments"],
        responses={200: AppointmentStatsSerializer},
        parameters=[
            OpenApiParameter(name="doctor", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False)
        ],
    )
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        data = appointment_stats(doctor_id=query_uuid(request, "doctor"))
        return Response(AppointmentStatsSerializer(data).data, status=status.HTTP_200_OK)
