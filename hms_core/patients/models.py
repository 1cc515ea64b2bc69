# hms_core/patients/models.py
from django.db import models
from hms_core.common.models import UUIDModel


class Gender(models.TextChoices):
    MALE = "male", "Male"
    FEMALE = "female", "Female"
    OTHER = "other", "Other"


class AdmissionType(models.TextChoices):
    OUTPATIENT = "outpatient", "Outpatient"
    INPATIENT = "inpatient", "Inpatient"


class PatientStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class Patient(UUIDModel):
    """
    Registered patient. `uhid` (Unique Hospital ID) is the human facing identifier,
    generated at registration and never changed afterwards.
    """
    uhid = models.CharField(max_length=32, unique=True)

    name = models.CharField(max_length=255)
    gender = models.CharField(max_length=16, choices=Gender.choices, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    age = models.PositiveSmallIntegerField(null=True, blank=True)

    phone = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)

    blood_group = models.CharField(max_length=8, blank=True)
    allergies = models.TextField(blank=True)
    medical_history = models.TextField(blank=True)

    emergency_contact_name = models.CharField(max_length=255, blank=True)
    emergency_contact_phone = models.CharField(max_length=32, blank=True)

    # flipped to inpatient/outpatient by bed allocation + discharge
    admission_type = models.CharField(
        max_length=16, choices=AdmissionType.choices, default=AdmissionType.OUTPATIENT, db_index=True
    )
    is_critical = models.BooleanField(default=False)
    status = models.CharField(max_length=16, choices=PatientStatus.choices, default=PatientStatus.ACTIVE, db_index=True)

    class Meta:
        db_table = "patients_patient"
        indexes = [
            models.Index(fields=["name"]),
            models.Index(fields=["phone"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.uhid})"

    @property
    def initials(self) -> str:
        parts = [p for p in (self.name or "").split() if p]
        return "".join(p[0].upper() for p in parts[:2])
