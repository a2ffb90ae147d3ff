# recovery_core/patients/models.py
from django.db import models

from recovery_core.common.models import TenantScopedModel
from recovery_core.patients.phase import RecoveryPhase, classify


class SurgeryType(models.TextChoices):
    TKA = "TKA", "Total Knee Arthroplasty"
    THA = "THA", "Total Hip Arthroplasty"
    TSA = "TSA", "Total Shoulder Arthroplasty"
    OTHER = "other", "Other"


class PatientStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    DISCHARGED = "discharged", "Discharged"


class Patient(TenantScopedModel):
    """
    Role-specific extension of a patient Profile.
    Profile stays the authoritative identity; admin-created patients may not have one yet.
    """
    profile = models.OneToOneField(
        "iam.Profile",
        on_delete=models.PROTECT,
        related_name="patient",
        null=True,
        blank=True,
    )

    # medical record number, unique per tenant
    mrn = models.CharField(max_length=64)

    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)

    surgery_date = models.DateField(null=True, blank=True, db_index=True)
    surgery_type = models.CharField(max_length=16, choices=SurgeryType.choices, default=SurgeryType.OTHER)

    status = models.CharField(
        max_length=16,
        choices=PatientStatus.choices,
        default=PatientStatus.ACTIVE,
        db_index=True,
    )

    class Meta:
        db_table = "patients_patient"
        constraints = [
            models.UniqueConstraint(fields=["tenant_id", "mrn"], name="uq_patient_tenant_mrn"),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "last_name"]),
            models.Index(fields=["tenant_id", "status"]),
        ]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def recovery_phase(self, today=None) -> RecoveryPhase:
        return classify(self.surgery_date, today)

    def __str__(self) -> str:
        return f"{self.full_name} ({self.mrn})"
