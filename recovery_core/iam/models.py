# recovery_core/iam/models.py
import uuid

from django.conf import settings
from django.db import models

from recovery_core.tenants.models import Tenant


class ProfileRole(models.TextChoices):
    PATIENT = "patient", "Patient"
    SURGEON = "surgeon", "Surgeon"
    NURSE = "nurse", "Nurse"
    PHYSICAL_THERAPIST = "physical_therapist", "Physical Therapist"
    PROVIDER = "provider", "Provider"
    ADMIN = "admin", "Admin"
    PRACTICE_ADMIN = "practice_admin", "Practice Admin"
    SAAS_ADMIN = "saas_admin", "SaaS Admin"
    SUPER_ADMIN = "super_admin", "Super Admin"


# Roles allowed to pick another tenant with X-Tenant-Id.
PRIVILEGED_ROLES = frozenset({ProfileRole.SAAS_ADMIN, ProfileRole.SUPER_ADMIN})

CLINICAL_ROLES = frozenset(
    {
        ProfileRole.SURGEON,
        ProfileRole.NURSE,
        ProfileRole.PHYSICAL_THERAPIST,
        ProfileRole.PROVIDER,
    }
)

ADMIN_ROLES = frozenset(
    {
        ProfileRole.ADMIN,
        ProfileRole.PRACTICE_ADMIN,
        ProfileRole.SAAS_ADMIN,
        ProfileRole.SUPER_ADMIN,
    }
)


class Profile(models.Model):
    """
    One per authenticated principal; the authoritative identity record.
    tenant is nullable only so that an integrity gap is representable
    (the guard answers 403 "User tenant not found" for it).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile")
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.PROTECT,
        related_name="profiles",
        null=True,
        blank=True,
    )

    role = models.CharField(max_length=32, choices=ProfileRole.choices, default=ProfileRole.PATIENT, db_index=True)

    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(blank=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "iam_profile"
        indexes = [
            models.Index(fields=["tenant", "role"]),
            models.Index(fields=["tenant", "is_active"]),
        ]

    @property
    def full_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email

    def __str__(self) -> str:
        return f"{self.full_name} ({self.role})"
