# recovery_core/tenants/models.py
import uuid

from django.db import models


class TenantType(models.TextChoices):
    PRACTICE = "practice", "Practice"
    HOSPITAL = "hospital", "Hospital"
    CLINIC = "clinic", "Clinic"


class SubscriptionTier(models.TextChoices):
    BASIC = "basic", "Basic"
    PROFESSIONAL = "professional", "Professional"
    ENTERPRISE = "enterprise", "Enterprise"


class TenantStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    TRIAL = "trial", "Trial"
    INACTIVE = "inactive", "Inactive"
    SUSPENDED = "suspended", "Suspended"


OPERATIONAL_STATUSES = frozenset({TenantStatus.ACTIVE, TenantStatus.TRIAL})


class Tenant(models.Model):
    """
    A surgical practice (or hospital / clinic). Every other row in the
    system carries a tenant_id pointing here; this table itself is not scoped.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    # practice subdomain
    code = models.SlugField(max_length=64, unique=True)

    tenant_type = models.CharField(max_length=16, choices=TenantType.choices, default=TenantType.PRACTICE)
    subscription_tier = models.CharField(
        max_length=16,
        choices=SubscriptionTier.choices,
        default=SubscriptionTier.BASIC,
    )
    status = models.CharField(
        max_length=16,
        choices=TenantStatus.choices,
        default=TenantStatus.ACTIVE,
        db_index=True,
    )

    # branding, default protocol choices, notification preferences
    settings = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenants_tenant"
        ordering = ["name"]

    @property
    def is_operational(self) -> bool:
        return self.status in OPERATIONAL_STATUSES

    def __str__(self) -> str:
        return f"{self.name} [{self.tenant_type}]"
