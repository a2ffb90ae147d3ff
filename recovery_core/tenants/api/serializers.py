# recovery_core/tenants/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from recovery_core.tenants.models import SubscriptionTier, Tenant, TenantStatus, TenantType


class TenantSerializer(serializers.ModelSerializer):
    is_operational = serializers.BooleanField(read_only=True)

    class Meta:
        model = Tenant
        fields = [
            "id",
            "name",
            "code",
            "tenant_type",
            "subscription_tier",
            "status",
            "is_operational",
            "settings",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TenantCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    code = serializers.SlugField(max_length=64)
    tenant_type = serializers.ChoiceField(choices=TenantType.choices, required=False, default=TenantType.PRACTICE)
    subscription_tier = serializers.ChoiceField(
        choices=SubscriptionTier.choices,
        required=False,
        default=SubscriptionTier.BASIC,
    )
    status = serializers.ChoiceField(choices=TenantStatus.choices, required=False, default=TenantStatus.ACTIVE)
    settings = serializers.DictField(required=False, default=dict)


class TenantStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TenantStatus.choices)


class TenantSettingsSerializer(serializers.Serializer):
    settings = serializers.DictField()


class TenantStatsSerializer(serializers.Serializer):
    tenant_id = serializers.UUIDField()
    total_users = serializers.IntegerField()
    total_patients = serializers.IntegerField()
    total_protocols = serializers.IntegerField()
    active_protocols = serializers.IntegerField()
    active_assignments = serializers.IntegerField()
    open_alerts = serializers.IntegerField()
