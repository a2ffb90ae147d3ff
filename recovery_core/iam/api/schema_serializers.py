# recovery_core/iam/api/schema_serializers.py
from __future__ import annotations

from rest_framework import serializers


class LoginRequestSerializer(serializers.Serializer):
    # username or email depending on the User model
    username = serializers.CharField(required=False)
    email = serializers.EmailField(required=False)
    password = serializers.CharField()


class DetailResponseSerializer(serializers.Serializer):
    detail = serializers.CharField()


class MeUserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField(allow_null=True, required=False)
    email = serializers.EmailField(allow_null=True, required=False)
    is_superuser = serializers.BooleanField()


class ProfileMiniSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    role = serializers.CharField()
    first_name = serializers.CharField(allow_blank=True)
    last_name = serializers.CharField(allow_blank=True)
    email = serializers.CharField(allow_blank=True)


class TenantContextSerializer(serializers.Serializer):
    tenant_id = serializers.UUIDField()
    role = serializers.CharField()
    is_privileged = serializers.BooleanField()
    is_override = serializers.BooleanField()


class TenantMiniSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    code = serializers.CharField(allow_null=True, required=False)
    name = serializers.CharField(allow_null=True, required=False)


class RecoveryPhaseSerializer(serializers.Serializer):
    phase = serializers.CharField()
    day = serializers.IntegerField()


class MeResponseSerializer(serializers.Serializer):
    user = MeUserSerializer()
    profile = ProfileMiniSerializer()
    tenant_context = TenantContextSerializer()
    redirect_to = serializers.CharField()


class SessionBootstrapResponseSerializer(serializers.Serializer):
    user = MeUserSerializer()
    profile = ProfileMiniSerializer()
    tenant_context = TenantContextSerializer()
    active_tenant = TenantMiniSerializer(allow_null=True, required=False)

    redirect_to = serializers.CharField()
    route_access = serializers.BooleanField(allow_null=True, required=False)
    recovery_phase = RecoveryPhaseSerializer(allow_null=True, required=False)

    # True when the bootstrap had to synthesise a missing Profile/Patient
    reconciled = serializers.BooleanField()

    server_time = serializers.DateTimeField(required=False)
    api_version = serializers.CharField(required=False)
