# recovery_core/audit/api/serializers.py
from rest_framework import serializers

from recovery_core.audit.models import AuditEvent


class AuditEventSerializer(serializers.ModelSerializer):
    actor_user_id = serializers.IntegerField(read_only=True, allow_null=True)
    actor_username = serializers.CharField(source="actor_user.username", read_only=True, default=None)

    class Meta:
        model = AuditEvent
        fields = [
            "id",
            "occurred_at",
            "action",
            "resource_type",
            "resource_id",
            "actor_user_id",
            "actor_username",
            "metadata",
        ]
        read_only_fields = fields
