from __future__ import annotations

from rest_framework import serializers

from recovery_core.alerts.models import ClinicalAlert


class ClinicalAlertSerializer(serializers.ModelSerializer):
    class Meta:
        model = ClinicalAlert
        fields = [
            "id",
            "tenant_id",
            "patient_id",
            "patient_form_id",
            "question_id",
            "alert_type",
            "severity",
            "message",
            "requires_immediate_action",
            "notify_provider",
            "status",
            "acknowledged_by_user_id",
            "acknowledged_at",
            "resolved_by_user_id",
            "resolved_at",
            "meta",
            "created_at",
        ]
        read_only_fields = fields


class AlertResolveSerializer(serializers.Serializer):
    note = serializers.CharField(required=False, allow_blank=True, default="")
