# recovery_core/tasks/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from recovery_core.tasks.models import PatientTask


class PatientTaskSerializer(serializers.ModelSerializer):
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = PatientTask
        fields = [
            "id",
            "tenant_id",
            "patient_id",
            "assignment_id",
            "protocol_task_id",
            "title",
            "task_type",
            "day_offset",
            "due_date",
            "is_required",
            "status",
            "is_overdue",
            "started_at",
            "completed_at",
            "completion_data",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TaskCompleteSerializer(serializers.Serializer):
    completion_data = serializers.JSONField(required=False, default=dict)
