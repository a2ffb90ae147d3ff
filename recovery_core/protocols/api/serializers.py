# recovery_core/protocols/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from recovery_core.patients.models import SurgeryType
from recovery_core.protocols.models import AssignmentStatus, PatientProtocol, Protocol, ProtocolTask, TaskType


class FrequencySerializer(serializers.Serializer):
    start_day = serializers.IntegerField(required=False)
    stop_day = serializers.IntegerField(required=False)
    repeat = serializers.BooleanField(required=False, default=False)


class ProtocolTaskSerializer(serializers.ModelSerializer):
    form_template_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = ProtocolTask
        fields = [
            "id",
            "protocol_id",
            "day_offset",
            "task_type",
            "title",
            "description",
            "content",
            "form_template_id",
            "is_required",
            "frequency",
            "sort_order",
        ]
        read_only_fields = fields


class ProtocolTaskCreateSerializer(serializers.Serializer):
    day_offset = serializers.IntegerField()
    task_type = serializers.ChoiceField(choices=TaskType.choices)
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    content = serializers.JSONField(required=False, default=dict)
    form_template_id = serializers.UUIDField(required=False, allow_null=True)
    is_required = serializers.BooleanField(required=False, default=True)
    frequency = FrequencySerializer(required=False)
    sort_order = serializers.IntegerField(required=False, min_value=0)


class ProtocolSerializer(serializers.ModelSerializer):
    task_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Protocol
        fields = [
            "id",
            "tenant_id",
            "name",
            "description",
            "surgery_type",
            "is_template",
            "is_active",
            "task_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ProtocolDetailSerializer(ProtocolSerializer):
    tasks = serializers.SerializerMethodField()

    class Meta(ProtocolSerializer.Meta):
        fields = ProtocolSerializer.Meta.fields + ["tasks"]
        read_only_fields = fields

    def get_tasks(self, obj):
        qs = obj.tasks.order_by("day_offset", "sort_order", "created_at")
        return ProtocolTaskSerializer(qs, many=True).data


class ProtocolCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    surgery_type = serializers.ChoiceField(choices=SurgeryType.choices, required=False, allow_blank=True, default="")
    is_template = serializers.BooleanField(required=False, default=True)
    is_active = serializers.BooleanField(required=False, default=True)
    tasks = ProtocolTaskCreateSerializer(many=True, required=False, default=list)


class ProtocolUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    surgery_type = serializers.ChoiceField(choices=SurgeryType.choices, required=False, allow_blank=True)
    is_template = serializers.BooleanField(required=False)
    is_active = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class AssignRequestSerializer(serializers.Serializer):
    protocol_id = serializers.UUIDField()
    patient_id = serializers.UUIDField()
    start_date = serializers.DateField(required=False, allow_null=True)


class AutoAssignRequestSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()


class AssignResponseSerializer(serializers.Serializer):
    assignment_id = serializers.UUIDField()
    protocol_id = serializers.UUIDField()
    patient_id = serializers.UUIDField()
    start_date = serializers.DateField()
    tasks_created = serializers.IntegerField()


class PatientProtocolSerializer(serializers.ModelSerializer):
    protocol_name = serializers.CharField(source="protocol.name", read_only=True)
    task_count = serializers.SerializerMethodField()

    class Meta:
        model = PatientProtocol
        fields = [
            "id",
            "tenant_id",
            "patient_id",
            "protocol_id",
            "protocol_name",
            "status",
            "start_date",
            "surgery_date",
            "assigned_by_id",
            "task_count",
            "completed_at",
            "cancelled_at",
            "created_at",
        ]
        read_only_fields = fields

    def get_task_count(self, obj) -> int:
        return obj.tasks.count()


class RematerializeResponseSerializer(serializers.Serializer):
    assignment_id = serializers.UUIDField()
    tasks_created = serializers.IntegerField()
    tasks_removed = serializers.IntegerField()
    tasks_preserved = serializers.IntegerField()
    forms_relinked = serializers.IntegerField()


class AssignmentStatusFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AssignmentStatus.choices, required=False)
    patient_id = serializers.UUIDField(required=False)
