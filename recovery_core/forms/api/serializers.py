from __future__ import annotations

from rest_framework import serializers

from recovery_core.alerts.api.serializers import ClinicalAlertSerializer
from recovery_core.forms.models import (
    FormResponse,
    FormTemplate,
    PatientForm,
    PatientFormStatus,
    QuestionType,
    ResponseMethod,
)


class FormTemplateSerializer(serializers.ModelSerializer):
    section_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = FormTemplate
        fields = ["id", "tenant_id", "name", "description", "is_active", "section_count", "created_at", "updated_at"]
        read_only_fields = fields


class QuestionInputSerializer(serializers.Serializer):
    """Either an existing bank question (question_id) or an inline definition."""
    question_id = serializers.UUIDField(required=False)

    text = serializers.CharField(required=False)
    question_type = serializers.ChoiceField(choices=QuestionType.choices, required=False)
    is_required = serializers.BooleanField(required=False)
    help_text = serializers.CharField(required=False, allow_blank=True)
    options = serializers.ListField(required=False)
    validation_rules = serializers.DictField(required=False)
    voice_prompt = serializers.CharField(required=False, allow_blank=True)
    clinical_alerts = serializers.DictField(required=False)

    sort_order = serializers.IntegerField(required=False, min_value=0)
    is_required_override = serializers.BooleanField(required=False, allow_null=True, default=None)
    custom_validation = serializers.DictField(required=False)

    def validate(self, attrs):
        if not attrs.get("question_id") and not (attrs.get("text") and attrs.get("question_type")):
            raise serializers.ValidationError("Provide question_id, or text and question_type.")
        return attrs


class SectionInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    sort_order = serializers.IntegerField(required=False, min_value=0)
    questions = QuestionInputSerializer(many=True, required=False, default=list)


class FormTemplateCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    is_active = serializers.BooleanField(required=False, default=True)
    sections = SectionInputSerializer(many=True, required=False, default=list)


class PatientFormSerializer(serializers.ModelSerializer):
    template_name = serializers.CharField(source="template.name", read_only=True)

    class Meta:
        model = PatientForm
        fields = [
            "id",
            "tenant_id",
            "patient_id",
            "template_id",
            "template_name",
            "protocol_task_id",
            "task_id",
            "assigned_date",
            "due_date",
            "status",
            "completion_percentage",
            "started_at",
            "completed_at",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields


class FormResponseSerializer(serializers.ModelSerializer):
    class Meta:
        model = FormResponse
        fields = [
            "id",
            "patient_form_id",
            "question_id",
            "response_value",
            "parsed_value",
            "response_type",
            "response_method",
            "time_to_respond",
            "created_at",
        ]
        read_only_fields = fields


class CompletionStatusSerializer(serializers.Serializer):
    total_questions = serializers.IntegerField()
    answered_questions = serializers.IntegerField()
    required_questions = serializers.IntegerField()
    answered_required_questions = serializers.IntegerField()
    percentage = serializers.IntegerField()
    is_complete = serializers.BooleanField()
    missing_required_questions = serializers.ListField(child=serializers.CharField())


class ResponseItemSerializer(serializers.Serializer):
    question_id = serializers.UUIDField()
    response = serializers.JSONField(allow_null=True)
    response_method = serializers.ChoiceField(choices=ResponseMethod.choices, required=False, default=ResponseMethod.TEXT)
    time_to_respond = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class SubmitResponseSerializer(ResponseItemSerializer):
    patient_form_id = serializers.UUIDField()


class SubmitBatchSerializer(serializers.Serializer):
    patient_form_id = serializers.UUIDField()
    # items are validated one by one in the service so a bad item fails alone
    responses = serializers.ListField(child=serializers.DictField(), allow_empty=False)


class SubmitResponseResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    response = FormResponseSerializer()
    alerts = ClinicalAlertSerializer(many=True)
    completion_status = CompletionStatusSerializer()


class BatchItemResultSerializer(serializers.Serializer):
    question_id = serializers.CharField()
    success = serializers.BooleanField()
    error = serializers.CharField(allow_null=True)
    response_id = serializers.CharField(allow_null=True)


class SubmitBatchResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    results = BatchItemResultSerializer(many=True)
    alerts = ClinicalAlertSerializer(many=True)
    completion_status = CompletionStatusSerializer()


class ProtocolFormCreateSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField(required=False)
    template_id = serializers.UUIDField(required=False)
    protocol_task_id = serializers.UUIDField(required=False)
    assigned_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs.get("template_id") and not attrs.get("protocol_task_id"):
            raise serializers.ValidationError("template_id or protocol_task_id is required.")
        return attrs


class ProtocolFormStatusSerializer(serializers.Serializer):
    patient_form_id = serializers.UUIDField()
    status = serializers.ChoiceField(choices=PatientFormStatus.choices)


class NextStepSerializer(serializers.Serializer):
    patient_form_id = serializers.CharField()
    is_complete = serializers.BooleanField()
    step = serializers.DictField(allow_null=True)
    prompt = serializers.CharField(allow_null=True)
    completion_status = CompletionStatusSerializer()
