# recovery_core/patients/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from recovery_core.patients.models import Patient, PatientStatus, SurgeryType


class PatientCreateSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    mrn = serializers.CharField(max_length=64)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    surgery_date = serializers.DateField(required=False, allow_null=True)
    surgery_type = serializers.ChoiceField(choices=SurgeryType.choices, required=False)
    profile_id = serializers.UUIDField(required=False, allow_null=True)


class PatientUpdateSerializer(serializers.Serializer):
    """
    Partial update contract (PATCH).
    """
    first_name = serializers.CharField(max_length=150, required=False)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    mrn = serializers.CharField(max_length=64, required=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    surgery_date = serializers.DateField(required=False, allow_null=True)
    surgery_type = serializers.ChoiceField(choices=SurgeryType.choices, required=False)
    status = serializers.ChoiceField(choices=PatientStatus.choices, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class PatientSerializer(serializers.ModelSerializer):
    profile_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = Patient
        fields = [
            "id",
            "tenant_id",
            "profile_id",
            "mrn",
            "first_name",
            "last_name",
            "full_name",
            "phone",
            "email",
            "date_of_birth",
            "surgery_date",
            "surgery_type",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class RecoveryPhaseSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    surgery_date = serializers.DateField(allow_null=True)
    phase = serializers.CharField()
    day = serializers.IntegerField()
