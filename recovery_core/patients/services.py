# recovery_core/patients/services.py
from __future__ import annotations

from uuid import UUID

from django.db import IntegrityError, transaction

from recovery_core.audit.services import AuditService
from recovery_core.common.api.exceptions import ConflictError
from recovery_core.patients.models import Patient

DUPLICATE_MRN_MSG = "MRN already exists for this tenant."

UPDATABLE_FIELDS = {
    "first_name",
    "last_name",
    "mrn",
    "phone",
    "email",
    "date_of_birth",
    "surgery_date",
    "surgery_type",
    "status",
}


class PatientService:
    @staticmethod
    @transaction.atomic
    def create_patient(
        *,
        tenant_id: UUID,
        actor_user_id: int | None,
        first_name: str,
        mrn: str,
        last_name: str = "",
        phone: str = "",
        email: str = "",
        date_of_birth=None,
        surgery_date=None,
        surgery_type: str | None = None,
        profile_id: UUID | None = None,
    ) -> Patient:
        fields = {
            "tenant_id": tenant_id,
            "first_name": first_name,
            "last_name": last_name or "",
            "mrn": mrn,
            "phone": phone or "",
            "email": email or "",
            "date_of_birth": date_of_birth,
            "surgery_date": surgery_date,
            "profile_id": profile_id,
        }
        if surgery_type:
            fields["surgery_type"] = surgery_type

        try:
            with transaction.atomic():
                patient = Patient.objects.create(**fields)
        except IntegrityError:
            # mrn uniqueness is enforced by constraint
            raise ConflictError(DUPLICATE_MRN_MSG)

        AuditService.log(
            tenant_id=tenant_id,
            action="patient.created",
            resource_type="Patient",
            resource_id=patient.id,
            actor_user_id=actor_user_id,
            metadata={"mrn": mrn},
        )
        return patient

    @staticmethod
    @transaction.atomic
    def update_patient(
        *,
        tenant_id: UUID,
        actor_user_id: int | None,
        patient_id: UUID,
        data: dict,
    ) -> Patient:
        patient = Patient.objects.select_for_update().get(id=patient_id, tenant_id=tenant_id)

        updates = {k: v for k, v in (data or {}).items() if k in UPDATABLE_FIELDS}
        for k, v in updates.items():
            setattr(patient, k, v)

        try:
            with transaction.atomic():
                patient.save()
        except IntegrityError:
            raise ConflictError(DUPLICATE_MRN_MSG)

        AuditService.log(
            tenant_id=tenant_id,
            action="patient.updated",
            resource_type="Patient",
            resource_id=patient.id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return patient
