# recovery_core/protocols/services.py
"""
Protocol store writes and the assignment (timeline materialization) service.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional
from uuid import UUID

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q
from django.utils.timezone import now
from rest_framework.exceptions import NotFound, ValidationError

from recovery_core.audit.services import AuditService
from recovery_core.common.api.exceptions import ConflictError, UpstreamError
from recovery_core.common.dates import add_days, as_utc_date, utc_today
from recovery_core.common.events import publish
from recovery_core.forms.models import PatientForm
from recovery_core.patients.models import Patient
from recovery_core.protocols.models import (
    AssignmentStatus,
    PatientProtocol,
    Protocol,
    ProtocolTask,
    TaskType,
)
from recovery_core.tasks.models import PatientTask, TaskStatus

logger = logging.getLogger(__name__)

ACTIVE_ASSIGNMENT_EXISTS_MSG = "Patient already has an active protocol assignment."

# Fallback template names when no surgery-type specific template exists.
GENERIC_TEMPLATE_MARKERS = ("standard",)


@dataclass(frozen=True)
class AssignmentResult:
    assignment: PatientProtocol
    tasks_created: int


@dataclass(frozen=True)
class RematerializeResult:
    assignment: PatientProtocol
    tasks_created: int
    tasks_removed: int
    tasks_preserved: int
    forms_relinked: int = 0


def resolve_anchor(*, start_date: Optional[date], surgery_date: Optional[date], today: Optional[date] = None) -> date:
    """start_date ?? surgery_date ?? today, as a UTC calendar date."""
    for candidate in (start_date, surgery_date):
        if candidate is not None:
            return as_utc_date(candidate)
    return as_utc_date(today) if today is not None else utc_today()


def ordered_definitions(protocol: Protocol) -> list[ProtocolTask]:
    return list(protocol.tasks.order_by("day_offset", "sort_order", "created_at", "id"))


def _validate_frequency(frequency: Any, *, day_offset: int) -> dict:
    if frequency in (None, {}):
        return {}
    if not isinstance(frequency, dict):
        raise ValidationError({"frequency": "Must be a JSON object."})

    try:
        start_day = int(frequency.get("start_day", day_offset))
        stop_day = int(frequency.get("stop_day", start_day))
    except (TypeError, ValueError):
        raise ValidationError({"frequency": "start_day and stop_day must be integers."})

    if stop_day < start_day:
        raise ValidationError({"frequency": "stop_day must not be before start_day."})

    return {"start_day": start_day, "stop_day": stop_day, "repeat": bool(frequency.get("repeat", False))}


class ProtocolService:
    """
    All Protocol / ProtocolTask mutations live here.
    """

    @staticmethod
    @transaction.atomic
    def create_protocol(
        *,
        tenant_id: UUID,
        actor_user_id: int | None,
        name: str,
        description: str = "",
        surgery_type: str = "",
        is_template: bool = True,
        is_active: bool = True,
        tasks: Iterable[dict] = (),
    ) -> Protocol:
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": "This field is required."})

        protocol = Protocol.objects.create(
            tenant_id=tenant_id,
            name=name,
            description=description or "",
            surgery_type=surgery_type or "",
            is_template=is_template,
            is_active=is_active,
            created_by_id=actor_user_id,
        )

        for spec in tasks:
            ProtocolService.add_task(protocol=protocol, **spec)

        AuditService.log(
            tenant_id=tenant_id,
            action="protocol.created",
            resource_type="Protocol",
            resource_id=protocol.id,
            actor_user_id=actor_user_id,
            metadata={"name": protocol.name, "task_count": protocol.tasks.count()},
        )
        return protocol

    @staticmethod
    @transaction.atomic
    def add_task(
        *,
        protocol: Protocol,
        day_offset: int,
        task_type: str,
        title: str,
        description: str = "",
        content: Optional[dict] = None,
        form_template_id: UUID | None = None,
        is_required: bool = True,
        frequency: Optional[dict] = None,
        sort_order: int | None = None,
    ) -> ProtocolTask:
        if task_type not in TaskType.values:
            raise ValidationError({"task_type": f"Invalid task_type. Allowed: {list(TaskType.values)}"})

        if form_template_id is not None:
            from recovery_core.forms.models import FormTemplate

            if not FormTemplate.objects.filter(id=form_template_id, tenant_id=protocol.tenant_id).exists():
                raise ValidationError({"form_template_id": "Unknown form template for this tenant."})
        elif task_type == TaskType.FORM:
            raise ValidationError({"form_template_id": "Form tasks must reference a form template."})

        if sort_order is None:
            sort_order = protocol.tasks.filter(day_offset=day_offset).count()

        return ProtocolTask.objects.create(
            tenant_id=protocol.tenant_id,
            protocol=protocol,
            day_offset=int(day_offset),
            task_type=task_type,
            title=title,
            description=description or "",
            content=content or {},
            form_template_id=form_template_id,
            is_required=is_required,
            frequency=_validate_frequency(frequency, day_offset=int(day_offset)),
            sort_order=sort_order,
        )

    @staticmethod
    @transaction.atomic
    def update_protocol(*, tenant_id: UUID, actor_user_id: int | None, protocol_id: UUID, data: dict) -> Protocol:
        protocol = Protocol.objects.select_for_update().get(id=protocol_id, tenant_id=tenant_id)

        allowed = {"name", "description", "surgery_type", "is_template", "is_active"}
        updates = {k: v for k, v in (data or {}).items() if k in allowed}
        for k, v in updates.items():
            setattr(protocol, k, v)
        protocol.save()

        AuditService.log(
            tenant_id=tenant_id,
            action="protocol.updated",
            resource_type="Protocol",
            resource_id=protocol.id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return protocol


class AssignmentService:
    """
    Applies a protocol to a patient: one PatientTask per task definition,
    due_date = anchor + day_offset (whole UTC days).

    Conflict policy: a patient with an active assignment is rejected with 409.
    The application check runs under a row lock on the patient; the partial
    unique constraint catches anything that slips past it.
    """

    @staticmethod
    def _materialize(
        *,
        assignment: PatientProtocol,
        definitions: list[ProtocolTask],
        anchor: date,
    ) -> int:
        rows = [
            PatientTask(
                tenant_id=assignment.tenant_id,
                patient_id=assignment.patient_id,
                assignment=assignment,
                protocol_task=definition,
                title=definition.title,
                task_type=definition.task_type,
                day_offset=definition.day_offset,
                is_required=definition.is_required,
                due_date=add_days(anchor, definition.day_offset),
                status=TaskStatus.PENDING,
            )
            for definition in definitions
        ]
        if not rows:
            return 0

        try:
            with transaction.atomic():
                PatientTask.objects.bulk_create(rows)
        except DatabaseError as exc:
            logger.error(
                "Task materialization failed: assignment_id=%s attempted=%s",
                assignment.id,
                len(rows),
                exc_info=exc,
            )
            raise UpstreamError(
                "Failed to materialize protocol tasks.",
                details={"assignment_id": str(assignment.id), "attempted": len(rows), "tasks_created": 0},
            ) from exc
        return len(rows)

    @staticmethod
    @transaction.atomic
    def assign(
        *,
        tenant_id: UUID,
        protocol_id: UUID,
        patient_id: UUID,
        start_date: Optional[date] = None,
        actor_user_id: int | None = None,
        today: Optional[date] = None,
    ) -> AssignmentResult:
        # both lookups go through the tenant: another tenant's row is a plain 404
        protocol = Protocol.objects.filter(tenant_id=tenant_id, id=protocol_id).first()
        if protocol is None:
            raise NotFound("Protocol not found.")
        if not protocol.is_active:
            raise ValidationError({"protocol_id": "Protocol is not active."})

        patient = Patient.objects.select_for_update().filter(tenant_id=tenant_id, id=patient_id).first()
        if patient is None:
            raise NotFound("Patient not found.")

        if PatientProtocol.objects.filter(patient=patient, status=AssignmentStatus.ACTIVE).exists():
            raise ConflictError(ACTIVE_ASSIGNMENT_EXISTS_MSG)

        anchor = resolve_anchor(start_date=start_date, surgery_date=patient.surgery_date, today=today)

        try:
            with transaction.atomic():
                assignment = PatientProtocol.objects.create(
                    tenant_id=tenant_id,
                    patient=patient,
                    protocol=protocol,
                    status=AssignmentStatus.ACTIVE,
                    start_date=anchor,
                    surgery_date=patient.surgery_date,
                    assigned_by_id=actor_user_id,
                )
        except IntegrityError:
            raise ConflictError(ACTIVE_ASSIGNMENT_EXISTS_MSG)

        tasks_created = AssignmentService._materialize(
            assignment=assignment,
            definitions=ordered_definitions(protocol),
            anchor=anchor,
        )

        AuditService.log_safely(
            tenant_id=tenant_id,
            action="protocol.assigned",
            resource_type="PatientProtocol",
            resource_id=assignment.id,
            actor_user_id=actor_user_id,
            metadata={
                "protocol_id": str(protocol.id),
                "patient_id": str(patient.id),
                "start_date": anchor.isoformat(),
                "tasks_created": tasks_created,
            },
        )
        publish(
            "protocol.assigned",
            {
                "tenant_id": str(tenant_id),
                "assignment_id": str(assignment.id),
                "patient_id": str(patient.id),
                "protocol_id": str(protocol.id),
            },
        )
        return AssignmentResult(assignment=assignment, tasks_created=tasks_created)

    @staticmethod
    def pick_template_for(*, tenant_id: UUID, patient: Patient) -> Optional[Protocol]:
        """
        Surgery-type specific template first, else a generic one.
        """
        templates = Protocol.objects.filter(tenant_id=tenant_id, is_template=True, is_active=True).order_by(
            "-created_at"
        )

        if patient.surgery_type:
            match = templates.filter(surgery_type=patient.surgery_type).first()
            if match is not None:
                return match

        generic = Q(surgery_type="")
        for marker in GENERIC_TEMPLATE_MARKERS:
            generic |= Q(name__icontains=marker)
        return templates.filter(generic).first()

    @staticmethod
    @transaction.atomic
    def auto_assign(
        *,
        tenant_id: UUID,
        patient_id: UUID,
        actor_user_id: int | None = None,
        today: Optional[date] = None,
    ) -> AssignmentResult:
        patient = Patient.objects.filter(tenant_id=tenant_id, id=patient_id).first()
        if patient is None:
            raise NotFound("Patient not found.")

        if PatientProtocol.objects.filter(patient=patient, status=AssignmentStatus.ACTIVE).exists():
            raise ConflictError(ACTIVE_ASSIGNMENT_EXISTS_MSG)

        protocol = AssignmentService.pick_template_for(tenant_id=tenant_id, patient=patient)
        if protocol is None:
            raise NotFound("No protocol template available for this patient.")

        result = AssignmentService.assign(
            tenant_id=tenant_id,
            protocol_id=protocol.id,
            patient_id=patient.id,
            actor_user_id=actor_user_id,
            today=today,
        )

        AuditService.log_safely(
            tenant_id=tenant_id,
            action="protocol.auto_assigned",
            resource_type="PatientProtocol",
            resource_id=result.assignment.id,
            actor_user_id=actor_user_id,
            metadata={
                "protocol_id": str(protocol.id),
                "protocol_name": protocol.name,
                "surgery_type": patient.surgery_type,
            },
        )
        return result

    @staticmethod
    @transaction.atomic
    def rematerialize(
        *,
        tenant_id: UUID,
        assignment_id: UUID,
        actor_user_id: int | None = None,
    ) -> RematerializeResult:
        """
        Re-sync an active assignment's timeline with its (edited) protocol.
        Completed tasks are kept as they are; every other task is regenerated.
        """
        assignment = (
            PatientProtocol.objects.select_for_update()
            .select_related("protocol")
            .get(id=assignment_id, tenant_id=tenant_id)
        )
        if assignment.status != AssignmentStatus.ACTIVE:
            raise ValidationError({"detail": "Only active assignments can be re-materialized."})

        completed_ids = set(
            assignment.tasks.filter(status=TaskStatus.COMPLETED).values_list("protocol_task_id", flat=True)
        )
        stale = assignment.tasks.exclude(status=TaskStatus.COMPLETED)

        # forms already issued for a stale task follow it to its replacement
        issued: dict[UUID, list[UUID]] = {}
        for protocol_task_id, form_id in stale.filter(forms__isnull=False).values_list("protocol_task_id", "forms__id"):
            issued.setdefault(protocol_task_id, []).append(form_id)

        removed = stale.count()
        stale.delete()

        definitions = [d for d in ordered_definitions(assignment.protocol) if d.id not in completed_ids]
        tasks_created = AssignmentService._materialize(
            assignment=assignment,
            definitions=definitions,
            anchor=assignment.start_date,
        )

        forms_relinked = 0
        if issued:
            replacements = assignment.tasks.filter(protocol_task_id__in=list(issued)).exclude(status=TaskStatus.COMPLETED)
            for task in replacements:
                forms_relinked += PatientForm.objects.filter(
                    tenant_id=tenant_id,
                    id__in=issued[task.protocol_task_id],
                ).update(task=task)

        AuditService.log_safely(
            tenant_id=tenant_id,
            action="protocol.rematerialized",
            resource_type="PatientProtocol",
            resource_id=assignment.id,
            actor_user_id=actor_user_id,
            metadata={
                "tasks_created": tasks_created,
                "tasks_removed": removed,
                "tasks_preserved": len(completed_ids),
                "forms_relinked": forms_relinked,
            },
        )
        return RematerializeResult(
            assignment=assignment,
            tasks_created=tasks_created,
            tasks_removed=removed,
            tasks_preserved=len(completed_ids),
            forms_relinked=forms_relinked,
        )

    @staticmethod
    def _close(*, tenant_id: UUID, assignment_id: UUID, actor_user_id: int | None, status: str) -> PatientProtocol:
        assignment = PatientProtocol.objects.select_for_update().get(id=assignment_id, tenant_id=tenant_id)

        # idempotent no-op
        if assignment.status == status:
            return assignment
        if assignment.status != AssignmentStatus.ACTIVE:
            raise ValidationError({"detail": f"Cannot move a {assignment.status} assignment to {status}."})

        assignment.status = status
        update_fields = ["status", "updated_at"]
        if status == AssignmentStatus.COMPLETED:
            assignment.completed_at = now()
            update_fields.append("completed_at")
        else:
            assignment.cancelled_at = now()
            update_fields.append("cancelled_at")
        assignment.save(update_fields=update_fields)

        AuditService.log_safely(
            tenant_id=tenant_id,
            action=f"protocol.{status}",
            resource_type="PatientProtocol",
            resource_id=assignment.id,
            actor_user_id=actor_user_id,
            metadata={"patient_id": str(assignment.patient_id)},
        )
        return assignment

    @staticmethod
    @transaction.atomic
    def complete_assignment(*, tenant_id: UUID, assignment_id: UUID, actor_user_id: int | None = None) -> PatientProtocol:
        return AssignmentService._close(
            tenant_id=tenant_id,
            assignment_id=assignment_id,
            actor_user_id=actor_user_id,
            status=AssignmentStatus.COMPLETED,
        )

    @staticmethod
    @transaction.atomic
    def cancel_assignment(*, tenant_id: UUID, assignment_id: UUID, actor_user_id: int | None = None) -> PatientProtocol:
        return AssignmentService._close(
            tenant_id=tenant_id,
            assignment_id=assignment_id,
            actor_user_id=actor_user_id,
            status=AssignmentStatus.CANCELLED,
        )
