# recovery_core/tasks/services.py
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from django.db import transaction
from django.utils.timezone import now
from rest_framework.exceptions import ValidationError

from recovery_core.audit.services import AuditService
from recovery_core.common.dates import utc_today
from recovery_core.common.events import publish
from recovery_core.tasks.models import PatientTask, TaskStatus


class TaskService:
    """
    PatientTask write-model operations.

    Workflow: pending|overdue -> in_progress -> completed. Completing straight
    from pending/overdue is allowed (most patient tasks are one-tap).
    Completed is terminal; repeating the completion is a no-op.
    """

    @staticmethod
    def _get_scoped(*, tenant_id: UUID, task_id: UUID) -> PatientTask:
        return PatientTask.objects.select_for_update().get(id=task_id, tenant_id=tenant_id)

    @staticmethod
    @transaction.atomic
    def start_task(*, tenant_id: UUID, task_id: UUID, actor_user_id: int | None = None) -> PatientTask:
        task = TaskService._get_scoped(tenant_id=tenant_id, task_id=task_id)

        if task.status == TaskStatus.COMPLETED:
            raise ValidationError({"detail": "Cannot start a completed task."})
        if task.status == TaskStatus.IN_PROGRESS:
            return task

        task.status = TaskStatus.IN_PROGRESS
        task.started_at = now()
        task.save(update_fields=["status", "started_at", "updated_at"])
        return task

    @staticmethod
    @transaction.atomic
    def complete_task(
        *,
        tenant_id: UUID,
        task_id: UUID,
        completion_data: Optional[dict] = None,
        actor_user_id: int | None = None,
    ) -> PatientTask:
        task = TaskService._get_scoped(tenant_id=tenant_id, task_id=task_id)

        # idempotent
        if task.status == TaskStatus.COMPLETED:
            return task

        task.status = TaskStatus.COMPLETED
        task.completed_at = now()
        if completion_data:
            task.completion_data = {**(task.completion_data or {}), **completion_data}
        task.save(update_fields=["status", "completed_at", "completion_data", "updated_at"])

        AuditService.log_safely(
            tenant_id=tenant_id,
            action="task.completed",
            resource_type="PatientTask",
            resource_id=task.id,
            actor_user_id=actor_user_id,
            metadata={"patient_id": str(task.patient_id), "title": task.title},
        )
        publish(
            "task.completed",
            {
                "tenant_id": str(tenant_id),
                "task_id": str(task.id),
                "patient_id": str(task.patient_id),
                "assignment_id": str(task.assignment_id),
            },
        )
        return task

    @staticmethod
    @transaction.atomic
    def mark_overdue(*, tenant_id: UUID | None = None, today: Optional[date] = None) -> int:
        """
        Flag actionable tasks whose due date has passed. Returns rows updated.
        """
        today = today or utc_today()

        qs = PatientTask.objects.filter(
            status__in=[TaskStatus.PENDING, TaskStatus.IN_PROGRESS],
            due_date__lt=today,
        )
        if tenant_id is not None:
            qs = qs.filter(tenant_id=tenant_id)

        return qs.update(status=TaskStatus.OVERDUE, updated_at=now())
