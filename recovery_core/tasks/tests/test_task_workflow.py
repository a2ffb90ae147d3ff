# recovery_core/tasks/tests/test_task_workflow.py
from datetime import date
from io import StringIO

import pytest
from django.core.management import call_command
from rest_framework.exceptions import ValidationError

from recovery_core.audit.models import AuditEvent
from recovery_core.common.events import publish
from recovery_core.protocols.services import AssignmentService
from recovery_core.tasks.models import PatientTask, TaskStatus
from recovery_core.tasks.services import TaskService

pytestmark = pytest.mark.django_db


@pytest.fixture
def timeline(tenant, protocol, patient):
    result = AssignmentService.assign(
        tenant_id=tenant.id,
        protocol_id=protocol.id,
        patient_id=patient.id,
        start_date=date(2025, 1, 10),
    )
    return list(PatientTask.objects.filter(assignment=result.assignment).order_by("due_date"))


def test_start_then_complete(tenant, timeline):
    task = timeline[0]

    started = TaskService.start_task(tenant_id=tenant.id, task_id=task.id)
    assert started.status == TaskStatus.IN_PROGRESS
    assert started.started_at is not None

    done = TaskService.complete_task(tenant_id=tenant.id, task_id=task.id, completion_data={"note": "ok"})
    assert done.status == TaskStatus.COMPLETED
    assert done.completion_data == {"note": "ok"}

    with pytest.raises(ValidationError):
        TaskService.start_task(tenant_id=tenant.id, task_id=task.id)


def test_complete_is_idempotent(tenant, timeline):
    task = timeline[1]

    first = TaskService.complete_task(tenant_id=tenant.id, task_id=task.id)
    second = TaskService.complete_task(tenant_id=tenant.id, task_id=task.id)

    assert first.completed_at == second.completed_at
    assert AuditEvent.objects.filter(action="task.completed", resource_id=str(task.id)).count() == 1


def test_mark_overdue_uses_reference_day(tenant, timeline):
    TaskService.complete_task(tenant_id=tenant.id, task_id=timeline[0].id)

    updated = TaskService.mark_overdue(tenant_id=tenant.id, today=date(2025, 1, 11))
    assert updated == 1

    statuses = {t.due_date: t.status for t in PatientTask.objects.filter(tenant_id=tenant.id)}
    assert statuses[date(2025, 1, 5)] == TaskStatus.COMPLETED
    assert statuses[date(2025, 1, 10)] == TaskStatus.OVERDUE
    assert statuses[date(2025, 1, 17)] == TaskStatus.PENDING


def test_overdue_tasks_can_still_be_completed(tenant, timeline):
    TaskService.mark_overdue(tenant_id=tenant.id, today=date(2025, 1, 11))

    done = TaskService.complete_task(tenant_id=tenant.id, task_id=timeline[1].id)
    assert done.status == TaskStatus.COMPLETED


def test_mark_overdue_command(tenant, timeline):
    out = StringIO()
    call_command("mark_overdue_tasks", "--dry-run", "--date", "2025-01-18", stdout=out)
    assert "DRY RUN: tasks that would be marked overdue: 3" in out.getvalue()
    assert not PatientTask.objects.filter(status=TaskStatus.OVERDUE).exists()

    out = StringIO()
    call_command("mark_overdue_tasks", "--date", "2025-01-18", stdout=out)
    assert "Tasks marked overdue: 3" in out.getvalue()


def test_form_completed_event_closes_linked_task(tenant, timeline):
    task = timeline[2]

    called = publish(
        "form.completed",
        {"tenant_id": str(tenant.id), "task_id": str(task.id), "patient_form_id": "pf-1", "actor_user_id": None},
    )

    assert called >= 1
    task.refresh_from_db()
    assert task.status == TaskStatus.COMPLETED
    assert task.completion_data == {"patient_form_id": "pf-1"}


def test_form_completed_event_ignores_foreign_task(tenant, other_tenant, timeline):
    task = timeline[2]

    publish("form.completed", {"tenant_id": str(other_tenant.id), "task_id": str(task.id)})

    task.refresh_from_db()
    assert task.status == TaskStatus.PENDING
