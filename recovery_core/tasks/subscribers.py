# recovery_core/tasks/subscribers.py
from uuid import UUID

from recovery_core.common.events import subscribe
from recovery_core.tasks.models import PatientTask
from recovery_core.tasks.services import TaskService


@subscribe("form.completed")
def on_form_completed(payload: dict) -> None:
    """
    A completed form closes the protocol task it was issued for.
    """
    task_id = payload.get("task_id")
    if not task_id:
        return

    tenant_id = UUID(payload["tenant_id"])
    if not PatientTask.objects.filter(id=task_id, tenant_id=tenant_id).exists():
        return

    TaskService.complete_task(
        tenant_id=tenant_id,
        task_id=UUID(task_id),
        completion_data={"patient_form_id": payload.get("patient_form_id")},
        actor_user_id=payload.get("actor_user_id"),
    )
