# recovery_core/tasks/management/commands/mark_overdue_tasks.py
from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date

from recovery_core.common.dates import utc_today
from recovery_core.tasks.models import PatientTask, TaskStatus
from recovery_core.tasks.services import TaskService


class Command(BaseCommand):
    help = "Flag pending / in-progress patient tasks whose due date has passed as overdue."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Print counts only; do not write.")
        parser.add_argument("--tenant-id", type=str, default=None, help="Optional tenant UUID filter.")
        parser.add_argument("--date", type=str, default=None, help="Reference day (YYYY-MM-DD, default: today UTC).")

    def handle(self, *args, **opts):
        today = utc_today()
        if opts["date"]:
            today = parse_date(opts["date"])
            if today is None:
                raise CommandError("--date must be YYYY-MM-DD")

        tenant_id = opts["tenant_id"] or None

        if opts["dry_run"]:
            qs = PatientTask.objects.filter(
                status__in=[TaskStatus.PENDING, TaskStatus.IN_PROGRESS],
                due_date__lt=today,
            )
            if tenant_id:
                qs = qs.filter(tenant_id=tenant_id)
            self.stdout.write(f"DRY RUN: tasks that would be marked overdue: {qs.count()}")
            return

        updated = TaskService.mark_overdue(tenant_id=tenant_id, today=today)
        self.stdout.write(f"Tasks marked overdue: {updated}")
