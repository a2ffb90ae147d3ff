# recovery_core/iam/management/commands/reconcile_profiles.py
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from recovery_core.iam.models import Profile, ProfileRole
from recovery_core.iam.services.reconcile import ProfileReconcileService


class Command(BaseCommand):
    help = (
        "Backfill missing Profile rows for auth users and missing Patient rows for patient profiles. "
        "Only inserts what is missing."
    )

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Print counts only; do not write.")
        parser.add_argument("--limit", type=int, default=None, help="Optional limit of users scanned.")

    def handle(self, *args, **opts):
        dry = opts["dry_run"]

        User = get_user_model()
        qs = User.objects.all().order_by("pk")
        if opts["limit"]:
            qs = qs[: opts["limit"]]

        if dry:
            users = list(qs)
            missing_profiles = sum(1 for u in users if not Profile.objects.filter(user_id=u.pk).exists())
            missing_patients = Profile.objects.filter(
                user__in=users,
                role=ProfileRole.PATIENT,
                tenant__isnull=False,
                patient__isnull=True,
            ).count()
            self.stdout.write(f"Users examined: {len(users)}")
            self.stdout.write(f"DRY RUN: profiles that would be created: {missing_profiles}")
            self.stdout.write(f"DRY RUN: patients that would be created (existing profiles): {missing_patients}")
            return

        examined = 0
        profiles_created = 0
        patients_created = 0

        for user in qs:
            examined += 1
            result = ProfileReconcileService.reconcile(user)
            profiles_created += int(result.created_profile)
            patients_created += int(result.created_patient)

        self.stdout.write(f"Users examined: {examined}")
        self.stdout.write(f"Profiles created: {profiles_created}")
        self.stdout.write(f"Patients created: {patients_created}")
