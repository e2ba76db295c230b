"""
Tier reconciliation management command.

Runs the same pass as the scheduled Celery task, through the same run guard.

Usage:
    # Reconcile every user with a linked address
    python manage.py reconcile_tiers --all

    # Reconcile a single user by Discord ID
    python manage.py reconcile_tiers --user=123456789012345678

    # Show whether a pass is running and the last pass summary
    python manage.py reconcile_tiers --status

    # Per-user outcomes
    python manage.py reconcile_tiers --all -v 2
"""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from services.core.utils.async_utils import run_async
from services.reconciliation.records import OutcomeStatus, RunRecord, RunStatus
from services.reconciliation.scheduler import get_scheduler

User = get_user_model()


class Command(BaseCommand):
    help = "Reconcile tier roles with on-chain balances"

    def add_arguments(self, parser):
        target_group = parser.add_mutually_exclusive_group(required=True)
        target_group.add_argument(
            "--user",
            type=str,
            help="Discord ID of the user to reconcile",
        )
        target_group.add_argument(
            "--all",
            action="store_true",
            help="Reconcile all users with linked addresses (same as scheduled task)",
        )
        target_group.add_argument(
            "--status",
            action="store_true",
            help="Show whether a pass is running and summarize the last one",
        )

    def handle(self, *args, **options):  # noqa: ARG002
        scheduler = get_scheduler()

        if options.get("status"):
            self._print_status(scheduler)
            return

        user_id = None
        if options.get("user"):
            try:
                user_id = User.objects.get(discord_id=options["user"]).pk
            except User.DoesNotExist as exc:
                raise CommandError(f"User not found: {options['user']}") from exc

        self._print_header(options)
        record = run_async(scheduler.trigger_manual(user_id))
        self._print_results(record, verbose=options.get("verbosity", 1) >= 2)

        if record.status == RunStatus.FAILED:
            raise CommandError(f"Reconciliation failed: {record.error}")

    def _print_header(self, options: dict):
        self.stdout.write("\n" + "=" * 80)
        self.stdout.write("TIER RECONCILIATION")
        self.stdout.write("=" * 80)

        if options.get("user"):
            self.stdout.write(f"User: {options['user']}")
        else:
            self.stdout.write("Scope: All users with linked addresses")
        self.stdout.write("")

    def _print_status(self, scheduler):
        running = scheduler.is_running()
        self.stdout.write(f"Running: {'yes' if running else 'no'}")

        last = scheduler.last_run()
        if not last:
            self.stdout.write("Last run: none recorded")
            return
        self.stdout.write(
            f"Last run: {last['status']} ({last['trigger']}) at {last['started_at']}, "
            f"{last['users_updated']}/{last['users_processed']} updated, "
            f"{last['users_errored']} errors"
        )

    def _print_results(self, record: RunRecord, verbose: bool):
        self.stdout.write("\n" + "=" * 80)
        self.stdout.write("RESULTS")
        self.stdout.write("=" * 80)

        if record.status == RunStatus.SKIPPED:
            self.stdout.write(
                self.style.WARNING("Skipped: a reconciliation pass is already running")
            )
            return

        if verbose:
            for outcome in record.outcomes:
                line = (
                    f"   {outcome.platform_user_id}: {outcome.status.value}"
                    f" balance={outcome.balance} tier={outcome.tier_name or '-'}"
                )
                if outcome.message:
                    line += f" ({outcome.message})"
                if outcome.status == OutcomeStatus.ERROR:
                    self.stdout.write(self.style.ERROR(line))
                elif outcome.status in (OutcomeStatus.WARNING, OutcomeStatus.SKIPPED):
                    self.stdout.write(self.style.WARNING(line))
                else:
                    self.stdout.write(line)

        self.stdout.write(f"\n   Processed: {record.users_processed}")
        self.stdout.write(f"   Updated: {record.users_updated}")
        self.stdout.write(f"   Warnings: {record.warnings}")
        self.stdout.write(f"   Skipped: {record.users_skipped}")
        self.stdout.write(f"   Errors: {record.users_errored}")

        self.stdout.write("\n" + "-" * 80)
        if record.status == RunStatus.COMPLETED and not record.users_errored:
            self.stdout.write(
                self.style.SUCCESS(
                    f"Reconciliation complete: {record.users_updated} users updated "
                    f"in {record.duration_seconds}s"
                )
            )
        elif record.status == RunStatus.COMPLETED:
            self.stdout.write(
                self.style.WARNING(
                    f"Reconciliation completed with errors: {record.users_errored} of "
                    f"{record.users_processed} users failed in {record.duration_seconds}s"
                )
            )
        else:
            self.stdout.write(self.style.ERROR(f"Reconciliation failed: {record.error}"))

        self.stdout.write("")
