from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class ReconciliationRun(models.Model):
    """History of reconciliation passes that acquired the run guard."""

    STATUS_CHOICES = [
        ("running", "Running"),
        ("completed", "Completed"),
        ("skipped", "Skipped"),
        ("failed", "Failed"),
    ]
    TRIGGER_CHOICES = [
        ("scheduled", "Scheduled"),
        ("manual", "Manual"),
    ]

    started_at = models.DateTimeField()
    finished_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES)
    trigger = models.CharField(max_length=20, choices=TRIGGER_CHOICES, default="scheduled")

    users_processed = models.PositiveIntegerField(default=0)
    users_updated = models.PositiveIntegerField(default=0)
    users_errored = models.PositiveIntegerField(default=0)
    users_skipped = models.PositiveIntegerField(default=0)

    error = models.TextField(blank=True)
    # Per-user outcomes as produced by UserOutcome.to_dict()
    outcomes = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-started_at"]
        verbose_name = "Reconciliation Run"
        verbose_name_plural = "Reconciliation Runs"
        indexes = [
            models.Index(fields=["status", "started_at"], name="recon_run_status_started_idx"),
        ]

    def __str__(self):
        return f"{self.trigger} run {self.started_at:%Y-%m-%d %H:%M} ({self.status})"

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return round((self.finished_at - self.started_at).total_seconds(), 2)
