import django.core.serializers.json
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ReconciliationRun",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("started_at", models.DateTimeField()),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("skipped", "Skipped"),
                            ("failed", "Failed"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "trigger",
                    models.CharField(
                        choices=[("scheduled", "Scheduled"), ("manual", "Manual")],
                        default="scheduled",
                        max_length=20,
                    ),
                ),
                ("users_processed", models.PositiveIntegerField(default=0)),
                ("users_updated", models.PositiveIntegerField(default=0)),
                ("users_errored", models.PositiveIntegerField(default=0)),
                ("users_skipped", models.PositiveIntegerField(default=0)),
                ("error", models.TextField(blank=True)),
                (
                    "outcomes",
                    models.JSONField(
                        blank=True,
                        default=list,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Reconciliation Run",
                "verbose_name_plural": "Reconciliation Runs",
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "started_at"], name="recon_run_status_started_idx"
                    )
                ],
            },
        ),
    ]
