from django.contrib import admin

from .models import ReconciliationRun


@admin.register(ReconciliationRun)
class ReconciliationRunAdmin(admin.ModelAdmin):
    list_display = (
        "started_at",
        "trigger",
        "status",
        "users_processed",
        "users_updated",
        "users_errored",
        "users_skipped",
        "duration_seconds",
    )
    list_filter = ("status", "trigger", "started_at")
    readonly_fields = (
        "started_at",
        "finished_at",
        "status",
        "trigger",
        "users_processed",
        "users_updated",
        "users_errored",
        "users_skipped",
        "error",
        "outcomes",
        "created_at",
    )
    date_hierarchy = "started_at"

    def has_add_permission(self, request):
        return False
