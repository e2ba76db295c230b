from django.apps import AppConfig


class AccountsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"

    def ready(self):
        """Import system checks when Django starts up."""
        # Registers tier table / ledger / schedule validation at startup
        from tierbot import checks  # noqa: PLC0415

        _ = checks  # Mark as intentionally used for side effects
