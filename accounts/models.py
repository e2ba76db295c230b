from django.contrib.auth.models import AbstractUser, UserManager
from django.core.validators import RegexValidator
from django.db import models

# 0x followed by up to 64 hex characters
sui_address_validator = RegexValidator(
    regex=r"^0x[0-9a-fA-F]{1,64}$",
    message="Enter a valid Sui address (0x followed by hex characters).",
)


class User(AbstractUser):
    discord_id = models.CharField(
        max_length=32, unique=True, verbose_name="Discord ID", help_text="Discord user snowflake"
    )
    discord_username = models.CharField(max_length=100, blank=True)
    discord_avatar = models.CharField(max_length=255, blank=True)

    token_balance = models.DecimalField(
        max_digits=30,
        decimal_places=9,
        default=0,
        help_text="Balance across all linked addresses at the last check",
    )
    roles = models.JSONField(
        default=list, blank=True, help_text="Tier role ids assigned at the last check"
    )
    tier_name = models.CharField(max_length=50, blank=True)
    last_balance_check = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    REQUIRED_FIELDS = ["discord_id"]

    objects = UserManager()

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return self.discord_username or self.username

    @property
    def has_linked_addresses(self) -> bool:
        return self.linked_addresses.exists()


class LinkedAddress(models.Model):
    """A wallet address whose holdings count toward the user's tier."""

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="linked_addresses")
    address = models.CharField(max_length=66, unique=True, validators=[sui_address_validator])
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Linked Address"
        verbose_name_plural = "Linked Addresses"
        indexes = [
            models.Index(fields=["user", "created_at"], name="linkedaddr_user_created_idx"),
        ]

    def __str__(self):
        return f"{self.user} - {self.address}"

    def save(self, *args, **kwargs):
        self.address = self.address.lower()
        super().save(*args, **kwargs)
