from django.contrib import admin
from django.contrib.auth import get_user_model
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import LinkedAddress

User = get_user_model()


class LinkedAddressInline(admin.TabularInline):
    model = LinkedAddress
    extra = 0
    readonly_fields = ("created_at",)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = (
        "username",
        "discord_id",
        "discord_username",
        "tier_name",
        "token_balance",
        "last_balance_check",
        "is_staff",
    )
    list_filter = (
        "tier_name",
        "is_staff",
        "is_active",
        "last_balance_check",
    )
    search_fields = ("username", "discord_id", "discord_username", "linked_addresses__address")
    ordering = ("username",)
    inlines = [LinkedAddressInline]

    fieldsets = (
        (None, {"fields": ("username", "password")}),
        ("Discord", {"fields": ("discord_id", "discord_username", "discord_avatar")}),
        (
            "Tier",
            {"fields": ("token_balance", "tier_name", "roles", "last_balance_check")},
        ),
        (
            "Permissions",
            {
                "fields": (
                    "is_active",
                    "is_staff",
                    "is_superuser",
                    "groups",
                    "user_permissions",
                )
            },
        ),
        (
            "Important dates",
            {"fields": ("last_login", "date_joined", "created_at", "updated_at")},
        ),
    )
    readonly_fields = ("created_at", "updated_at", "last_balance_check")

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("username", "discord_id", "password1", "password2"),
            },
        ),
    )


@admin.register(LinkedAddress)
class LinkedAddressAdmin(admin.ModelAdmin):
    list_display = ("address", "user", "created_at")
    search_fields = ("address", "user__username", "user__discord_id")
    raw_id_fields = ("user",)
