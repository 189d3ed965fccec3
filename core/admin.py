from django.contrib import admin

from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ("id", "telegram_id", "telegram_username", "discord_id", "email",
                    "google_drive_email", "created_at")
    search_fields = ("telegram_id", "telegram_username", "discord_id", "email", "google_drive_email")

    fieldsets = (
        ("Telegram", {
            "fields": ("telegram_id", "telegram_username", "telegram_first_name")
        }),
        ("Discord", {
            "fields": ("discord_id", "discord_username")
        }),
        ("E-mail", {
            "fields": ("email", "google_drive_email")
        }),
    )
