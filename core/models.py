#core/models
from django.db import models
from django.utils import timezone


class User(models.Model):
    """
    Пользователь платформы. Идентификаторы из трёх независимых пространств:
    Telegram, Discord и e-mail (отдельно для Notion и для Google Drive).
    Любой из них может быть единственным заполненным.
    """
    telegram_id = models.BigIntegerField(unique=True, null=True, blank=True, help_text="Telegram User ID")
    telegram_username = models.CharField(max_length=255, null=True, blank=True)
    telegram_first_name = models.CharField(max_length=255, null=True, blank=True)

    discord_id = models.CharField(max_length=32, null=True, blank=True, help_text="Discord User ID")
    discord_username = models.CharField(max_length=255, null=True, blank=True)

    email = models.EmailField(null=True, blank=True, help_text="Почта для доступа к Notion")
    google_drive_email = models.EmailField(null=True, blank=True, help_text="Почта для доступа к Google Drive")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        indexes = [
            models.Index(fields=["discord_id"], name="users_discord_id_idx"),
            models.Index(fields=["email"], name="users_email_idx"),
        ]

    def __str__(self):
        if self.telegram_username:
            return f"@{self.telegram_username}"
        if self.telegram_id:
            return f"tg:{self.telegram_id}"
        return self.email or self.discord_id or f"user#{self.pk}"

    @property
    def display_name(self) -> str:
        """Подпись пользователя для сообщений операторам."""
        if self.telegram_username:
            return f"@{self.telegram_username}"
        if self.telegram_first_name:
            return self.telegram_first_name
        return f"ID: {self.telegram_id or 'N/A'}"

    def get_active_subscriptions(self):
        return self.subscriptions.filter(status='active', end_date__gt=timezone.now())
