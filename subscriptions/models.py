# ================================================================
# subscriptions/models.py
# ================================================================
import json

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone
from core.models import User


class Tariff(models.Model):
    """Тарифный план (только чтение со стороны обработки платежей)"""
    name = models.CharField(max_length=255, help_text="Название тарифа")
    is_active = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tariffs'
        ordering = ['sort_order', '-created_at']

    def __str__(self):
        return self.name


class SubscriptionStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    ACTIVE = 'active', 'Active'
    CANCELLED = 'cancelled', 'Cancelled'


class Subscription(models.Model):
    """Подписка пользователя на тариф"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='subscriptions')
    tariff = models.ForeignKey(Tariff, on_delete=models.SET_NULL, null=True, blank=True)

    period_months = models.PositiveIntegerField(default=1, help_text="Период покупки в месяцах")
    amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=16, default='USDT')

    status = models.CharField(max_length=20, choices=SubscriptionStatus.choices,
                              default=SubscriptionStatus.PENDING)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)

    # Выданные доступы во внешних системах
    discord_role_granted = models.BooleanField(default=False)
    notion_access_granted = models.BooleanField(default=False)
    google_drive_access_granted = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'subscriptions'
        indexes = [
            models.Index(fields=["user", "status"], name="subs_user_status_idx"),
            models.Index(fields=["end_date"], name="subs_end_date_idx"),
        ]

    def __str__(self):
        return f"{self.user} - {self.tariff or '-'} ({self.status})"

    def is_active(self) -> bool:
        """Активна ли подписка"""
        return (
            self.status == SubscriptionStatus.ACTIVE
            and self.end_date is not None
            and self.end_date > timezone.now()
        )


class Promocode(models.Model):
    """Промокод. extra_days: {"1": 7, "3": 14}: бонусные дни по периоду покупки (в месяцах)"""
    code = models.CharField(max_length=64, unique=True)
    extra_days = models.JSONField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'promocodes'

    def __str__(self):
        return self.code

    def extra_days_for(self, period_months: int) -> int:
        """
        Бонусные дни для периода. extra_days мог быть сохранён и как объект,
        и как его текстовая JSON-форма.
        """
        raw = self.extra_days
        if not raw:
            return 0
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                return 0
        if not isinstance(raw, dict):
            return 0
        try:
            days = int(raw.get(str(period_months), 0))
        except (TypeError, ValueError):
            return 0
        return days if days > 0 else 0


class PromocodeUsage(models.Model):
    """Использование промокода, привязанное к подписке"""
    promocode = models.ForeignKey(Promocode, on_delete=models.CASCADE, related_name='usages')
    user = models.ForeignKey(User, on_delete=models.CASCADE)
    subscription = models.ForeignKey(Subscription, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='promocode_usages')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    used_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'promocode_usages'
        indexes = [models.Index(fields=["subscription"], name="promo_usage_sub_idx")]

    def __str__(self):
        return f"{self.promocode} -> {self.subscription_id}"


class SubscriptionLog(models.Model):
    """Журнал переходов (только добавление)"""
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    subscription = models.ForeignKey(Subscription, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    details = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'subscription_logs'
        indexes = [models.Index(fields=["subscription", "action"], name="sub_logs_sub_action_idx")]

    def __str__(self):
        return f"{self.action} ({self.created_at:%d.%m.%Y %H:%M})"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("SubscriptionLog is append-only")
        super().save(*args, **kwargs)

    @classmethod
    def write(cls, action: str, *, user=None, subscription=None, **details):
        return cls.objects.create(action=action, user=user, subscription=subscription, details=details)
