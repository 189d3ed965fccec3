# ================================================================
# payments/models.py
# ================================================================
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone
from core.models import User
from subscriptions.models import Subscription, Promocode

from .provider_data import ProviderData


class PaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'
    REFUNDED = 'refunded', 'Refunded'


class Payment(models.Model):
    """Попытка оплаты подписки (создаётся при оформлении заказа в боте)"""
    subscription = models.ForeignKey(Subscription, on_delete=models.CASCADE, related_name='payments')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='payments')

    # Сумма и валюта
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=16, default='USDT')
    payment_method = models.CharField(max_length=32, default='crypto')

    # Статус платежа
    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING
    )

    # Идентификатор в шлюзе (обычно invoice_id NOWPayments) + данные шлюза
    external_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    provider_data = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    promocode = models.ForeignKey(Promocode, on_delete=models.SET_NULL, null=True, blank=True)

    error_message = models.CharField(max_length=500, null=True, blank=True)

    # Временные метки
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments'
        indexes = [models.Index(fields=["status", "created_at"], name="payments_status_created_idx")]

    def __str__(self):
        return f"Payment #{self.pk} {self.amount} {self.currency} ({self.status})"

    @property
    def provider(self) -> ProviderData:
        return ProviderData.from_raw(self.provider_data)

    def set_provider(self, data: ProviderData):
        self.provider_data = data.to_raw()

    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED

    def is_refunded(self) -> bool:
        return self.status == PaymentStatus.REFUNDED

    def mark_as_paid(self):
        """Отметить платёж как оплаченный"""
        self.status = PaymentStatus.COMPLETED
        self.paid_at = timezone.now()
        self.error_message = None
