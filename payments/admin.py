from django.contrib import admin, messages

from .exceptions import PaymentProcessingError
from .models import Payment
from .nowpayments.services import NowPaymentsService


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "subscription", "status", "amount", "currency",
                    "external_id", "paid_at", "created_at")
    list_filter = ("status", "currency", "payment_method", "created_at")
    search_fields = ("external_id", "user__telegram_username", "user__telegram_id", "user__email")
    readonly_fields = ("provider_data", "created_at", "updated_at")
    date_hierarchy = "created_at"

    fieldsets = (
        ('Основное', {
            'fields': ('user', 'subscription', 'amount', 'currency', 'payment_method', 'promocode')
        }),
        ('Статус', {
            'fields': ('status', 'paid_at', 'error_message')
        }),
        ('Шлюз', {
            'fields': ('external_id', 'provider_data'),
            'classes': ('collapse',)
        }),
        ('Даты', {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    actions = ['confirm_via_gateway']

    @admin.action(description="💰 Проверить в NOWPayments и активировать подписку")
    def confirm_via_gateway(self, request, queryset):
        """Ручное подтверждение: статус берётся из API шлюза"""
        service = NowPaymentsService()
        confirmed = 0
        for payment in queryset:
            payment_id = payment.provider.payment_id
            if not payment_id:
                self.message_user(request, f"Платёж #{payment.id}: нет payment_id шлюза", messages.WARNING)
                continue
            try:
                service.confirm_payment(payment_id)
            except PaymentProcessingError as e:
                self.message_user(request, f"Платёж #{payment.id}: {e}", messages.ERROR)
                continue
            confirmed += 1

        self.message_user(request, f"Подтверждено платежей: {confirmed}", messages.SUCCESS)
