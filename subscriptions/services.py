import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta
from django.utils import timezone

from .models import Subscription, SubscriptionStatus, PromocodeUsage

logger = logging.getLogger(__name__)


@dataclass
class ActivationResult:
    renewal: bool
    start_date: datetime
    end_date: datetime
    bonus_days: int = 0


class SubscriptionService:
    """Сервис жизненного цикла подписки: покупка, продление, отмена."""

    @staticmethod
    def is_renewal(subscription: Subscription) -> bool:
        """Продление = подписка уже была active в момент поиска платежа."""
        return subscription.status == SubscriptionStatus.ACTIVE

    @staticmethod
    def compute_window(subscription: Subscription, now: datetime, renewal: bool):
        """
        Новое окно действия (start_date, end_date) без бонусных дней.

        - новая покупка: start = now, end = now + period_months
        - продление: end = max(end_date, now) + period_months, start не трогаем
        """
        months = relativedelta(months=int(subscription.period_months or 1))

        if not renewal:
            return now, now + months

        current_end = subscription.end_date
        anchor = max(current_end, now) if current_end else now
        start = subscription.start_date or now
        return start, anchor + months

    @staticmethod
    def bonus_days(subscription: Subscription, promocode=None) -> int:
        """
        Бонусные дни промокода для периода покупки.
        Берём последнее использование промокода по подписке, иначе промокод платежа.
        """
        usage = (
            PromocodeUsage.objects.filter(subscription=subscription)
            .select_related("promocode")
            .order_by("-used_at", "-id")
            .first()
        )
        if usage is not None:
            promocode = usage.promocode
        if promocode is None:
            return 0
        return promocode.extra_days_for(subscription.period_months or 1)

    @classmethod
    def activate(cls, subscription: Subscription, *, renewal: bool, now: datetime | None = None,
                 promocode=None) -> ActivationResult:
        """Применить оплату к подписке: окно + бонусные дни, статус active."""
        now = now or timezone.now()
        start, end = cls.compute_window(subscription, now, renewal)

        extra = cls.bonus_days(subscription, promocode)
        if extra:
            end += timedelta(days=extra)

        logger.info(
            f"Subscription {subscription.id}: renewal={renewal}, "
            f"end_date {subscription.end_date} -> {end}, bonus_days={extra}"
        )

        subscription.start_date = start
        subscription.end_date = end
        # Активируем и после истечения срока
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.save(update_fields=["start_date", "end_date", "status", "updated_at"])

        return ActivationResult(renewal=renewal, start_date=start, end_date=end, bonus_days=extra)

    @staticmethod
    def cancel(subscription: Subscription) -> Subscription:
        """Отменить подписку. Флаги выданных доступов не меняются."""
        subscription.status = SubscriptionStatus.CANCELLED
        subscription.save(update_fields=["status", "updated_at"])
        return subscription
