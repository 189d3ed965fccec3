# ================================================================
# nowpayments/services.py
# ================================================================
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from django.db import transaction

from subscriptions.models import Subscription, SubscriptionLog
from subscriptions.services import SubscriptionService
from payments.access.orchestrator import AccessGrantOrchestrator
from payments.exceptions import (
    PaymentAlreadyCompleted,
    PaymentAlreadyRefunded,
    PaymentNotFinished,
    PaymentNotFound,
    PaymentNotFoundInStore,
    UnknownStatus,
)
from payments.models import Payment, PaymentStatus
from payments.notifications import TelegramNotificationService
from payments.provider_data import ProviderData, normalize_id
from payments.resolver import PaymentLookup, PaymentResolver
from .api import NowPaymentsAPI

logger = logging.getLogger(__name__)


class IPNStatus:
    WAITING = "waiting"
    CONFIRMING = "confirming"
    CONFIRMED = "confirmed"
    SENDING = "sending"
    PARTIALLY_PAID = "partially_paid"
    FINISHED = "finished"
    FAILED = "failed"
    REFUNDED = "refunded"
    EXPIRED = "expired"

    IN_PROGRESS = (WAITING, CONFIRMING, CONFIRMED, SENDING)


FAILURE_MESSAGES = {
    IPNStatus.EXPIRED: "Время оплаты истекло",
    IPNStatus.FAILED: "Платёж не был завершён",
}


def _decimal(value) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


class NowPaymentsService:
    """Сервис NOWPayments: обработка IPN, ручное подтверждение, продление подписки, выдача доступов."""

    def __init__(self, api: Optional[NowPaymentsAPI] = None,
                 resolver: Optional[PaymentResolver] = None,
                 access: Optional[AccessGrantOrchestrator] = None,
                 notifier: Optional[TelegramNotificationService] = None):
        self.api = api or NowPaymentsAPI()
        self.resolver = resolver or PaymentResolver()
        self.access = access or AccessGrantOrchestrator()
        self.notifier = notifier or TelegramNotificationService()

    # ---------- IPN ----------

    def handle_ipn(self, payload: Dict) -> Dict:
        """
        Обработка одного IPN. Вся работа по событию идёт в одной транзакции;
        строка платежа блокируется и перечитывается перед проверкой статуса.
        """
        status = str(payload.get("payment_status") or "").strip().lower()
        lookup = PaymentLookup.from_ipn(payload)
        logger.info(f"IPN received: status={status}, lookup={lookup}")

        try:
            with transaction.atomic():
                self._process(payload, status, lookup)
        except PaymentNotFound:
            # 200, иначе шлюз будет бесконечно повторять событие
            return {"received": True, "status": "payment_not_found"}

        return {"received": True, "status": status}

    def _lock(self, payment_pk: int):
        payment = Payment.objects.select_for_update().get(pk=payment_pk)
        subscription = Subscription.objects.select_for_update().select_related("user").get(pk=payment.subscription_id)
        return payment, subscription

    def _process(self, payload: Dict, status: str, lookup: PaymentLookup) -> None:
        resolved = self.resolver.resolve(lookup)
        if resolved is None:
            raise PaymentNotFound(lookup)

        payment, subscription = self._lock(resolved.payment.pk)
        user = subscription.user
        renewal = SubscriptionService.is_renewal(subscription)

        SubscriptionLog.write(
            "nowpayments_ipn", user=user, subscription=subscription,
            payment=payment.id, payment_status=status, matched_by=resolved.matched_by, payload=payload,
        )

        data = payment.provider.merge_event(payload)
        data.payment_status = status
        payment.set_provider(data)
        payment.save(update_fields=["provider_data", "updated_at"])

        try:
            self._dispatch(status, payment, subscription, data, payload, renewal)
        except PaymentAlreadyCompleted as e:
            logger.info(str(e))
        except PaymentAlreadyRefunded as e:
            logger.warning(f"{e}, ignoring '{status}' event")
        except UnknownStatus as e:
            logger.warning(f"{e} (payment {payment.id})")

    def _dispatch(self, status: str, payment: Payment, subscription: Subscription,
                  data: ProviderData, payload: Dict, renewal: bool) -> None:
        if status == IPNStatus.FINISHED:
            self._handle_success(payment, subscription, data, renewal)
        elif status in FAILURE_MESSAGES:
            self._handle_failure(payment, subscription, data, status)
        elif status == IPNStatus.REFUNDED:
            self._handle_refund(payment, subscription, data)
        elif status == IPNStatus.PARTIALLY_PAID:
            self._handle_partial(payment, subscription, data, payload)
        elif status in IPNStatus.IN_PROGRESS:
            if status == IPNStatus.CONFIRMING:
                self._notify(self.notifier.notify_confirming, subscription.user.telegram_id)
        else:
            raise UnknownStatus(status)

    @staticmethod
    def _notify(send, *args, **kwargs) -> None:
        # сообщения уходят только после фиксации транзакции события
        transaction.on_commit(lambda: send(*args, **kwargs))

    # ---------- обработчики статусов ----------

    def _handle_success(self, payment: Payment, subscription: Subscription,
                        data: ProviderData, renewal: bool, action: str = "payment_success") -> None:
        if payment.is_completed():
            raise PaymentAlreadyCompleted(payment.id)
        if payment.is_refunded():
            raise PaymentAlreadyRefunded(payment.id)

        user = subscription.user
        payment.mark_as_paid()
        payment.save(update_fields=["status", "paid_at", "error_message", "updated_at"])

        activation = SubscriptionService.activate(subscription, renewal=renewal, promocode=payment.promocode)

        outcome = self.access.grant_all(user, subscription, renewal)
        self.access.persist(subscription, outcome)

        SubscriptionLog.write(
            action, user=user, subscription=subscription,
            payment_id=data.payment_id,
            actually_paid=data.actually_paid,
            pay_currency=data.pay_currency,
            renewal=renewal,
            bonus_days=activation.bonus_days,
            end_date=activation.end_date,
            **outcome.as_details(),
        )
        logger.info(
            f"Payment {payment.id} completed: subscription {subscription.id} "
            f"{'renewed' if renewal else 'activated'} until {activation.end_date}"
        )

        self._notify(
            self.notifier.notify_payment_success,
            user.telegram_id,
            expires_at=activation.end_date,
            amount=data.actually_paid if data.actually_paid is not None else payment.amount,
            currency=data.pay_currency or payment.currency,
            discord=outcome.discord,
            notion=outcome.notion,
            google_drive=outcome.google_drive,
        )
        self._notify(self.notifier.notify_operators_purchase, user, subscription, payment, renewal, outcome)

    def _handle_failure(self, payment: Payment, subscription: Subscription,
                        data: ProviderData, status: str) -> None:
        if payment.is_completed():
            logger.warning(f"Payment {payment.id} is completed, ignoring '{status}' event")
            return
        if payment.is_refunded():
            raise PaymentAlreadyRefunded(payment.id)

        error_message = FAILURE_MESSAGES[status]
        payment.status = PaymentStatus.FAILED
        payment.error_message = error_message
        payment.save(update_fields=["status", "error_message", "updated_at"])

        SubscriptionLog.write(
            "payment_failed", user=subscription.user, subscription=subscription,
            payment_id=data.payment_id, payment_status=status, error_message=error_message,
        )
        self._notify(self.notifier.notify_payment_failed, subscription.user.telegram_id, error_message)

    def _handle_refund(self, payment: Payment, subscription: Subscription, data: ProviderData) -> None:
        if payment.is_refunded():
            raise PaymentAlreadyRefunded(payment.id)

        payment.status = PaymentStatus.REFUNDED
        payment.save(update_fields=["status", "updated_at"])

        # флаги доступов не трогаем: отзыв делает оператор
        SubscriptionService.cancel(subscription)

        SubscriptionLog.write(
            "payment_refunded", user=subscription.user, subscription=subscription,
            payment_id=data.payment_id,
        )
        logger.warning(f"Payment {payment.id} refunded, subscription {subscription.id} cancelled")

        self._notify(self.notifier.notify_refund, subscription.user.telegram_id)
        self._notify(self.notifier.notify_operators_refund, subscription.user, subscription, payment)

    def _handle_partial(self, payment: Payment, subscription: Subscription,
                        data: ProviderData, payload: Dict) -> None:
        price_amount = _decimal(payload.get("price_amount"))
        if price_amount is None:
            price_amount = payment.amount
        remaining = None
        if price_amount is not None and data.actually_paid is not None:
            remaining = (price_amount - data.actually_paid).quantize(Decimal("0.01"))

        SubscriptionLog.write(
            "payment_partial", user=subscription.user, subscription=subscription,
            payment_id=data.payment_id, actually_paid=data.actually_paid, price_amount=price_amount,
        )
        self._notify(
            self.notifier.notify_partial_payment,
            subscription.user.telegram_id, data.actually_paid, data.pay_currency, remaining
        )

    # ---------- ручное подтверждение ----------

    def confirm_payment(self, payment_id: str) -> Dict:
        """
        Ручное подтверждение, когда IPN не дошёл: статус берём из API шлюза,
        дальше тот же путь, что и для finished.
        """
        payment_id = normalize_id(payment_id)
        status_record = self.api.get_payment_status(payment_id)

        gateway_status = str(status_record.get("payment_status") or "").lower()
        if gateway_status != IPNStatus.FINISHED:
            raise PaymentNotFinished(status_record.get("payment_status"))

        gateway = ProviderData.from_raw(status_record)
        lookup = PaymentLookup(
            invoice_id=gateway.invoice_id,
            order_id=gateway.order_id,
            payment_id=gateway.payment_id or payment_id,
        )
        resolved = self.resolver.resolve(lookup)
        if resolved is None:
            raise PaymentNotFoundInStore(payment_id, gateway.invoice_id or "", gateway.order_id or "")

        ipn_like = {**status_record, "payment_status": IPNStatus.FINISHED,
                    "payment_id": gateway.payment_id or payment_id}

        with transaction.atomic():
            payment, subscription = self._lock(resolved.payment.pk)
            if payment.is_completed():
                logger.info(f"Manual confirm: payment {payment.id} already completed")
                return {"success": True, "message": "Payment already completed"}
            if payment.is_refunded():
                raise PaymentAlreadyRefunded(payment.id)

            renewal = SubscriptionService.is_renewal(subscription)
            data = payment.provider.merge_event(ipn_like)
            payment.set_provider(data)
            payment.save(update_fields=["provider_data", "updated_at"])

            self._handle_success(payment, subscription, data, renewal, action="payment_manual_confirm")

        return {"success": True, "message": "Payment confirmed and subscription activated"}
