# tests/payment/test_e2e.py
import pytest
from dateutil.relativedelta import relativedelta
from django.utils import timezone

from payments.models import PaymentStatus
from subscriptions.models import SubscriptionStatus
from tests.payment.helpers import OPERATOR_CHATS
from tests.scenario_cov import covers


@covers("R7.1")
@pytest.mark.django_db
def test_finished_invoice_activates_and_notifies(post_ipn, make_user, make_subscription, make_payment, fakes):
    user = make_user()
    sub = make_subscription(user, period_months=1)
    payment = make_payment(sub, external_id="inv1")

    before = timezone.now()
    resp = post_ipn({"payment_status": "Finished", "invoice_id": "inv1", "actually_paid": 100, "pay_currency": "usdt"})
    after = timezone.now()

    assert resp.status_code == 200
    assert resp.json() == {"received": True, "status": "finished"}

    payment.refresh_from_db()
    sub.refresh_from_db()
    assert payment.status == PaymentStatus.COMPLETED
    assert sub.status == SubscriptionStatus.ACTIVE
    assert before + relativedelta(months=1) <= sub.end_date <= after + relativedelta(months=1)

    [user_msg] = fakes.messages_to(user.telegram_id)
    assert "Оплата прошла успешно" in user_msg
    assert "100 USDT" in user_msg
    for chat in OPERATOR_CHATS:
        [operator_msg] = fakes.messages_to(chat)
        assert "Новая подписка" in operator_msg


@covers("R7.2")
@pytest.mark.django_db
def test_expired_invoice_fails_payment_only(post_ipn, make_user, make_subscription, make_payment, fakes):
    user = make_user()
    sub = make_subscription(user)
    payment = make_payment(sub, external_id="inv2")

    resp = post_ipn({"payment_status": "expired", "invoice_id": "inv2"})

    assert resp.status_code == 200
    payment.refresh_from_db()
    sub.refresh_from_db()
    assert payment.status == PaymentStatus.FAILED
    assert payment.error_message == "Время оплаты истекло"
    assert sub.status == SubscriptionStatus.PENDING
    assert sub.end_date is None
    assert len(fakes.messages_to(user.telegram_id)) == 1
    for chat in OPERATOR_CHATS:
        assert fakes.messages_to(chat) == []
    assert fakes.calls == []
