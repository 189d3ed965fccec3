# tests/payment/test_payment_admin.py
import pytest
from django.contrib import admin, messages
from django.contrib.messages.storage.fallback import FallbackStorage

from payments.admin import PaymentAdmin
from payments.models import Payment, PaymentStatus
from subscriptions.models import SubscriptionLog, SubscriptionStatus
from tests.scenario_cov import covers

PAYMENT_ID = "5626591438"


@pytest.fixture
def admin_request(rf, admin_user):
    request = rf.post("/admin/payments/payment/")
    request.user = admin_user
    request.session = {}
    request._messages = FallbackStorage(request)
    return request


def run_action(request, *payments):
    model_admin = PaymentAdmin(Payment, admin.site)
    queryset = Payment.objects.filter(pk__in=[p.pk for p in payments])
    model_admin.confirm_via_gateway(request, queryset)
    return [(m.level, m.message) for m in request._messages]


def gateway_record(status="finished"):
    return {"payment_id": int(PAYMENT_ID), "invoice_id": 4400, "payment_status": status, "actually_paid": 10}


@covers("R6.7")
@pytest.mark.django_db
def test_admin_confirms_finished_payment(admin_request, make_user, make_subscription, make_payment, fakes):
    """
    Платёж завис в pending, IPN не дошёл. Админ жмёт «Проверить в NOWPayments»:
    шлюз отвечает finished -> платёж completed, подписка активна.
    """
    sub = make_subscription(make_user())
    payment = make_payment(sub, external_id="4400", provider_data={"payment_id": PAYMENT_ID})
    fakes.gateway[PAYMENT_ID] = gateway_record()

    msgs = run_action(admin_request, payment)

    payment.refresh_from_db()
    sub.refresh_from_db()
    assert payment.status == PaymentStatus.COMPLETED
    assert sub.status == SubscriptionStatus.ACTIVE
    assert SubscriptionLog.objects.filter(action="payment_manual_confirm").count() == 1
    assert msgs == [(messages.SUCCESS, "Подтверждено платежей: 1")]


@covers("R6.7")
@pytest.mark.django_db
def test_admin_warns_without_gateway_payment_id(admin_request, make_user, make_subscription, make_payment):
    payment = make_payment(make_subscription(make_user()), external_id="4400")

    msgs = run_action(admin_request, payment)

    payment.refresh_from_db()
    assert payment.status == PaymentStatus.PENDING
    assert (messages.WARNING, f"Платёж #{payment.id}: нет payment_id шлюза") in msgs
    assert (messages.SUCCESS, "Подтверждено платежей: 0") in msgs


@covers("R6.7")
@pytest.mark.django_db
def test_admin_reports_not_finished_status(admin_request, make_user, make_subscription, make_payment, fakes):
    payment = make_payment(make_subscription(make_user()), provider_data={"payment_id": PAYMENT_ID})
    fakes.gateway[PAYMENT_ID] = gateway_record(status="waiting")

    msgs = run_action(admin_request, payment)

    payment.refresh_from_db()
    assert payment.status == PaymentStatus.PENDING
    assert (messages.ERROR, f"Платёж #{payment.id}: Payment not finished: waiting") in msgs
    assert fakes.calls == []
