# tests/payment/test_confirm_payment.py
import json

import pytest

from payments.models import PaymentStatus
from subscriptions.models import SubscriptionLog, SubscriptionStatus
from tests.payment.helpers import CONFIRM_URL
from tests.scenario_cov import covers

PAYMENT_ID = "5626591438"


def gateway_record(status="finished", invoice_id=4400, order_id="ord-1"):
    return {
        "payment_id": int(PAYMENT_ID),
        "invoice_id": invoice_id,
        "order_id": order_id,
        "payment_status": status,
        "price_amount": 10,
        "actually_paid": 10,
        "pay_currency": "usdttrc20",
    }


def confirm(client, **body):
    return client.post(CONFIRM_URL, data=json.dumps(body), content_type="application/json")


@pytest.fixture
def pending(make_user, make_subscription, make_payment):
    sub = make_subscription(make_user())
    payment = make_payment(sub, external_id="4400")
    return sub, payment


@covers("R6.1")
@pytest.mark.django_db
def test_confirm_finished_payment(client, pending, fakes):
    sub, payment = pending
    fakes.gateway[PAYMENT_ID] = gateway_record()

    resp = confirm(client, payment_id=PAYMENT_ID)

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Payment confirmed and subscription activated"}
    payment.refresh_from_db()
    sub.refresh_from_db()
    assert payment.status == PaymentStatus.COMPLETED
    assert payment.provider.payment_id == PAYMENT_ID
    assert sub.status == SubscriptionStatus.ACTIVE
    assert SubscriptionLog.objects.filter(action="payment_manual_confirm").count() == 1
    assert len(fakes.calls) == 3


@covers("R6.1")
@pytest.mark.django_db
def test_confirm_accepts_camel_case_and_query(client, pending, fakes):
    _, payment = pending
    fakes.gateway[PAYMENT_ID] = gateway_record()

    resp = client.get(CONFIRM_URL, {"paymentId": PAYMENT_ID})

    assert resp.status_code == 200
    payment.refresh_from_db()
    assert payment.status == PaymentStatus.COMPLETED


@covers("R6.2")
@pytest.mark.django_db
def test_not_finished_returns_400(client, pending, fakes):
    _, payment = pending
    fakes.gateway[PAYMENT_ID] = gateway_record(status="waiting")

    resp = confirm(client, payment_id=PAYMENT_ID)

    assert resp.status_code == 400
    assert resp.json() == {"error": "Payment not finished", "payment_status": "waiting"}
    payment.refresh_from_db()
    assert payment.status == PaymentStatus.PENDING


@covers("R6.3")
@pytest.mark.django_db
def test_missing_payment_id_returns_400(client):
    resp = confirm(client)
    assert resp.status_code == 400
    assert resp.json() == {"error": "payment_id required"}


@covers("R6.4")
@pytest.mark.django_db
def test_secret_is_required_when_configured(client, settings, pending, fakes):
    settings.NOWPAYMENTS_CONFIRM_SECRET = "s3cret"
    fakes.gateway[PAYMENT_ID] = gateway_record()

    assert confirm(client, payment_id=PAYMENT_ID).status_code == 401
    assert confirm(client, payment_id=PAYMENT_ID, secret="wrong").json() == {"error": "Invalid or missing secret"}

    resp = client.get(CONFIRM_URL, {"payment_id": PAYMENT_ID, "secret": "s3cret"})
    assert resp.status_code == 200


@covers("R6.5")
@pytest.mark.django_db
def test_payment_missing_in_db_returns_404(client, fakes):
    fakes.gateway[PAYMENT_ID] = gateway_record(invoice_id=999, order_id="ord-x")

    resp = confirm(client, payment_id=PAYMENT_ID)

    assert resp.status_code == 404
    assert resp.json() == {
        "error": "Payment not found in DB",
        "payment_id": PAYMENT_ID,
        "invoice_id": "999",
        "order_id": "ord-x",
    }


@covers("R6.6")
@pytest.mark.django_db
def test_already_completed_is_success_without_side_effects(client, pending, fakes):
    _, payment = pending
    payment.status = PaymentStatus.COMPLETED
    payment.save()
    fakes.gateway[PAYMENT_ID] = gateway_record()

    resp = confirm(client, payment_id=PAYMENT_ID)

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert fakes.calls == []
    assert fakes.telegram == []


@covers("R6.8")
@pytest.mark.django_db
def test_refunded_payment_is_not_reactivated(client, pending, fakes):
    sub, payment = pending
    payment.status = PaymentStatus.REFUNDED
    payment.save()
    sub.status = SubscriptionStatus.CANCELLED
    sub.save()
    fakes.gateway[PAYMENT_ID] = gateway_record()

    resp = confirm(client, payment_id=PAYMENT_ID)

    assert resp.status_code == 409
    assert resp.json() == {"error": "Payment already refunded"}
    payment.refresh_from_db()
    sub.refresh_from_db()
    assert payment.status == PaymentStatus.REFUNDED
    assert sub.status == SubscriptionStatus.CANCELLED
    assert fakes.calls == []
