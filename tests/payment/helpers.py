# tests/payment/helpers.py
import hashlib
import hmac
import json

WEBHOOK_URL = "/api/payments/nowpayments/webhook/"
CONFIRM_URL = "/api/payments/nowpayments/confirm-payment/"

OPERATOR_CHATS = ("1001", "1002")


def ipn(status, payment_id="5626591438", invoice_id="inv1", **extra):
    """IPN в том виде, в каком его присылает NOWPayments"""
    payload = {
        "payment_id": payment_id,
        "invoice_id": invoice_id,
        "payment_status": status,
        "pay_address": "TXYZ",
        "price_amount": 10,
        "price_currency": "usd",
        "pay_amount": 10.2,
        "actually_paid": 10,
        "pay_currency": "usdttrc20",
    }
    payload.update(extra)
    return payload


def sign(payload, secret="test-ipn-secret"):
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hmac.new(secret.encode(), body.encode(), hashlib.sha512).hexdigest()
