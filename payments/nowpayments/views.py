# payments/nowpayments/views.py

import hmac
import json
import logging

from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from payments.exceptions import (
    InvalidSignature,
    PaymentAlreadyRefunded,
    PaymentNotFinished,
    PaymentNotFoundInStore,
)
from .api import NowPaymentsAPI, SIGNATURE_HEADER
from .services import NowPaymentsService

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name="dispatch")
class WebhookView(View):
    """API: обработка IPN от NOWPayments."""

    def get(self, request):
        return JsonResponse({
            "status": "ok",
            "message": "NOWPayments webhook endpoint",
            "timestamp": timezone.now().isoformat(),
        })

    def post(self, request):
        raw_body = request.body
        signature = request.headers.get(SIGNATURE_HEADER)

        try:
            NowPaymentsAPI().verify_or_raise(raw_body, signature)
        except InvalidSignature:
            return JsonResponse({"error": "Invalid signature"}, status=401)

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.error("Invalid JSON in NOWPayments webhook")
            return JsonResponse({"error": "Invalid JSON"}, status=400)
        if not isinstance(payload, dict):
            return JsonResponse({"error": "Invalid JSON"}, status=400)

        logger.info(f"Webhook received from NOWPayments: {payload}")

        try:
            result = NowPaymentsService().handle_ipn(payload)
        except Exception as e:
            # 5xx: шлюз повторит доставку
            logger.error(f"Webhook processing error: {e}", exc_info=True)
            return JsonResponse({"error": "Webhook processing failed"}, status=500)

        logger.info(f"Webhook processed: {result}")
        return JsonResponse(result, status=200)


@method_decorator(csrf_exempt, name="dispatch")
class ConfirmPaymentView(View):
    """
    Ручное подтверждение платежа, если IPN не дошёл.

    POST {"payment_id": "...", "secret": "..."} или
    GET ?payment_id=...&secret=...
    Если NOWPAYMENTS_CONFIRM_SECRET пуст, endpoint открыт.
    """

    @staticmethod
    def _secret_ok(provided) -> bool:
        expected = getattr(settings, "NOWPAYMENTS_CONFIRM_SECRET", "")
        if not expected:
            return True
        if not provided:
            return False
        return hmac.compare_digest(str(provided), expected)

    def get(self, request):
        return self._confirm(request.GET.get("payment_id") or request.GET.get("paymentId"),
                             request.GET.get("secret"))

    def post(self, request):
        try:
            body = json.loads(request.body.decode("utf-8")) if request.body else {}
        except (UnicodeDecodeError, json.JSONDecodeError):
            body = {}
        if not isinstance(body, dict):
            body = {}

        secret = request.GET.get("secret")
        if not self._secret_ok(secret):
            secret = body.get("secret")

        payment_id = body.get("payment_id") or body.get("paymentId") or request.GET.get("payment_id")
        return self._confirm(payment_id, secret)

    def _confirm(self, payment_id, secret):
        if not self._secret_ok(secret):
            logger.warning("Manual confirm rejected: invalid or missing secret")
            return JsonResponse({"error": "Invalid or missing secret"}, status=401)

        if payment_id in (None, ""):
            return JsonResponse({"error": "payment_id required"}, status=400)

        try:
            result = NowPaymentsService().confirm_payment(str(payment_id))
        except PaymentNotFinished as e:
            return JsonResponse({"error": "Payment not finished", "payment_status": e.payment_status}, status=400)
        except PaymentNotFoundInStore as e:
            logger.warning(str(e))
            return JsonResponse({
                "error": "Payment not found in DB",
                "payment_id": e.payment_id,
                "invoice_id": e.invoice_id,
                "order_id": e.order_id,
            }, status=404)
        except PaymentAlreadyRefunded as e:
            logger.warning(str(e))
            return JsonResponse({"error": "Payment already refunded"}, status=409)
        except Exception as e:
            logger.error(f"Manual confirm failed for payment {payment_id}: {e}", exc_info=True)
            return JsonResponse({"error": str(e) or "Failed to confirm payment"}, status=500)

        logger.info(f"Manual confirm for payment {payment_id}: {result}")
        return JsonResponse(result, status=200)
