# ================================================================
# nowpayments/api.py
# ================================================================
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional, Union

import requests
from django.conf import settings

from payments.exceptions import GatewayError, InvalidSignature

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-nowpayments-sig"


class NowPaymentsAPI:
    """API для работы с NOWPayments: подпись IPN и статус платежа"""

    def __init__(self, api_key: Optional[str] = None, ipn_secret: Optional[str] = None,
                 api_url: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else getattr(settings, "NOWPAYMENTS_API_KEY", "")
        self.ipn_secret = ipn_secret if ipn_secret is not None else getattr(settings, "NOWPAYMENTS_IPN_SECRET", "")
        self.api_url = (api_url or getattr(settings, "NOWPAYMENTS_API_URL", "https://api.nowpayments.io/v1")).rstrip("/")
        self.timeout = timeout or getattr(settings, "NOWPAYMENTS_HTTP_TIMEOUT", 15)

    # ---------- подпись IPN ----------

    @classmethod
    def _sort_keys(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: cls._sort_keys(value[k]) for k in sorted(value)}
        if isinstance(value, list):
            return [cls._sort_keys(v) for v in value]
        return value

    @classmethod
    def canonicalize(cls, payload: Dict) -> str:
        """
        Каноническая строка для подписи: ключи отсортированы на всех уровнях,
        без пробелов, юникод как есть (так NOWPayments подписывает JSON.stringify).
        """
        return json.dumps(cls._sort_keys(payload), separators=(",", ":"), ensure_ascii=False)

    def sign(self, payload: Dict) -> str:
        return hmac.new(
            self.ipn_secret.encode("utf-8"),
            self.canonicalize(payload).encode("utf-8"),
            hashlib.sha512,
        ).hexdigest()

    def verify_ipn_signature(self, raw_body: Union[bytes, str], signature: Optional[str]) -> bool:
        """Сравниваем без учета регистра; битое тело или пустой секрет -> False."""
        if not self.ipn_secret or not signature:
            return False
        try:
            if isinstance(raw_body, bytes):
                raw_body = raw_body.decode("utf-8")
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, ValueError):
            return False
        if not isinstance(payload, dict):
            return False

        expected = self.sign(payload)
        return hmac.compare_digest(expected.lower(), signature.strip().lower())

    def verify_or_raise(self, raw_body: Union[bytes, str], signature: Optional[str]) -> None:
        if not getattr(settings, "NOWPAYMENTS_VERIFY_SIGNATURE", True):
            logger.warning("IPN signature verification is disabled")
            return

        if not self.ipn_secret:
            logger.error("NOWPAYMENTS_IPN_SECRET is not configured, rejecting IPN")
            raise InvalidSignature("IPN secret is not configured")
        if not signature:
            logger.error(f"IPN without {SIGNATURE_HEADER} header")
            raise InvalidSignature("Missing signature")
        if not self.verify_ipn_signature(raw_body, signature):
            logger.error("Invalid IPN signature from NOWPayments")
            raise InvalidSignature("Invalid signature")

    # ---------- HTTP API ----------

    def get_payment_status(self, payment_id: str) -> Dict:
        """GET /payment/{id}: текущее состояние платежа в шлюзе."""
        url = f"{self.api_url}/payment/{payment_id}"
        try:
            response = requests.get(url, headers={"x-api-key": self.api_key}, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"NOWPayments request failed for payment {payment_id}: {e}")
            raise GatewayError(f"NOWPayments request failed: {e}")

        if response.status_code != 200:
            logger.error(f"NOWPayments API error {response.status_code} for payment {payment_id}: {response.text[:500]}")
            raise GatewayError(f"NOWPayments API error: {response.status_code}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise GatewayError("NOWPayments returned non-JSON response", status_code=response.status_code)

        logger.info(f"NOWPayments payment {payment_id} status: {data.get('payment_status')}")
        return data
