# payments/resolver.py
"""
Поиск платежа по идентификаторам из события шлюза.

Порядок поиска является бизнес-правилом, не склеивать в один запрос:
  1) external_id или provider_data.invoice_id  (invoice_id)
  2) provider_data.order_id                    (order_id)
  3) provider_data.payment_id или external_id  (payment_id; платежи,
     созданные до того, как стал известен invoice_id)
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from django.db.models import Q

from .models import Payment
from .provider_data import KEY_ALIASES, ProviderData, normalize_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentLookup:
    invoice_id: Optional[str] = None
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    external_id: Optional[str] = None

    @classmethod
    def from_ipn(cls, payload: Dict) -> "PaymentLookup":
        data = ProviderData.from_raw(payload)
        return cls(invoice_id=data.invoice_id, order_id=data.order_id, payment_id=data.payment_id)

    def is_empty(self) -> bool:
        return not (self.invoice_id or self.order_id or self.payment_id or self.external_id)


@dataclass
class ResolvedPayment:
    payment: Payment
    provider: ProviderData
    matched_by: str

    @property
    def subscription(self):
        return self.payment.subscription

    @property
    def user(self):
        return self.payment.user


def _json_key_q(key: str, value: str) -> Q:
    """provider_data.<key> == value; ключ в любом написании, значение строкой или числом."""
    variants = [value]
    if value.isdigit():
        variants.append(int(value))

    q = Q()
    for alias in KEY_ALIASES[key]:
        for v in variants:
            q |= Q(**{f"provider_data__{alias}": v})
    return q


class PaymentResolver:

    def __init__(self, queryset=None):
        self.queryset = queryset

    def _base(self):
        qs = self.queryset if self.queryset is not None else Payment.objects.all()
        return qs.select_related("subscription", "user", "subscription__user").order_by("-created_at", "-id")

    def _first(self, q: Q) -> Optional[Payment]:
        return self._base().filter(q).first()

    def resolve(self, lookup: PaymentLookup) -> Optional[ResolvedPayment]:
        if lookup.is_empty():
            logger.warning("Payment lookup without identifiers")
            return None

        invoice_id = normalize_id(lookup.invoice_id) or normalize_id(lookup.external_id)
        order_id = normalize_id(lookup.order_id)
        payment_id = normalize_id(lookup.payment_id)

        steps = []
        if invoice_id or lookup.external_id:
            q = Q()
            if lookup.external_id:
                q |= Q(external_id=normalize_id(lookup.external_id))
            if invoice_id:
                q |= Q(external_id=invoice_id) | _json_key_q("invoice_id", invoice_id)
            steps.append(("invoice_id", q))
        if order_id:
            steps.append(("order_id", _json_key_q("order_id", order_id)))
        if payment_id:
            steps.append(("payment_id", _json_key_q("payment_id", payment_id) | Q(external_id=payment_id)))

        for matched_by, q in steps:
            payment = self._first(q)
            if payment is not None:
                logger.info(f"Payment {payment.id} resolved by {matched_by}")
                return ResolvedPayment(payment=payment, provider=payment.provider, matched_by=matched_by)

        logger.warning(
            f"Payment not found: invoice_id={invoice_id}, order_id={order_id}, payment_id={payment_id}"
        )
        return None
