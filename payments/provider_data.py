# payments/provider_data.py
"""
Типизированное представление Payment.provider_data.

В JSON-поле исторически лежат данные шлюза под разными ключами
(payment_id / paymentId, числа и строки вперемешку). Здесь они
разбираются один раз и записываются обратно в каноническом виде.
"""
from dataclasses import dataclass, field, asdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

PROVIDER_DATA_VERSION = 1

# канонический ключ -> допустимые варианты написания
KEY_ALIASES = {
    "payment_id": ("payment_id", "paymentId"),
    "invoice_id": ("invoice_id", "invoiceId"),
    "order_id": ("order_id", "orderId"),
    "payment_status": ("payment_status", "paymentStatus"),
    "actually_paid": ("actually_paid", "actuallyPaid"),
    "pay_currency": ("pay_currency", "payCurrency"),
    "invoice_url": ("invoice_url", "invoiceUrl"),
    "period_months": ("period_months", "periodMonths"),
}

_ALL_ALIASES = {alias for aliases in KEY_ALIASES.values() for alias in aliases}


def normalize_id(value) -> Optional[str]:
    """Идентификатор шлюза как строка; пустое -> None. 5626591438 и "5626591438" равны."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _pick(raw: Dict[str, Any], key: str):
    for alias in KEY_ALIASES[key]:
        value = raw.get(alias)
        if value not in (None, ""):
            return value
    return None


def _to_decimal(value) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


@dataclass
class ProviderData:
    payment_id: Optional[str] = None
    invoice_id: Optional[str] = None
    order_id: Optional[str] = None
    payment_status: Optional[str] = None
    actually_paid: Optional[Decimal] = None
    pay_currency: Optional[str] = None
    invoice_url: Optional[str] = None
    period_months: Optional[int] = None
    # ключи, которые мы не разбираем, сохраняются как есть
    extra: Dict[str, Any] = field(default_factory=dict)
    v: int = PROVIDER_DATA_VERSION

    @classmethod
    def from_raw(cls, raw) -> "ProviderData":
        if not isinstance(raw, dict):
            return cls()

        status = _pick(raw, "payment_status")
        period = _pick(raw, "period_months")
        try:
            period = int(period) if period is not None else None
        except (TypeError, ValueError):
            period = None

        return cls(
            payment_id=normalize_id(_pick(raw, "payment_id")),
            invoice_id=normalize_id(_pick(raw, "invoice_id")),
            order_id=normalize_id(_pick(raw, "order_id")),
            payment_status=str(status).lower() if status is not None else None,
            actually_paid=_to_decimal(_pick(raw, "actually_paid")),
            pay_currency=_pick(raw, "pay_currency"),
            invoice_url=_pick(raw, "invoice_url"),
            period_months=period,
            extra={k: v for k, v in raw.items() if k not in _ALL_ALIASES and k != "v"},
        )

    def to_raw(self) -> Dict[str, Any]:
        data = asdict(self)
        extra = data.pop("extra")
        out = {k: v for k, v in data.items() if v is not None}
        if self.actually_paid is not None:
            out["actually_paid"] = str(self.actually_paid)
        return {**extra, **out}

    def merge_event(self, event: Dict[str, Any]) -> "ProviderData":
        """Обновить из события шлюза только пришедшие поля."""
        incoming = ProviderData.from_raw(event)
        for name in ("payment_id", "invoice_id", "order_id", "payment_status",
                     "actually_paid", "pay_currency"):
            value = getattr(incoming, name)
            if value is not None:
                setattr(self, name, value)
        return self
