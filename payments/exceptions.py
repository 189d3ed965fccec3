# payments/exceptions.py


class PaymentProcessingError(Exception):
    """Базовая ошибка обработки платёжных событий"""


class InvalidSignature(PaymentProcessingError):
    """Подпись IPN не совпала или не может быть проверена"""


class PaymentNotFound(PaymentProcessingError):
    """Событие не удалось сопоставить ни с одним платежом"""

    def __init__(self, lookup):
        self.lookup = lookup
        super().__init__(f"Payment not found: {lookup}")


class PaymentAlreadyCompleted(PaymentProcessingError):
    """Повторная доставка finished для уже завершённого платежа"""

    def __init__(self, payment_id):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} already completed")


class UnknownStatus(PaymentProcessingError):
    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Unknown payment status: {status}")


class AccessGrantFailure(PaymentProcessingError):
    """Не удалось выдать доступ в одной из внешних систем"""

    def __init__(self, system: str, reason: str):
        self.system = system
        self.reason = reason
        super().__init__(f"{system}: {reason}")


class SchemaDriftOnUpdate(PaymentProcessingError):
    """Схема БД не соответствует моделям (миграции не применены)"""


class GatewayError(PaymentProcessingError):
    """Ошибка HTTP API NOWPayments"""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class PaymentNotFinished(PaymentProcessingError):
    def __init__(self, payment_status: str):
        self.payment_status = payment_status
        super().__init__(f"Payment not finished: {payment_status}")


class PaymentNotFoundInStore(PaymentProcessingError):
    """Ручное подтверждение: платёж есть в шлюзе, но не найден в БД"""

    def __init__(self, payment_id: str, invoice_id: str = "", order_id: str = ""):
        self.payment_id = payment_id
        self.invoice_id = invoice_id
        self.order_id = order_id
        super().__init__(
            f"Payment not found in DB: payment_id={payment_id}, invoice_id={invoice_id}, order_id={order_id}"
        )


class PaymentAlreadyRefunded(PaymentProcessingError):
    """Событие по платежу, который уже возвращён: состояние не меняем"""

    def __init__(self, payment_id):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} already refunded")
