import json
from decimal import Decimal

import pytest

from core.models import User
from subscriptions.models import Subscription, SubscriptionStatus
from payments.models import Payment, PaymentStatus
from payments.access.base import GrantResult
from payments.access.discord import DiscordRoleService
from payments.access.google_drive import GoogleDriveAccessService
from payments.access.notion import NotionAccessService
from payments.nowpayments.api import NowPaymentsAPI
from payments.notifications import TelegramNotificationService
from tests.payment.helpers import WEBHOOK_URL

# подключаем наш плагин
pytest_plugins = ["tests.scenario_cov"]


@pytest.fixture(autouse=True)
def ipn_signature_off(settings):
    # В тестах можно отключать строгую проверку подписи
    settings.NOWPAYMENTS_VERIFY_SIGNATURE = False


class Fakes:
    """Подмена внешних систем: что отправили и что ответить"""

    def __init__(self):
        self.telegram = []          # (chat_id, text)
        self.discord_dm = []        # (discord_id, text)
        self.calls = []             # (system, identifier)
        self.results = {
            "discord": GrantResult.ok(),
            "notion": GrantResult.ok(),
            "google_drive": GrantResult.ok(),
        }
        self.errors = {}            # system -> exception
        self.gateway = {}           # payment_id -> status record

    def grant(self, system, identifier):
        self.calls.append((system, identifier))
        if system in self.errors:
            raise self.errors[system]
        return self.results[system]

    def messages_to(self, chat_id):
        return [text for cid, text in self.telegram if str(cid) == str(chat_id)]


@pytest.fixture(autouse=True)
def fakes(monkeypatch):
    f = Fakes()

    def send_message(self, chat_id, text, parse_mode="HTML"):
        if not chat_id:
            return False
        f.telegram.append((chat_id, text))
        return True

    def get_payment_status(self, payment_id):
        return f.gateway[str(payment_id)]

    monkeypatch.setattr(TelegramNotificationService, "send_message", send_message)
    monkeypatch.setattr(DiscordRoleService, "grant_role", lambda self, discord_id: f.grant("discord", discord_id))
    monkeypatch.setattr(DiscordRoleService, "send_dm",
                        lambda self, discord_id, text: f.discord_dm.append((discord_id, text)) or True)
    monkeypatch.setattr(NotionAccessService, "grant_access",
                        lambda self, email, user_id=None, subscription_id=None: f.grant("notion", email))
    monkeypatch.setattr(GoogleDriveAccessService, "grant_access",
                        lambda self, email, user_id=None, subscription_id=None: f.grant("google_drive", email))
    monkeypatch.setattr(NowPaymentsAPI, "get_payment_status", get_payment_status)
    return f


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(**kwargs):
        counter["n"] += 1
        n = counter["n"]
        defaults = {
            "telegram_id": 700000000 + n,
            "telegram_username": f"user{n}",
            "discord_id": f"90000000000000{n}",
            "email": f"user{n}@example.com",
            "google_drive_email": f"drive{n}@example.com",
        }
        defaults.update(kwargs)
        return User.objects.create(**defaults)

    return _make


@pytest.fixture
def make_subscription(db):
    def _make(user, **kwargs):
        defaults = {"period_months": 1, "amount": Decimal("10.00"), "status": SubscriptionStatus.PENDING}
        defaults.update(kwargs)
        return Subscription.objects.create(user=user, **defaults)

    return _make


@pytest.fixture
def make_payment(db):
    def _make(subscription, **kwargs):
        defaults = {
            "amount": subscription.amount or Decimal("10.00"),
            "currency": "USD",
            "status": PaymentStatus.PENDING,
            "provider_data": {},
        }
        defaults.update(kwargs)
        return Payment.objects.create(subscription=subscription, user=subscription.user, **defaults)

    return _make


@pytest.fixture
def post_ipn(client, django_capture_on_commit_callbacks):
    # тест идёт внутри транзакции: on_commit (уведомления) выполняем явно
    def _post(payload, **headers):
        with django_capture_on_commit_callbacks(execute=True):
            return client.post(
                WEBHOOK_URL,
                data=json.dumps(payload),
                content_type="application/json",
                **headers,
            )

    return _post

