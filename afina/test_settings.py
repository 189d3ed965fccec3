# ================================================================
# afina/test_settings.py
# ================================================================
from .settings import *  # noqa: F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

# внешние сервисы в тестах подменяются через monkeypatch
TELEGRAM_BOT_TOKEN = 'test-token'
TELEGRAM_ADMIN_CHAT_IDS = ['1001', '1002']
NOWPAYMENTS_IPN_SECRET = 'test-ipn-secret'
NOWPAYMENTS_CONFIRM_SECRET = ''
ACCESS_GRANT_TIMEOUT_SECONDS = 2
