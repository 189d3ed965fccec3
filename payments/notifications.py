# payments/notifications.py
import logging
import requests
from decimal import Decimal
from typing import Optional
from datetime import datetime
from django.conf import settings

logger = logging.getLogger(__name__)


class TelegramNotificationService:
    """Сервис для отправки уведомлений в Telegram (синхронный, для Django)"""

    def __init__(self, bot_token: Optional[str] = None):
        self.bot_token = bot_token if bot_token is not None else getattr(settings, "TELEGRAM_BOT_TOKEN", "")
        self.api_url = f"https://api.telegram.org/bot{self.bot_token}"
        self.timeout = getattr(settings, "TELEGRAM_HTTP_TIMEOUT", 10)

    def send_message(self, chat_id, text: str, parse_mode: str = "HTML") -> bool:
        """Отправка сообщения пользователю"""
        if not chat_id:
            return False
        if not self.bot_token:
            logger.warning(f"TELEGRAM_BOT_TOKEN is not set, message to {chat_id} dropped")
            return False
        try:
            response = requests.post(
                f"{self.api_url}/sendMessage",
                json={
                    "chat_id": chat_id,
                    "text": text,
                    "parse_mode": parse_mode,
                    "disable_web_page_preview": True,
                },
                timeout=self.timeout
            )
            response.raise_for_status()
            logger.info(f"Telegram notification sent to user {chat_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to send Telegram notification to {chat_id}: {e}")
            return False

    def broadcast_to_operators(self, text: str) -> int:
        """Рассылка в чаты операторов (не больше трёх). Возвращает число доставленных."""
        chat_ids = list(getattr(settings, "TELEGRAM_ADMIN_CHAT_IDS", []))[:3]
        if not chat_ids:
            logger.info("No operator chats configured, broadcast skipped")
            return 0
        return sum(1 for chat_id in chat_ids if self.send_message(chat_id, text))

    # ---------- сообщения пользователю ----------

    def notify_payment_success(
        self,
        chat_id,
        expires_at: datetime,
        amount,
        currency: str,
        discord: bool = False,
        notion: bool = False,
        google_drive: bool = False,
    ) -> bool:
        """Уведомление об успешной оплате"""
        access = ""
        if discord:
            access += "\n✅ Роль в Discord выдана"
        if notion:
            access += "\n✅ Доступ к Notion открыт"
        if google_drive:
            access += "\n✅ Доступ к Google Drive открыт"

        invite = getattr(settings, "DISCORD_INVITE_URL", "")
        invite_txt = f'\n\n🎮 <a href="{invite}">Перейти в Discord</a>' if invite else ""

        text = (
            f"🎉 <b>Оплата прошла успешно!</b>\n\n"
            f"Ваша подписка активирована до <b>{expires_at.strftime('%d.%m.%Y')}</b>.\n\n"
            f"Сумма: <b>{amount} {(currency or '').upper()}</b>{access}{invite_txt}"
        )
        return self.send_message(chat_id, text)

    def notify_payment_failed(self, chat_id, error_message: str) -> bool:
        text = (
            f"❌ <b>{error_message}</b>\n\n"
            f"Вы можете попробовать оплатить снова через бота.\n\n"
            f"Если возникли проблемы, обратитесь в поддержку."
        )
        return self.send_message(chat_id, text)

    def notify_refund(self, chat_id) -> bool:
        return self.send_message(
            chat_id, "💰 <b>Возврат средств</b>\n\nВаш платёж был возвращён. Подписка отменена."
        )

    def notify_partial_payment(self, chat_id, actually_paid, pay_currency: str,
                               remaining: Optional[Decimal]) -> bool:
        """Частичная оплата: сколько получено и сколько осталось доплатить"""
        remaining_txt = f"\nОсталось: <b>{remaining:.2f} USD</b>" if remaining is not None else ""
        text = (
            f"⚠️ <b>Частичная оплата</b>\n\n"
            f"Получено: <b>{actually_paid} {(pay_currency or '').upper()}</b>{remaining_txt}\n\n"
            f"Пожалуйста, доплатите оставшуюся сумму на тот же адрес."
        )
        return self.send_message(chat_id, text)

    def notify_confirming(self, chat_id) -> bool:
        return self.send_message(
            chat_id,
            "⏳ <b>Платёж в обработке</b>\n\n"
            "Ваш платёж получен и находится на подтверждении в блокчейне. Это займёт несколько минут."
        )

    # ---------- сообщения операторам ----------

    @staticmethod
    def _user_block(user) -> str:
        return (
            f"👤 {user.display_name}\n"
            f"Telegram ID: <code>{user.telegram_id or '-'}</code>\n"
            f"Discord: <code>{user.discord_id or '-'}</code> {user.discord_username or ''}\n"
            f"Email (Notion): {user.email or '-'}\n"
            f"Email (Google Drive): {user.google_drive_email or '-'}"
        )

    def notify_operators_purchase(self, user, subscription, payment, renewal: bool, outcome) -> int:
        title = "🔄 <b>Продление подписки</b>" if renewal else "🆕 <b>Новая подписка</b>"
        errors = "".join(f"\n⚠️ {system}: {reason}" for system, reason in outcome.errors.items())
        text = (
            f"{title}\n\n"
            f"{self._user_block(user)}\n\n"
            f"Подписка #{subscription.id}: {subscription.period_months} мес., "
            f"до {subscription.end_date.strftime('%d.%m.%Y')}\n"
            f"Платёж #{payment.id}: {payment.amount} {payment.currency}\n"
            f"Discord: {'✅' if outcome.discord else '❌'} | "
            f"Notion: {'✅' if outcome.notion else '❌'} | "
            f"Google Drive: {'✅' if outcome.google_drive else '❌'}"
            f"{errors}"
        )
        return self.broadcast_to_operators(text)

    def notify_operators_refund(self, user, subscription, payment) -> int:
        """Возврат: доступы не отзываются автоматически, оператору нужны все идентификаторы"""
        text = (
            f"💰 <b>Возврат платежа</b>\n\n"
            f"{self._user_block(user)}\n\n"
            f"Подписка #{subscription.id} отменена, платёж #{payment.id} ({payment.amount} {payment.currency}).\n"
            f"Отзовите доступы вручную: Discord роль, Notion, Google Drive."
        )
        return self.broadcast_to_operators(text)
