# payments/access/discord.py
import logging
from typing import Optional

import requests
from django.conf import settings

from .base import GrantResult

logger = logging.getLogger(__name__)

DISCORD_API_URL = "https://discord.com/api/v10"


class DiscordRoleService:
    """Выдача роли подписчика через Discord REST API (токен бота)"""

    def __init__(self, bot_token: Optional[str] = None, guild_id: Optional[str] = None,
                 role_id: Optional[str] = None, timeout: Optional[float] = None):
        self.bot_token = bot_token if bot_token is not None else getattr(settings, "DISCORD_BOT_TOKEN", "")
        self.guild_id = guild_id if guild_id is not None else getattr(settings, "DISCORD_GUILD_ID", "")
        self.role_id = role_id if role_id is not None else getattr(settings, "DISCORD_SUBSCRIBER_ROLE_ID", "")
        self.timeout = timeout or getattr(settings, "ACCESS_GRANT_TIMEOUT_SECONDS", 15)

    @property
    def _headers(self):
        return {"Authorization": f"Bot {self.bot_token}", "Content-Type": "application/json"}

    def grant_role(self, discord_id: str) -> GrantResult:
        if not (self.bot_token and self.guild_id and self.role_id):
            return GrantResult.fail("Discord configuration missing")

        url = f"{DISCORD_API_URL}/guilds/{self.guild_id}/members/{discord_id}/roles/{self.role_id}"
        try:
            response = requests.put(url, headers=self._headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Discord request failed for {discord_id}: {e}")
            return GrantResult.fail(str(e))

        if response.status_code == 204:
            logger.info(f"Discord role granted to {discord_id}")
            return GrantResult.ok()
        if response.status_code == 404:
            return GrantResult.fail("User not found in server")

        logger.error(f"Discord API error {response.status_code} for {discord_id}: {response.text[:300]}")
        return GrantResult.fail(f"Discord API error: {response.status_code}")

    def send_dm(self, discord_id: str, text: str) -> bool:
        """Личное сообщение пользователю; результат на выдачу доступа не влияет"""
        if not self.bot_token:
            return False
        try:
            channel = requests.post(
                f"{DISCORD_API_URL}/users/@me/channels",
                headers=self._headers,
                json={"recipient_id": str(discord_id)},
                timeout=self.timeout,
            )
            channel.raise_for_status()
            message = requests.post(
                f"{DISCORD_API_URL}/channels/{channel.json()['id']}/messages",
                headers=self._headers,
                json={"content": text},
                timeout=self.timeout,
            )
            message.raise_for_status()
            return True
        except (requests.RequestException, KeyError, ValueError) as e:
            logger.warning(f"Discord DM to {discord_id} failed: {e}")
            return False
