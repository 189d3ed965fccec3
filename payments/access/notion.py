# payments/access/notion.py
import logging
from typing import Optional

import requests
from django.conf import settings

from .base import GrantResult

logger = logging.getLogger(__name__)

NOTION_SCIM_URL = "https://api.notion.com/scim/v2"

INVITE_MANUALLY = (
    "Notion: приглашение гостей через API недоступно (SCIM только для members). "
    "Пригласите вручную в Notion."
)


def scim_email_filter(email: str) -> str:
    escaped = email.replace("\\", "\\\\").replace('"', '\\"')
    return f'emails.value eq "{escaped}"'


class NotionAccessService:
    """
    Доступ к Notion через SCIM.

    SCIM видит только участников workspace: если пользователь уже member,
    доступ считается выданным, иначе гостя нужно пригласить вручную.
    """

    def __init__(self, token: Optional[str] = None, timeout: Optional[float] = None):
        self.token = token if token is not None else getattr(settings, "NOTION_SCIM_TOKEN", "")
        self.timeout = timeout or getattr(settings, "ACCESS_GRANT_TIMEOUT_SECONDS", 15)

    def find_user_by_email(self, email: str) -> Optional[dict]:
        response = requests.get(
            f"{NOTION_SCIM_URL}/Users",
            params={"filter": scim_email_filter(email)},
            headers={"Authorization": f"Bearer {self.token}", "Accept": "application/scim+json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        resources = response.json().get("Resources") or []
        return resources[0] if resources else None

    def grant_access(self, email: str, user_id=None, subscription_id=None) -> GrantResult:
        if not email:
            return GrantResult.fail("Email не указан")
        if not self.token:
            return GrantResult.fail("NOTION_SCIM_TOKEN не задан")

        try:
            member = self.find_user_by_email(email)
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Notion SCIM lookup failed for {email}: {e}")
            return GrantResult.fail(str(e))

        if member:
            logger.info(f"Notion: {email} is already a workspace member (user={user_id}, sub={subscription_id})")
            return GrantResult.ok()

        logger.warning(f"Notion: {email} is not a member, manual invite required (sub={subscription_id})")
        return GrantResult.fail(INVITE_MANUALLY)
