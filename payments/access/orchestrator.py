# payments/access/orchestrator.py
"""
Выдача доступов после оплаты: Discord, Notion, Google Drive.

Три системы опрашиваются параллельно; ошибка или таймаут одной не влияет
на остальные. Итог записывается во флаги подписки одним UPDATE.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from django.conf import settings
from django.db import DatabaseError

from payments.exceptions import AccessGrantFailure, SchemaDriftOnUpdate
from .base import GrantResult
from .discord import DiscordRoleService
from .google_drive import GoogleDriveAccessService
from .notion import NotionAccessService

logger = logging.getLogger(__name__)

DISCORD_WELCOME_DM = "🎉 Подписка активирована! Роль подписчика выдана, добро пожаловать."


@dataclass
class AccessGrantOutcome:
    discord: bool = False
    notion: bool = False
    google_drive: bool = False
    errors: Dict[str, str] = field(default_factory=dict)

    def as_details(self) -> dict:
        return {
            "discord_granted": self.discord,
            "notion_granted": self.notion,
            "google_drive_granted": self.google_drive,
            "grant_errors": dict(self.errors),
        }


class AccessGrantOrchestrator:

    def __init__(self, discord: Optional[DiscordRoleService] = None,
                 notion: Optional[NotionAccessService] = None,
                 google_drive: Optional[GoogleDriveAccessService] = None,
                 timeout: Optional[float] = None):
        self.discord = discord or DiscordRoleService()
        self.notion = notion or NotionAccessService()
        self.google_drive = google_drive or GoogleDriveAccessService()
        self.timeout = timeout or getattr(settings, "ACCESS_GRANT_TIMEOUT_SECONDS", 15)

    def _grant_discord(self, discord_id: str, renewal: bool) -> GrantResult:
        result = self.discord.grant_role(discord_id)
        if result.success and not renewal:
            self.discord.send_dm(discord_id, DISCORD_WELCOME_DM)
        return result

    def _tasks(self, user, subscription, renewal: bool) -> Dict[str, Callable[[], GrantResult]]:
        tasks = {}
        if user.discord_id:
            tasks["discord"] = lambda: self._grant_discord(user.discord_id, renewal)
        if user.email:
            tasks["notion"] = lambda: self.notion.grant_access(user.email, user.id, subscription.id)
        if user.google_drive_email:
            tasks["google_drive"] = lambda: self.google_drive.grant_access(
                user.google_drive_email, user.id, subscription.id
            )
        return tasks

    def grant_all(self, user, subscription, renewal: bool) -> AccessGrantOutcome:
        outcome = AccessGrantOutcome()
        tasks = self._tasks(user, subscription, renewal)
        if not tasks:
            logger.info(f"Subscription {subscription.id}: no identifiers to grant access for")
            return outcome

        executor = ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="access-grant")
        try:
            futures = {system: executor.submit(task) for system, task in tasks.items()}
            # общий дедлайн на все системы
            done, _ = wait(futures.values(), timeout=self.timeout)
            for system, future in futures.items():
                try:
                    if future not in done:
                        raise AccessGrantFailure(system, f"timeout after {self.timeout}s")
                    result = future.result()
                    if not result.success:
                        raise AccessGrantFailure(system, result.error or "unknown error")
                except AccessGrantFailure as failure:
                    logger.error(f"Access grant failed for subscription {subscription.id}: {failure}")
                    outcome.errors[system] = failure.reason
                except Exception as e:
                    logger.error(f"Access grant crashed for subscription {subscription.id}: {system}: {e}",
                                 exc_info=True)
                    outcome.errors[system] = str(e)
                else:
                    setattr(outcome, system, True)
        finally:
            # зависший вызов не должен держать обработку вебхука
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info(
            f"Subscription {subscription.id} access: discord={outcome.discord}, "
            f"notion={outcome.notion}, google_drive={outcome.google_drive}"
        )
        return outcome

    @staticmethod
    def persist(subscription, outcome: AccessGrantOutcome) -> None:
        subscription.discord_role_granted = outcome.discord
        subscription.notion_access_granted = outcome.notion
        subscription.google_drive_access_granted = outcome.google_drive
        try:
            subscription.save(update_fields=[
                "discord_role_granted", "notion_access_granted", "google_drive_access_granted", "updated_at",
            ])
        except DatabaseError as e:
            logger.critical(
                f"Cannot store access flags for subscription {subscription.id}: {e}. "
                f"Database schema is behind the models, run migrations."
            )
            raise SchemaDriftOnUpdate(str(e)) from e
