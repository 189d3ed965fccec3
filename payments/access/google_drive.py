# payments/access/google_drive.py
import json
import logging
import os
from typing import Optional

from django.conf import settings
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .base import GrantResult

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive"]


class GoogleDriveAccessService:
    """Доступ на чтение к папке Google Drive через сервисный аккаунт"""

    def __init__(self, folder_id: Optional[str] = None, service_account_info: Optional[str] = None):
        self.folder_id = folder_id if folder_id is not None else getattr(settings, "GOOGLE_DRIVE_FOLDER_ID", "")
        self.service_account_info = (
            service_account_info if service_account_info is not None
            else getattr(settings, "GOOGLE_SERVICE_ACCOUNT_JSON", "")
        )
        self._service = None

    def _credentials(self):
        # JSON ключа целиком или путь к файлу
        raw = self.service_account_info.strip()
        if raw.startswith("{"):
            return service_account.Credentials.from_service_account_info(json.loads(raw), scopes=SCOPES)
        if not os.path.exists(raw):
            raise FileNotFoundError(f"Service account file not found: {raw}")
        return service_account.Credentials.from_service_account_file(raw, scopes=SCOPES)

    def get_service(self):
        if self._service is None:
            self._service = build("drive", "v3", credentials=self._credentials(), cache_discovery=False)
        return self._service

    def grant_access(self, email: str, user_id=None, subscription_id=None) -> GrantResult:
        if not email:
            return GrantResult.fail("Email не указан")
        if not self.folder_id or not self.service_account_info:
            return GrantResult.fail("Google Drive configuration missing")

        try:
            self.get_service().permissions().create(
                fileId=self.folder_id,
                body={"type": "user", "role": "reader", "emailAddress": email},
                sendNotificationEmail=False,
                supportsAllDrives=True,
            ).execute()
        except HttpError as e:
            if e.resp.status == 409 or "already exists" in str(e):
                logger.info(f"Google Drive: access already exists for {email}")
                return GrantResult.ok()
            logger.error(f"Google Drive API error for {email}: {e}")
            return GrantResult.fail(f"Google Drive API error: {e.resp.status}")
        except (ValueError, OSError) as e:
            logger.error(f"Google Drive credentials error: {e}")
            return GrantResult.fail(str(e))

        logger.info(f"Google Drive: reader access granted to {email} (user={user_id}, sub={subscription_id})")
        return GrantResult.ok()
