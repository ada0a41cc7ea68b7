# integrations/email_client.py

from typing import List, Optional, Union

import requests

from backup_service.core.config import settings
from backup_service.core.exceptions import NotificationError
from backup_service.core.logger import logger


class ResendEmailClient:
    """
    Outbound email through the Resend HTTP API.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key or settings.RESEND_API_KEY
        self.sender = sender or settings.BACKUP_EMAIL_FROM
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECS

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def send(self, to: Union[str, List[str]], subject: str, html: str) -> str:
        """
        Send one HTML email and return the provider message id.

        Raises:
            NotificationError: not configured, rejected, or unreachable.
        """
        if not self.configured:
            raise NotificationError("RESEND_API_KEY is not configured")

        recipients = [to] if isinstance(to, str) else list(to)
        try:
            resp = self.session.post(
                settings.RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.sender,
                    "to": recipients,
                    "subject": subject,
                    "html": html,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NotificationError(f"Email transport failure: {e}") from e

        if resp.status_code >= 400:
            raise NotificationError(f"Email rejected: {resp.status_code} - {resp.text}")

        message_id = ""
        if resp.headers.get("Content-Type", "").startswith("application/json"):
            message_id = (resp.json() or {}).get("id", "")
        logger.info("Email sent to=%s message_id=%s", ",".join(recipients), message_id)
        return message_id
