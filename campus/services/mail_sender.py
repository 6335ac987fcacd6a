import asyncio
from typing import Optional

import resend
import structlog

from ..config import get_settings
from ..exceptions import ConfigurationError, TransientBackendError

logger = structlog.get_logger(__name__)


class MailSender:
    """Outbound email through the Resend API, bounded by a timeout."""

    def __init__(self, api_key: Optional[str] = None, from_address: Optional[str] = None,
                 timeout_seconds: Optional[float] = None):
        settings = get_settings()
        self.api_key = api_key or settings.resend_api_key
        self.from_address = from_address or settings.mail_from_address
        self.timeout_seconds = timeout_seconds or settings.mail_send_timeout_seconds

    async def send(self, to: str, subject: str, html: str) -> str:
        if not self.api_key:
            raise ConfigurationError("Resend API key is not configured", error_code="MAIL_NOT_CONFIGURED")

        params = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(self._send_sync, params),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error("email_send_timeout", to=to, timeout=self.timeout_seconds)
            raise TransientBackendError(
                f"Email to {to} timed out after {self.timeout_seconds}s",
                error_code="MAIL_TIMEOUT"
            ) from e
        except Exception as e:
            logger.error("email_send_failed", to=to, error=str(e))
            raise TransientBackendError(f"Email to {to} failed: {e}", error_code="MAIL_SEND_FAILED") from e

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info("email_sent", to=to, subject=subject, message_id=message_id)
        return message_id

    def _send_sync(self, params: dict):
        resend.api_key = self.api_key
        return resend.Emails.send(params)
