"""End-user notifications for issued downloads."""

import html
import logging
from dataclasses import dataclass
from datetime import datetime

from kiosk_capture.adapters.mail_client import MailClient
from kiosk_capture.domain.sessions import CaptureKind

_logger = logging.getLogger(__name__)


@dataclass
class NotificationService:
    """Mails download links when a relay is configured."""

    mail_client: MailClient | None
    public_base_url: str

    def download_url(self, token: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/dl/{token}"

    async def send_download_link(
        self,
        email: str,
        token: str,
        kind: CaptureKind | None,
        expires_at: datetime,
    ) -> bool:
        """Send the download link; return False when mail is disabled."""
        if self.mail_client is None:
            _logger.info("Mail relay not configured, skipping download mail")
            return False
        label = "video" if kind == CaptureKind.CLIP else "photo"
        link = html.escape(self.download_url(token))
        body = (
            f"<p>Thank you! Your {label} is ready.</p>"
            f'<p><a href="{link}">Download your {label}</a></p>'
            f"<p>This link expires at {expires_at:%Y-%m-%d %H:%M} UTC and can be "
            "used a limited number of times.</p>"
        )
        await self.mail_client.send(email, f"Your {label} download", body)
        _logger.info("Download link mailed: kind=%s", label)
        return True
