"""
SMTP mailer.
Sends through the standard library client in a worker thread so a slow
mail server never blocks the event loop.
"""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import List, Optional
import logging

from app.core.exceptions import NotificationDeliveryError

logger = logging.getLogger(__name__)


class Mailer:
    """Delivers HTML email. Raises NotificationDeliveryError on any failure."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_address: str = "",
        use_tls: bool = True,
        timeout: float = 20.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address or username
        self.use_tls = use_tls
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.host and self.from_address)

    def _build_message(
        self,
        recipient: str,
        subject: str,
        html: str,
        text: Optional[str],
        reply_to: Optional[str],
        message_id: str,
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = recipient
        msg["Message-ID"] = message_id
        if reply_to:
            msg["Reply-To"] = reply_to
        if text:
            msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def _deliver(self, recipients: List[str], msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.ehlo()
            if self.use_tls:
                server.starttls()
                server.ehlo()
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(self.from_address, recipients, msg.as_string())

    async def send(
        self,
        recipient: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> str:
        """
        Send one email.

        Returns:
            The Message-ID of the delivered email
        """
        if not self.configured:
            logger.warning("Email not configured (missing SMTP host or sender)")
            raise NotificationDeliveryError("Email delivery is not configured", retryable=False)

        message_id = make_msgid(domain=self.from_address.split("@")[-1] or None)
        msg = self._build_message(recipient, subject, html, text, reply_to, message_id)

        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._deliver, [recipient], msg),
                timeout=self.timeout + 5,
            )
        except asyncio.TimeoutError:
            logger.error("Email delivery timed out", extra={"recipient": recipient})
            raise NotificationDeliveryError("Email delivery timed out", details="timeout")
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Email delivery failed", extra={"recipient": recipient, "error": str(e)})
            raise NotificationDeliveryError("Email delivery failed", details=str(e))

        logger.info("Email delivered", extra={"recipient": recipient, "message_id": message_id})
        return message_id
