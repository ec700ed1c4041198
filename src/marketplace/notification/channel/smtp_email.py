"""SMTP email adapter backed by aiosmtplib.

The fan-out calls ``send`` from a worker thread, which has no running event
loop, so each message is delivered with its own short ``asyncio.run``.
"""

import asyncio
from email.message import EmailMessage
from email.utils import formataddr, make_msgid

import aiosmtplib
import structlog

from marketplace.notification.channel.email_port import EmailPort

logger = structlog.get_logger(__name__)


class SMTPEmailAdapter(EmailPort):
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        from_email: str = "orders@tastesphere.local",
        from_name: str = "TasteSphere",
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    def _build_message(self, to: str, subject: str, body: str, html_body: str | None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=self.from_email.rpartition("@")[2] or None)
        message.set_content(body)
        if html_body:
            message.add_alternative(html_body, subtype="html")
        return message

    async def _send(self, message: EmailMessage) -> None:
        await aiosmtplib.send(
            message,
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            start_tls=self.use_tls,
            timeout=self.timeout,
        )

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> dict:
        message = self._build_message(to, subject, body, html_body)
        try:
            asyncio.run(self._send(message))
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP delivery failed", to=to, host=self.host, error=str(exc))
            return {"message_id": None, "status": "failed", "error": str(exc)}
        return {"message_id": message["Message-ID"], "status": "sent"}
