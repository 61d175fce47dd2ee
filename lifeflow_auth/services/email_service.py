"""
Outbound email.

The SMTP sink runs the blocking smtplib exchange on a worker thread and
logs delivery failures instead of raising them: callers treat sending as
fire-and-forget.
"""

import asyncio
import smtplib
from email.message import EmailMessage

from lifeflow_auth.config import Settings
from lifeflow_auth.logging_config import get_logger

logger = get_logger(__name__)


class SmtpEmailSink:
    """Plain-text mail over SMTP."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        username: str = "",
        password: str = "",
        from_address: str,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.use_tls = use_tls
        self.timeout = timeout

    def _build(self, to_address: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)

    async def send(self, to_address: str, subject: str, body: str) -> None:
        message = self._build(to_address, subject, body)
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError):
            logger.exception("Email delivery failed", extra={"subject": subject})
            return
        logger.info("Email sent", extra={"subject": subject})


class LoggingEmailSink:
    """Development sink: records the subject line, never the body."""

    async def send(self, to_address: str, subject: str, body: str) -> None:
        logger.info("Email not sent (SMTP not configured)", extra={"subject": subject})


def build_email_sink(settings: Settings) -> SmtpEmailSink | LoggingEmailSink:
    """SMTP when a host is configured, otherwise the logging sink."""
    if not settings.smtp_host:
        return LoggingEmailSink()
    return SmtpEmailSink(
        settings.smtp_host,
        settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        from_address=settings.smtp_from_email,
        use_tls=settings.smtp_use_tls,
    )
