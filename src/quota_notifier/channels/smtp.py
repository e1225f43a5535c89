"""SMTP delivery channel.

``smtplib`` is blocking, so each submission runs in the default executor to
keep other organizations' evaluation moving.
"""

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid

from ..models.results import SendResult

logger = logging.getLogger(__name__)


def build_message(sender: str, to: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to
    msg["Subject"] = subject
    msg["Message-ID"] = make_msgid()
    msg.set_content(body)
    return msg


class SmtpChannel:
    """Sends plain-text mail through an SMTP relay."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 25,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = False,
        use_ssl: bool = False,
        timeout: float = 10.0,
    ):
        """
        Args:
            host: SMTP relay host
            port: SMTP relay port
            username: Login user (skipped when None)
            password: Login password
            use_tls: Upgrade the connection with STARTTLS
            use_ssl: Connect with implicit TLS (SMTP_SSL)
            timeout: Socket timeout in seconds
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.timeout = timeout

    async def send(self, sender: str, to: str, subject: str, body: str) -> SendResult:
        msg = build_message(sender, to, subject, body)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {to} via {self.host}:{self.port} failed: {e}")
            return SendResult(ok=False, detail=f"{type(e).__name__}: {e}")

        logger.debug(f"SMTP delivery to {to} accepted by {self.host}:{self.port}")
        return SendResult(ok=True, detail=msg["Message-ID"])

    def _send_sync(self, msg: EmailMessage) -> None:
        if self.use_ssl:
            client: smtplib.SMTP = smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout, context=ssl.create_default_context()
            )
        else:
            client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)

        with client as smtp:
            if self.use_tls:
                smtp.starttls(context=ssl.create_default_context())
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(msg)

    async def close(self) -> None:
        pass
