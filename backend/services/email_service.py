"""
SMTP mail transport.

send_mail never raises for delivery problems; it returns Sent or Failed so
callers can record the outcome per message.

Author: MoneyWise Team
"""

import os
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Union

from dotenv import load_dotenv

from .observability import logger, metrics

load_dotenv()


@dataclass(frozen=True)
class Sent:
    ok = True


@dataclass(frozen=True)
class Failed:
    reason: str
    ok = False


SendResult = Union[Sent, Failed]


class EmailService:
    """Sends HTML mail through an SMTP relay configured from the environment."""

    def __init__(
        self,
        host: str = None,
        port: int = None,
        user: str = None,
        password: str = None,
        from_address: str = None,
        timeout: float = None,
    ):
        self.host = host or os.getenv("SMTP_HOST", "")
        self.port = port or int(os.getenv("SMTP_PORT", "587"))
        self.user = user or os.getenv("SMTP_USER", "")
        self.password = password or os.getenv("SMTP_PASSWORD", "")
        self.from_address = from_address or os.getenv("EMAIL_FROM", "MoneyWise <no-reply@moneywise.example.com>")
        self.timeout = timeout or float(os.getenv("SMTP_TIMEOUT", "10"))

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def send_mail(self, to: str, subject: str, html: str) -> SendResult:
        if not self.configured:
            logger.warning("SMTP not configured, email not sent", to=to)
            return Failed("SMTP not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to
        msg.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.user:
                    server.login(self.user, self.password)
                server.sendmail(self.from_address, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Error sending email", to=to, error=str(e))
            metrics.increment("email.failed")
            return Failed(str(e))

        metrics.increment("email.sent")
        return Sent()
