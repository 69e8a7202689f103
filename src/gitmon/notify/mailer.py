"""SMTP delivery of rendered reports."""

import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional

import structlog

from gitmon.errors import DeliveryFailed
from gitmon.models import MailConfig

logger = structlog.get_logger(__name__)


class Mailer:
    """Sends an HTML report through an SMTP relay.

    Delivery is attempted once; failures are raised as DeliveryFailed and
    never retried here.
    """

    def __init__(self, config: MailConfig) -> None:
        self.config = config

    def build_message(self, html_body: str, subject: Optional[str] = None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.config.sender
        message["To"] = self.config.recipient
        message["Subject"] = subject or self.config.subject
        message.set_content("This report is best viewed in an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")
        return message

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.config.use_ssl:
            return smtplib.SMTP_SSL(
                self.config.smtp_host,
                self.config.smtp_port,
                timeout=self.config.timeout,
                context=context,
            )
        server = smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=self.config.timeout)
        server.starttls(context=context)
        return server

    def send(self, html_body: str, subject: Optional[str] = None) -> None:
        """Send the report.

        Args:
            html_body: Rendered HTML document
            subject: Subject override

        Raises:
            DeliveryFailed: If the relay cannot be reached or rejects the mail
        """
        message = self.build_message(html_body, subject)
        try:
            with self._connect() as server:
                if self.config.token:
                    server.login(self.config.sender, self.config.token)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryFailed(
                f"Sending mail via {self.config.smtp_host}:{self.config.smtp_port} failed: {e}"
            ) from e

        logger.info("report_sent", recipient=self.config.recipient, host=self.config.smtp_host)
