"""SMTP transport. The blocking client runs in a worker thread."""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from microsaas.mail.config import MailConfig

logger = logging.getLogger(__name__)

_SMTPS_PORT = 465


class MailTransport(Protocol):
    async def dial_and_send(self, message: EmailMessage) -> None:
        """Connect, authenticate and send message. Raises on failure."""
        ...


class SmtpTransport:
    """Opens one SMTP session per message: implicit TLS on 465, STARTTLS when offered otherwise."""

    def __init__(self, config: MailConfig) -> None:
        self.host = config.smtp_address
        self.port = config.smtp_port
        self.user = config.smtp_user
        self.passwd = config.smtp_password
        self.timeout = config.timeout

    def _connect(self) -> smtplib.SMTP:
        if self.port == _SMTPS_PORT:
            return smtplib.SMTP_SSL(host=self.host, port=self.port, timeout=self.timeout)
        return smtplib.SMTP(host=self.host, port=self.port, timeout=self.timeout)

    def _starttls(self, client: smtplib.SMTP) -> None:
        if self.port == _SMTPS_PORT:
            return
        client.ehlo()
        if client.has_extn("starttls"):
            client.starttls()
            client.ehlo()

    def _send(self, message: EmailMessage) -> None:
        with self._connect() as client:
            self._starttls(client)
            if self.user:
                client.login(self.user, self.passwd)
            client.send_message(message)
        logger.debug("Sent mail to %s via %s:%d", message["To"], self.host, self.port)

    async def dial_and_send(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._send, message)
