"""Transactional mail: render a named template, send it, record the send in history."""

import logging
from dataclasses import dataclass, field
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Protocol
from uuid import UUID

import jinja2
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from microsaas.events.broker import Broker
from microsaas.events.models import NIL_USER, EmailData, Event
from microsaas.events.topics import EventTypes, Topics
from microsaas.mail.config import MailConfig
from microsaas.mail.errors import MailDeliveryError, TemplateNotFoundError, TemplateRenderError
from microsaas.mail.transport import MailTransport, SmtpTransport

logger = logging.getLogger(__name__)

CONFIRMATION = "confirmation"
PASSWORD_RESET = "passwordreset"

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
_TEMPLATE_FILES = {
    CONFIRMATION: "confirmation.html.jinja2",
    PASSWORD_RESET: "passwordreset.html.jinja2",
}


@dataclass
class SendRequest:
    recipient: str
    subject: str
    template: str
    data: dict[str, Any] = field(default_factory=dict)
    user_id: UUID = NIL_USER


class Mailer(Protocol):
    async def send(self, request: SendRequest) -> None: ...

    async def email_confirmation(self, recipient: str, confirmation_url: str) -> None: ...

    async def password_reset(self, recipient: str, reset_url: str) -> None: ...


def load_templates(
    templates_dir: Path = _TEMPLATES_DIR,
    files: dict[str, str] | None = None,
) -> dict[str, jinja2.Template]:
    """Parse every template up front. A template that does not parse raises here, at startup."""
    env = Environment(
        loader=FileSystemLoader(templates_dir),
        autoescape=select_autoescape(enabled_extensions=("html.jinja2", "html")),
        undefined=StrictUndefined,
    )
    templates: dict[str, jinja2.Template] = {}
    for name, filename in (files or _TEMPLATE_FILES).items():
        try:
            templates[name] = env.get_template(filename)
        except jinja2.TemplateError:
            logger.error("E-mail template %s can not be parsed", filename)
            raise
    return templates


class MailService:
    """Sends templated mail for the request handlers.

    Without an SMTP address every send is a logged no-op that still reports
    success: local environments keep working, but success is not a delivery
    guarantee.
    """

    def __init__(
        self,
        config: MailConfig,
        broker: Broker,
        transport: MailTransport | None = None,
        templates: dict[str, jinja2.Template] | None = None,
    ) -> None:
        if not config.configured:
            logger.warning("SMTP is not set up, e-mail sending functionality will not work correctly!")
        self._config = config
        self._broker = broker
        self._transport = transport if transport is not None else SmtpTransport(config)
        self._templates = templates if templates is not None else load_templates()

    @property
    def config(self) -> MailConfig:
        return self._config

    def render(self, name: str, data: dict[str, Any]) -> str:
        template = self._templates.get(name)
        if template is None:
            raise TemplateNotFoundError(name)
        try:
            return template.render(**data)
        except jinja2.TemplateError as e:
            raise TemplateRenderError(f"{name} template could not be rendered: {e}") from e

    async def send(self, request: SendRequest) -> None:
        """Render request.template and send it. Raises MailError; publishes email_sent only on success."""
        body = self.render(request.template, request.data)
        await self._deliver(request.recipient, request.subject, body, request.user_id)

    async def _deliver(self, recipient: str, subject: str, body: str, user_id: UUID) -> None:
        if not self._config.configured:
            logger.warning("SMTP is not set up, failed to send the e-mail!")
            return

        message = EmailMessage()
        message["From"] = self._config.no_reply_address
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body, subtype="html")

        try:
            await self._transport.dial_and_send(message)
        except Exception as e:
            logger.error("Failed to send e-mail to %s: %s", recipient, e)
            raise MailDeliveryError(f"failed to send e-mail to {recipient}: {e}") from e

        await self._broker.publish(
            Event(
                type=EventTypes.EMAIL_SENT,
                user=user_id,
                data=EmailData(
                    from_address=self._config.no_reply_address,
                    to=recipient,
                    subject=subject,
                    body=body,
                ),
            ),
            Topics.HISTORY,
        )

    async def email_confirmation(self, recipient: str, confirmation_url: str) -> None:
        """Send the e-mail confirmation message to recipient."""
        await self.send(
            SendRequest(
                recipient=recipient,
                subject="E-mail Confirmation",
                template=CONFIRMATION,
                data={"link": confirmation_url, "app": self._config.application_name},
            )
        )

    async def password_reset(self, recipient: str, reset_url: str) -> None:
        """Send the password reset message to recipient."""
        await self.send(
            SendRequest(
                recipient=recipient,
                subject="Password Reset",
                template=PASSWORD_RESET,
                data={"link": reset_url, "app": self._config.application_name},
            )
        )
