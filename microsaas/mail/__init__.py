"""Transactional e-mail with history auditing."""

from microsaas.mail.config import MailConfig
from microsaas.mail.errors import (
    MailDeliveryError,
    MailError,
    TemplateNotFoundError,
    TemplateRenderError,
)
from microsaas.mail.service import (
    CONFIRMATION,
    PASSWORD_RESET,
    Mailer,
    MailService,
    SendRequest,
    load_templates,
)
from microsaas.mail.transport import MailTransport, SmtpTransport

__all__ = [
    "CONFIRMATION",
    "PASSWORD_RESET",
    "MailConfig",
    "MailDeliveryError",
    "MailError",
    "MailService",
    "MailTransport",
    "Mailer",
    "SendRequest",
    "SmtpTransport",
    "TemplateNotFoundError",
    "TemplateRenderError",
    "load_templates",
]
