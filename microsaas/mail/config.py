"""Mail configuration, read once at startup."""

from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from microsaas.settings import get_setting

SMTP_PASSWORD_SECRET = "MAIL_SMTP_PASSWORD"


class MailConfig(BaseModel):
    """SMTP relay and sender identity. Empty smtp_address disables delivery."""

    model_config = ConfigDict(frozen=True)

    application_name: str = ""
    no_reply_address: str = ""
    smtp_address: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    timeout: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.smtp_address)

    @classmethod
    def from_settings(
        cls,
        settings: dict[str, Any],
        secrets_getter: Callable[[str], str | None] | None = None,
    ) -> "MailConfig":
        """Build from the mail section; the password comes from the secret store when not set inline."""
        mail = dict(get_setting(settings, "mail", {}) or {})
        if not mail.get("application_name"):
            mail["application_name"] = get_setting(settings, "app.name", "")
        if not mail.get("smtp_password") and secrets_getter is not None:
            mail["smtp_password"] = secrets_getter(SMTP_PASSWORD_SECRET) or ""
        return cls(**{k: v for k, v in mail.items() if k in cls.model_fields and v is not None})
