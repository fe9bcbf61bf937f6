"""Mail exceptions. All are raised to the caller before or instead of publishing an event."""


class MailError(Exception):
    """Base class for transactional mail failures."""


class TemplateNotFoundError(MailError):
    """The requested template name was never registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} template not found")
        self.name = name


class TemplateRenderError(MailError):
    """The template could not be rendered with the given data."""


class MailDeliveryError(MailError):
    """The mail transport rejected or failed to send the message."""
