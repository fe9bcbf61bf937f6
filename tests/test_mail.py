"""Tests for MailService: templates, transport outcomes, email_sent history events."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock
from uuid import uuid4

import jinja2
import pytest

from microsaas.events import Broker, EmailData, EventTypes, Topics
from microsaas.mail import (
    CONFIRMATION,
    PASSWORD_RESET,
    MailConfig,
    MailDeliveryError,
    MailService,
    SendRequest,
    TemplateNotFoundError,
    TemplateRenderError,
    load_templates,
)

CONFIG = MailConfig(
    application_name="Test App",
    no_reply_address="noreply@example.com",
    smtp_address="smtp.example.com",
    smtp_port=587,
    smtp_user="user",
    smtp_password="pass",
)


@pytest.fixture
def broker() -> Broker:
    # Capacity keeps publish from waiting on a test that never reads
    return Broker(capacity=8)


@pytest.fixture
def transport() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(broker: Broker, transport: AsyncMock) -> MailService:
    return MailService(CONFIG, broker, transport=transport)


def _request(template: str = CONFIRMATION, **overrides) -> SendRequest:
    fields = {
        "user_id": uuid4(),
        "recipient": "test@example.com",
        "subject": "Test Subject",
        "template": template,
        "data": {"link": "http://example.com/confirm", "app": "Test App"},
    }
    fields.update(overrides)
    return SendRequest(**fields)


class TestMailServiceSend:
    """send() across template and transport outcomes."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("template", [CONFIRMATION, PASSWORD_RESET])
    async def test_valid_template_is_sent(
        self, service: MailService, transport: AsyncMock, template: str
    ) -> None:
        await service.send(_request(template))

        transport.dial_and_send.assert_awaited_once()
        message = transport.dial_and_send.await_args.args[0]
        assert message["From"] == "noreply@example.com"
        assert message["To"] == "test@example.com"
        assert message["Subject"] == "Test Subject"
        assert "http://example.com/confirm" in message.get_content()

    @pytest.mark.asyncio
    async def test_unknown_template_errors_without_side_effects(
        self, service: MailService, broker: Broker, transport: AsyncMock
    ) -> None:
        history = broker.subscribe(Topics.HISTORY)

        with pytest.raises(TemplateNotFoundError, match="nonexistent template not found"):
            await service.send(_request("nonexistent"))

        transport.dial_and_send.assert_not_awaited()
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(history.receive(), timeout=0.05)

    @pytest.mark.asyncio
    async def test_render_failure_errors_before_send(
        self, service: MailService, transport: AsyncMock
    ) -> None:
        with pytest.raises(TemplateRenderError):
            await service.send(_request(data={"app": "Test App"}))
        transport.dial_and_send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transport_failure_is_raised_and_not_recorded(
        self, service: MailService, broker: Broker, transport: AsyncMock
    ) -> None:
        history = broker.subscribe(Topics.HISTORY)
        transport.dial_and_send.side_effect = ConnectionRefusedError("smtp down")

        with pytest.raises(MailDeliveryError):
            await service.send(_request())

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(history.receive(), timeout=0.05)

    @pytest.mark.asyncio
    async def test_unconfigured_smtp_is_soft_success(
        self, broker: Broker, transport: AsyncMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        history = broker.subscribe(Topics.HISTORY)
        service = MailService(MailConfig(no_reply_address="noreply@example.com"), broker, transport=transport)

        await service.send(_request())

        transport.dial_and_send.assert_not_awaited()
        assert "SMTP is not set up" in caplog.text
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(history.receive(), timeout=0.05)


class TestMailServiceHistoryEvent:
    """A successful send publishes exactly one email_sent event to history."""

    @pytest.mark.asyncio
    async def test_email_sent_event_published(
        self, service: MailService, broker: Broker, transport: AsyncMock
    ) -> None:
        history = broker.subscribe(Topics.HISTORY)
        request = _request()

        await service.send(request)

        event = await asyncio.wait_for(history.receive(), timeout=1.0)
        assert event.type == EventTypes.EMAIL_SENT
        assert event.user == request.user_id
        assert isinstance(event.data, EmailData)
        assert event.data.from_address == "noreply@example.com"
        assert event.data.to == "test@example.com"
        assert event.data.subject == "Test Subject"
        assert event.data.body == service.render(CONFIRMATION, request.data)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(history.receive(), timeout=0.05)

    @pytest.mark.asyncio
    async def test_zero_capacity_publish_waits_for_history_writer(
        self, transport: AsyncMock
    ) -> None:
        broker = Broker()
        history = broker.subscribe(Topics.HISTORY)
        service = MailService(CONFIG, broker, transport=transport)

        send = asyncio.create_task(service.send(_request()))
        await asyncio.sleep(0.05)
        assert not send.done()

        event = await history.receive()
        await asyncio.wait_for(send, timeout=1.0)
        assert event.type == EventTypes.EMAIL_SENT


class TestMailServiceShortcuts:
    """email_confirmation and password_reset."""

    @pytest.mark.asyncio
    async def test_email_confirmation(self, service: MailService, transport: AsyncMock) -> None:
        await service.email_confirmation("test@example.com", "http://example.com/confirm")

        message = transport.dial_and_send.await_args.args[0]
        assert message["Subject"] == "E-mail Confirmation"
        body = message.get_content()
        assert "http://example.com/confirm" in body
        assert "Test App" in body

    @pytest.mark.asyncio
    async def test_password_reset(self, service: MailService, transport: AsyncMock, broker: Broker) -> None:
        history = broker.subscribe(Topics.HISTORY)
        await service.password_reset("test@example.com", "http://example.com/reset")

        message = transport.dial_and_send.await_args.args[0]
        assert message["Subject"] == "Password Reset"
        assert "http://example.com/reset" in message.get_content()
        event = await asyncio.wait_for(history.receive(), timeout=1.0)
        assert event.data.subject == "Password Reset"


class TestTemplates:
    """Template loading."""

    def test_links_are_escaped(self) -> None:
        templates = load_templates()
        body = templates[CONFIRMATION].render(link='http://x/?a=1&b="2"', app="<App>")
        assert "&amp;" in body
        assert "&lt;App&gt;" in body

    def test_unparsable_template_fails_at_load(self, tmp_path: Path) -> None:
        (tmp_path / "broken.html.jinja2").write_text("{% if %}", encoding="utf-8")
        with pytest.raises(jinja2.TemplateSyntaxError):
            load_templates(tmp_path, {"broken": "broken.html.jinja2"})
