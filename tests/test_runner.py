"""Tests for pipeline wiring in microsaas.runner."""

import asyncio
from pathlib import Path
from unittest.mock import patch
from uuid import uuid4

import pytest

from microsaas.events import NIL_USER, ConsumerState, Event, Topics
from microsaas.runner import build_pipeline, main_async
from microsaas.settings import get_default_settings


@pytest.fixture
def settings(tmp_path: Path) -> dict:
    s = get_default_settings()
    s["history"]["db_path"] = "history.db"
    s["logging"]["file"] = ""
    return s


@pytest.fixture
def pipeline(settings: dict, tmp_path: Path):
    with patch("microsaas.runner.secrets.get_secret", return_value=None):
        return build_pipeline(settings, project_root=tmp_path)


class TestBuildPipeline:
    """Startup wiring."""

    def test_consumers_subscribed_before_start(self, pipeline) -> None:
        assert pipeline.broker.subscriber_count(Topics.HISTORY) == 1
        assert pipeline.broker.subscriber_count(Topics.NOTIFICATION) == 1
        assert pipeline.broker.capacity == 0
        assert pipeline.history_writer.state is ConsumerState.CREATED
        assert pipeline.notifications.mailer is pipeline.mailer

    @pytest.mark.asyncio
    async def test_history_events_are_persisted_and_listed(self, pipeline) -> None:
        cancel = asyncio.Event()
        pipeline.start(cancel)

        user = uuid4()
        event = Event(type="user_signed_in", user=user, data={"source": "credentials"})
        assert await pipeline.broker.publish(event, Topics.HISTORY) == 1
        assert await pipeline.broker.publish(event, Topics.NOTIFICATION) == 1
        await asyncio.sleep(0.1)

        listed = await pipeline.history.list_for_user(user)
        assert [e.id for e in listed] == [event.id]
        assert listed[0].data == {"source": "credentials"}

        cancel.set()
        assert await pipeline.wait_stopped(timeout=1.0)
        assert pipeline.history_writer.state is ConsumerState.STOPPED
        assert pipeline.notifications.state is ConsumerState.STOPPED
        await pipeline.close()

    @pytest.mark.asyncio
    async def test_unconfigured_mailer_sends_nothing(self, pipeline) -> None:
        cancel = asyncio.Event()
        pipeline.start(cancel)

        await pipeline.mailer.email_confirmation("u@example.com", "http://example.com/confirm")
        await asyncio.sleep(0.05)

        assert await pipeline.storer.list(NIL_USER, 25) == []
        cancel.set()
        await pipeline.wait_stopped(timeout=1.0)
        await pipeline.close()


class TestMainAsync:
    """Process lifecycle around the pipeline."""

    @pytest.mark.asyncio
    async def test_cancelled_task_shuts_down_and_stays_cancelled(self, settings: dict, pipeline) -> None:
        with (
            patch("microsaas.runner.load_settings", return_value=settings),
            patch("microsaas.runner.setup_logging"),
            patch("microsaas.runner.build_pipeline", return_value=pipeline),
            patch("microsaas.runner.listen_os"),
        ):
            task = asyncio.create_task(main_async())
            await asyncio.sleep(0.05)
            assert pipeline.history_writer.state is ConsumerState.RUNNING

            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert task.cancelled()
        assert pipeline.history_writer.state is ConsumerState.STOPPED
        assert pipeline.notifications.state is ConsumerState.STOPPED
        assert pipeline.broker.subscriber_count(Topics.HISTORY) == 0
