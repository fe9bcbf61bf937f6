"""Entry point for the pipeline process: wire broker, consumers and mailer; run until SIGINT/SIGTERM."""

import asyncio
import logging
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from microsaas import secrets
from microsaas.events import Broker, Topics
from microsaas.history import HistoryReader, HistoryWriter, SqliteHistoryStorer
from microsaas.logging_config import setup_logging
from microsaas.mail import MailConfig, MailService
from microsaas.notification import NotificationDispatcher
from microsaas.settings import get_setting, load_settings

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass
class Pipeline:
    """Everything request handlers and the runner need. Built once at startup."""

    broker: Broker
    storer: SqliteHistoryStorer
    history: HistoryReader
    mailer: MailService
    history_writer: HistoryWriter
    notifications: NotificationDispatcher

    def start(self, cancel: asyncio.Event) -> None:
        self.history_writer.start(cancel)
        self.notifications.start(cancel)

    async def wait_stopped(self, timeout: float) -> bool:
        """Wait for both consumers to stop, at most timeout seconds in total."""
        consumers = [self.history_writer, self.notifications]
        tasks = {c.task for c in consumers if c.task is not None}
        if not tasks:
            return True
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            logger.warning("%s did not stop within %.1fs", task.get_name(), timeout)
        return not pending

    async def close(self) -> None:
        self.broker.close()
        await self.storer.close()


def build_pipeline(settings: dict[str, Any], project_root: Path = _PROJECT_ROOT) -> Pipeline:
    """Construct the broker and subscribe both consumers before anything can publish."""
    broker = Broker(capacity=int(get_setting(settings, "broker.capacity", 0)))
    storer = SqliteHistoryStorer(
        db_path=project_root / get_setting(settings, "history.db_path", "data/history.db"),
        busy_timeout=int(get_setting(settings, "history.busy_timeout", 5000)),
    )
    mailer = MailService(MailConfig.from_settings(settings, secrets.get_secret), broker)
    return Pipeline(
        broker=broker,
        storer=storer,
        history=HistoryReader(storer, size=int(get_setting(settings, "history.list_size", 25))),
        mailer=mailer,
        history_writer=HistoryWriter(broker.subscribe(Topics.HISTORY), storer),
        notifications=NotificationDispatcher(broker.subscribe(Topics.NOTIFICATION), mailer),
    )


def listen_os(cancel: asyncio.Event) -> None:
    """Set cancel on SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()

    def _on_signal(sig: signal.Signals) -> None:
        logger.info("Received %s, the application is shutting down...", sig.name)
        cancel.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(sig, lambda signum, _frame: loop.call_soon_threadsafe(_on_signal, signal.Signals(signum)))


async def main_async() -> None:
    """Bootstrap: settings -> logging -> pipeline -> start consumers -> wait for shutdown."""
    settings = load_settings()
    setup_logging(_PROJECT_ROOT, settings)
    pipeline = build_pipeline(settings)
    cancel = asyncio.Event()
    listen_os(cancel)
    pipeline.start(cancel)
    logger.info("The application is running...")
    try:
        await cancel.wait()
    finally:
        cancel.set()
        await pipeline.wait_stopped(float(get_setting(settings, "shutdown.timeout", 3.0)))
        await pipeline.close()
        logger.info("The application successfully shut down.")


def main() -> None:
    """Synchronous entry for the pipeline process."""
    load_dotenv(_PROJECT_ROOT / ".env")
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        pass


__all__ = ["Pipeline", "build_pipeline", "main"]
