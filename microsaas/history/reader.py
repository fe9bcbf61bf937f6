"""Read path for a user's history: the most recent events, newest first."""

import logging
from uuid import UUID

from microsaas.events.models import Event
from microsaas.history.errors import HistoryNotFoundError
from microsaas.history.storer import HistoryStorer

logger = logging.getLogger(__name__)

HISTORY_SIZE = 25


class HistoryReader:
    def __init__(self, storer: HistoryStorer, size: int = HISTORY_SIZE) -> None:
        self._storer = storer
        self._size = size

    async def list_for_user(self, user_id: UUID) -> list[Event]:
        """Return up to size events of the user. Any storage error becomes HistoryNotFoundError."""
        try:
            return await self._storer.list(user_id, self._size)
        except Exception as e:
            logger.error("Could not get history events for user %s: %s", user_id, e)
            raise HistoryNotFoundError(f"history of user {user_id} not found") from e
