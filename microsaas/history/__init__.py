"""User history: persist events from the history topic and read them back."""

from microsaas.history.errors import (
    HistoryDecodeError,
    HistoryError,
    HistoryNotFoundError,
    HistoryStoreError,
)
from microsaas.history.reader import HISTORY_SIZE, HistoryReader
from microsaas.history.storer import HistoryStorer, SqliteHistoryStorer
from microsaas.history.writer import HistoryWriter

__all__ = [
    "HISTORY_SIZE",
    "HistoryDecodeError",
    "HistoryError",
    "HistoryNotFoundError",
    "HistoryReader",
    "HistoryStoreError",
    "HistoryStorer",
    "HistoryWriter",
    "SqliteHistoryStorer",
]
