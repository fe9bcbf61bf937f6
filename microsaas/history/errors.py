"""History exceptions."""


class HistoryError(Exception):
    """Base class for history storage and lookup failures."""


class HistoryStoreError(HistoryError):
    """An event could not be persisted."""


class HistoryDecodeError(HistoryError):
    """A stored event payload is not valid JSON. Aborts the whole read."""


class HistoryNotFoundError(HistoryError):
    """History of a user could not be loaded."""
