"""
src/data/errors.py
──────────────────
Exception taxonomy shared by the record store and the engine.
"""


class MonitorError(Exception):
    """Base class for every error raised by the monitor."""


class ValidationError(MonitorError):
    """A report or edit is malformed; nothing was written."""


class NotFoundError(MonitorError):
    """The referenced batch does not exist."""


class PersistenceError(MonitorError):
    """The record store failed to read or write."""


class ConcurrencyError(PersistenceError):
    """A batch changed between read and write (version mismatch)."""
