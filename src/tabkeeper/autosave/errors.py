"""Exceptions raised by the auto-save core."""


class AutoSaveError(Exception):
    """Base class for auto-save errors."""


class InvalidSessionError(AutoSaveError, ValueError):
    """A session id was missing or unusable where one is required."""


class FetchError(AutoSaveError):
    """The fetch capability could not complete a request."""


class UnknownMethodError(AutoSaveError):
    """A message named a method the dispatcher does not handle."""
