"""Exceptions raised by the solid-health sync engine."""

from __future__ import annotations


class SolidHealthError(Exception):
    """Base exception for all sync engine errors."""


class NetworkError(SolidHealthError):
    """A request could not complete or a document could not be fetched.

    ``status`` is the HTTP status when the server answered, None when the
    request never completed.
    """

    def __init__(
        self, message: str, retryable: bool = False, status: int | None = None
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status = status


class RemoteRejection(SolidHealthError):
    """The pod answered a PATCH or POST with a non-success status."""

    def __init__(self, message: str, status: int, body: str = "") -> None:
        super().__init__(f"{message}: {status} {body}".rstrip())
        self.status = status
        self.body = body


class BootstrapFailure(RemoteRejection):
    """Type registration or container creation failed."""


class ParseSkip(SolidHealthError):
    """An observation failed shape validation and is excluded."""


class MissingCapability(SolidHealthError):
    """The profile lacks something the sync run needs (e.g. a type index)."""


class ProviderError(SolidHealthError):
    """The fitness provider failed for a reason other than missing data."""


class StaleSessionError(SolidHealthError):
    """The session was superseded by an identity change."""
