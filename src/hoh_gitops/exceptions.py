"""Exception hierarchy shared by the sync pipeline."""

from __future__ import annotations


class HubOfHubsError(Exception):
    """Base class for errors raised by the hub-of-hubs gitops packages."""


class DocumentError(HubOfHubsError):
    """A git resource document could not be decoded or validated."""


class FingerprintError(HubOfHubsError):
    """The current state of a repository could not be determined."""


class AuthorizationError(HubOfHubsError):
    """Entitlements for a user could not be resolved."""


class ResidualParseError(HubOfHubsError):
    """A partial-evaluation residual did not match the expected schema.

    ``negated`` carries the negation flag of the expression being decoded (when
    it could be read) so callers can fall back to the deny-biased default of
    the right polarity.
    """

    def __init__(self, message: str, *, negated: bool = False) -> None:
        super().__init__(message)
        self.negated = negated


class DatabaseError(HubOfHubsError):
    """A database statement failed."""


class IncompleteSyncError(DatabaseError):
    """Some label assignments were still unsynced after all retry attempts."""


class SubscriptionError(HubOfHubsError):
    """Subscription metadata could not be read or is incomplete."""


class SubscriptionNotFound(SubscriptionError):
    """The subscription owning a repository directory no longer exists."""


class ResourceCreationError(HubOfHubsError):
    """A companion resource could not be created in the orchestration API."""
