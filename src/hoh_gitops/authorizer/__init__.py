"""Authorization of label assignments against the RBAC policy engine."""

from .base import Authorizer, get_disjoint_entries  # noqa: F401
from .hub_of_hubs import HubOfHubsAuthorizer  # noqa: F401
from .predicate import ALLOW_ALL, DENY_ALL, translate_queries, translate_result  # noqa: F401

__all__ = [
    "ALLOW_ALL",
    "Authorizer",
    "DENY_ALL",
    "HubOfHubsAuthorizer",
    "get_disjoint_entries",
    "translate_queries",
    "translate_result",
]
