"""Abstract authorization interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Mapping, Sequence, Set


class Authorizer(ABC):
    """Authorize managed-cluster label assignments through RBAC."""

    @abstractmethod
    def filter_managed_clusters_for_user(
        self,
        user: str,
        groups: Sequence[str],
        hub_to_clusters: Mapping[str, Set[str]],
    ) -> Dict[str, Set[str]]:
        """Return the entries of ``hub_to_clusters`` that ``user`` may not touch."""


def get_disjoint_entries(
    tester: Mapping[str, Set[str]], base: Mapping[str, Set[str]]
) -> Dict[str, Set[str]]:
    """Return the entries in ``tester`` that are not present in ``base``.

    A key missing from ``base`` contributes its whole ``tester`` set; keys
    whose entries are all present in ``base`` are left out.
    """

    disjoint: Dict[str, Set[str]] = {}
    for key, tester_set in tester.items():
        difference = set(tester_set) - set(base.get(key, ()))
        if difference:
            disjoint[key] = difference
    return disjoint
