"""Database interfaces used by the syncers and the authorizer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Set

# Value assigned to labels that act as a plain tag.
DEFAULT_TAG_VALUE = "true"
# Group prefixing hub-of-hubs owned label keys.
HUB_OF_HUBS_GROUP = "hub-of-hubs.open-cluster-management.io"
MANAGED_CLUSTER_SET_LABEL_KEY = "cluster.open-cluster-management.io/clusterset"

MANAGED_CLUSTER_LABELS_TABLE = "managed_clusters_labels"


class SpecDB(ABC):
    """Write access to the spec schema."""

    @abstractmethod
    def update_label_for_managed_clusters(
        self,
        table_name: str,
        label_key: str,
        label_value: str,
        hub_to_clusters: Dict[str, Set[str]],
    ) -> None:
        """Add ``label_key=label_value`` to every managed cluster in the mapping.

        Synced entries are removed from ``hub_to_clusters`` as they succeed;
        if the operation fails it holds the unsynced entries only.
        """

    @abstractmethod
    def stop(self) -> None:
        """Release resources (e.g. the connection pool)."""


class StatusDB(ABC):
    """Read access to the status schema."""

    @abstractmethod
    def get_accessible_managed_clusters(
        self, table_name: str, filter_clause: str
    ) -> Dict[str, Set[str]]:
        """Return hub -> managed clusters matching ``filter_clause`` (a WHERE condition)."""

    @abstractmethod
    def stop(self) -> None:
        """Release resources (e.g. the connection pool)."""
