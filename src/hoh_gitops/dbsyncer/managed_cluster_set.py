"""Sync ``ManagedClusterSet`` documents.

Besides labelling the member clusters, a set needs its cluster-scoped
``ManagedClusterSet`` resource to exist in the hub-of-hubs cluster.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from hoh_gitops.authorizer import Authorizer
from hoh_gitops.db import MANAGED_CLUSTER_SET_LABEL_KEY, SpecDB
from hoh_gitops.types import (
    MANAGED_CLUSTER_SET_KIND,
    Document,
    build_hub_to_clusters,
    parse_managed_cluster_set,
)

from .fingerprint import Fingerprinter
from .generic import GenericStorageToDBSyncer

LOG = logging.getLogger(__name__)


class ManagedClusterSetClient(ABC):
    """Creates ``ManagedClusterSet`` resources in the orchestration API."""

    @abstractmethod
    def create_managed_cluster_set(self, resource: Dict[str, Any]) -> bool:
        """Create ``resource``; return False if it already existed.

        Raises :class:`~hoh_gitops.exceptions.ResourceCreationError` on failure.
        """


class ManagedClusterSetStorageToDBSyncer(GenericStorageToDBSyncer):
    kind = MANAGED_CLUSTER_SET_KIND

    def __init__(
        self,
        spec_db: SpecDB,
        authorizer: Authorizer,
        cluster_set_client: ManagedClusterSetClient,
        *,
        fingerprinter: Optional[Fingerprinter] = None,
    ) -> None:
        super().__init__(spec_db, authorizer, fingerprinter=fingerprinter)
        self._cluster_set_client = cluster_set_client

    def sync_resource(self, user: str, groups: Sequence[str], document: Document) -> None:
        cluster_set = parse_managed_cluster_set(document)
        hub_to_clusters = self.remove_unauthorized(
            user, groups, build_hub_to_clusters(cluster_set.identifiers)
        )

        if self._cluster_set_client.create_managed_cluster_set(cluster_set.to_resource()):
            LOG.info("created ManagedClusterSet %s", cluster_set.name)

        LOG.info(
            "updating managed cluster labels: %s=%s",
            MANAGED_CLUSTER_SET_LABEL_KEY,
            cluster_set.name,
        )
        self._spec_db.update_label_for_managed_clusters(
            self._table_name,
            MANAGED_CLUSTER_SET_LABEL_KEY,
            cluster_set.name,
            hub_to_clusters,
        )
