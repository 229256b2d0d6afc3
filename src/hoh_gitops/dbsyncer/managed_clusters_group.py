"""Sync ``ManagedClustersGroup`` documents into managed-cluster labels."""

from __future__ import annotations

import logging
from typing import Sequence

from hoh_gitops.db import DEFAULT_TAG_VALUE, HUB_OF_HUBS_GROUP
from hoh_gitops.types import (
    MANAGED_CLUSTERS_GROUP_KIND,
    Document,
    build_hub_to_clusters,
    parse_managed_clusters_group,
)

from .generic import GenericStorageToDBSyncer

LOG = logging.getLogger(__name__)


def group_label_key(group_name: str) -> str:
    return f"{HUB_OF_HUBS_GROUP}/{group_name}"


class ManagedClustersGroupStorageToDBSyncer(GenericStorageToDBSyncer):
    """Tag the clusters of a group with ``hub-of-hubs.../<group>=<tagValue>``."""

    kind = MANAGED_CLUSTERS_GROUP_KIND

    def sync_resource(self, user: str, groups: Sequence[str], document: Document) -> None:
        group = parse_managed_clusters_group(document)
        hub_to_clusters = self.remove_unauthorized(
            user, groups, build_hub_to_clusters(group.identifiers)
        )

        label_key = group_label_key(group.name)
        label_value = group.tag_value or DEFAULT_TAG_VALUE
        LOG.info("updating managed cluster labels: %s=%s", label_key, label_value)

        self._spec_db.update_label_for_managed_clusters(
            self._table_name, label_key, label_value, hub_to_clusters
        )
