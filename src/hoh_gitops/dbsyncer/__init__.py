"""Syncers moving git storage documents into the spec database."""

from .base import StorageToDBSyncer  # noqa: F401
from .fingerprint import Fingerprinter, GitCommitFingerprinter  # noqa: F401
from .generic import GenericStorageToDBSyncer  # noqa: F401
from .managed_cluster_set import (  # noqa: F401
    ManagedClusterSetClient,
    ManagedClusterSetStorageToDBSyncer,
)
from .managed_clusters_group import ManagedClustersGroupStorageToDBSyncer  # noqa: F401

MANAGED_CLUSTERS_GROUP_SYNCER_TAG = "ManagedClustersGroup"
MANAGED_CLUSTER_SET_SYNCER_TAG = "ManagedClusterSet"

__all__ = [
    "Fingerprinter",
    "GenericStorageToDBSyncer",
    "GitCommitFingerprinter",
    "MANAGED_CLUSTERS_GROUP_SYNCER_TAG",
    "MANAGED_CLUSTER_SET_SYNCER_TAG",
    "ManagedClusterSetClient",
    "ManagedClusterSetStorageToDBSyncer",
    "ManagedClustersGroupStorageToDBSyncer",
    "StorageToDBSyncer",
]
