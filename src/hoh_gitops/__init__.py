"""Hub-of-hubs GitOps synchronization core.

This package moves declarative cluster-membership documents, checked out by a
GitOps agent into one local git repository per subscription, into the
hub-of-hubs spec database as managed-cluster labels.  It covers:

* change detection per repository, keyed by the HEAD commit;
* decoding ``ManagedClustersGroup`` / ``ManagedClusterSet`` documents;
* authorizing each requested (hub, cluster) pair by translating the RBAC
  policy engine's partial evaluation into a filter over the status database;
* merging the resulting label into ``spec.managed_clusters_labels`` under
  optimistic concurrency control.

The scheduling loop and process wiring live in :mod:`gitops_agent`.
"""

from .intervalpolicy import ExponentialBackoffPolicy, IntervalPolicy  # noqa: F401
from .registry import SyncerRegistry  # noqa: F401

__all__ = [
    "ExponentialBackoffPolicy",
    "IntervalPolicy",
    "SyncerRegistry",
]
