"""Spec and status database access."""

from .base import (  # noqa: F401
    DEFAULT_TAG_VALUE,
    HUB_OF_HUBS_GROUP,
    MANAGED_CLUSTER_LABELS_TABLE,
    MANAGED_CLUSTER_SET_LABEL_KEY,
    SpecDB,
    StatusDB,
)
from .labels import ManagedClusterLabelsState, label_key_is_allowed, merge_labels  # noqa: F401
from .postgresql import PostgreSQL  # noqa: F401

__all__ = [
    "DEFAULT_TAG_VALUE",
    "HUB_OF_HUBS_GROUP",
    "MANAGED_CLUSTER_LABELS_TABLE",
    "MANAGED_CLUSTER_SET_LABEL_KEY",
    "ManagedClusterLabelsState",
    "PostgreSQL",
    "SpecDB",
    "StatusDB",
    "label_key_is_allowed",
    "merge_labels",
]
