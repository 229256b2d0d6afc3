"""Managed-cluster label merge rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping

from .base import HUB_OF_HUBS_GROUP, MANAGED_CLUSTER_SET_LABEL_KEY


@dataclass
class ManagedClusterLabelsState:
    """Desired labels of a managed cluster and the keys to delete from it."""

    labels: Dict[str, str] = field(default_factory=dict)
    deleted_label_keys: List[str] = field(default_factory=list)


def label_key_is_allowed(key: str) -> bool:
    """Only labels managed through gitops survive a label update."""

    return key == MANAGED_CLUSTER_SET_LABEL_KEY or key.startswith(HUB_OF_HUBS_GROUP)


def merge_labels(
    current_labels: Mapping[str, str],
    current_deleted_keys: Iterable[str],
    label_key: str,
    label_value: str,
) -> ManagedClusterLabelsState:
    """Compute the next labels state of a row when assigning a label.

    Allowed labels are retained, the new label is added, and every other key
    is marked as deleted.  Keys already marked as deleted stay deleted unless
    they are being assigned again.
    """

    labels: Dict[str, str] = {}
    removed: List[str] = []
    for key, value in current_labels.items():
        if label_key_is_allowed(key):
            labels[key] = value
        elif key != label_key:
            removed.append(key)
    labels[label_key] = label_value

    deleted = dict.fromkeys(
        key for key in current_deleted_keys if key not in labels
    )
    deleted.update(dict.fromkeys(removed))
    return ManagedClusterLabelsState(labels=labels, deleted_label_keys=list(deleted))
