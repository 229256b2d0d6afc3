"""Declarative resource documents read from the git storage.

Each file in a synced repository holds exactly one YAML document.  Two kinds
are understood today::

    kind: ManagedClustersGroup
    metadata:
      name: production
    spec:
      tagValue: "gold"
      identifiers:
        - hub1:
            name: hub1
            managedClusterIdentifiers: [cluster-a, cluster-b]

    kind: ManagedClusterSet
    metadata:
      name: payments
    spec:
      identifiers:
        - any-key:
            name: hub2
            managedClusterIdentifiers: [cluster-c]

``identifiers`` is a list of mappings whose values identify managed clusters
within a hub; the mapping keys carry no meaning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

import yaml

from .exceptions import DocumentError

MANAGED_CLUSTERS_GROUP_KIND = "ManagedClustersGroup"
MANAGED_CLUSTER_SET_KIND = "ManagedClusterSet"


@dataclass(frozen=True)
class HubIdentifier:
    """Managed clusters requested within a single hub."""

    name: str
    managed_cluster_ids: Sequence[str] = ()


@dataclass(frozen=True)
class ManagedClustersGroup:
    name: str
    identifiers: Sequence[HubIdentifier] = ()
    tag_value: Optional[str] = None


@dataclass(frozen=True)
class ManagedClusterSet:
    name: str
    identifiers: Sequence[HubIdentifier] = ()

    def to_resource(self) -> Dict[str, Any]:
        """Return the cluster-scoped custom resource backing this set."""

        return {
            "apiVersion": "cluster.open-cluster-management.io/v1beta1",
            "kind": MANAGED_CLUSTER_SET_KIND,
            "metadata": {"name": self.name},
            "spec": {},
        }


@dataclass
class Document:
    """A decoded YAML document, before kind-specific validation."""

    kind: Optional[str]
    body: Dict[str, Any] = field(default_factory=dict)


def load_document(data: bytes) -> Optional[Document]:
    """Parse ``data`` as a single YAML document.

    Returns ``None`` when the content is valid YAML but not a mapping (for
    example a README or an empty file); such files are not resources.
    Raises :class:`DocumentError` when the content is not valid YAML.
    """

    try:
        payload = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise DocumentError(f"failed to parse yaml: {exc}") from exc

    if not isinstance(payload, dict):
        return None

    kind = payload.get("kind")
    return Document(kind=str(kind) if kind is not None else None, body=payload)


def _section(body: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = body.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise DocumentError(f"'{name}' must be a mapping")
    return section


def _metadata_name(body: Dict[str, Any]) -> str:
    name = _section(body, "metadata").get("name")
    if not name:
        raise DocumentError("document missing 'metadata.name'")
    return str(name)


def _parse_hub_identifier(entry: Any) -> HubIdentifier:
    if not isinstance(entry, dict):
        raise DocumentError("hub identifier must be a mapping")
    name = entry.get("name")
    if not name:
        raise DocumentError("hub identifier missing 'name'")

    cluster_ids = entry.get("managedClusterIdentifiers") or []
    if not isinstance(cluster_ids, list):
        raise DocumentError(
            f"'managedClusterIdentifiers' of hub '{name}' must be a list"
        )
    unique = dict.fromkeys(str(cluster) for cluster in cluster_ids)
    return HubIdentifier(name=str(name), managed_cluster_ids=tuple(unique))


def _parse_identifiers(spec: Dict[str, Any]) -> List[HubIdentifier]:
    entries = spec.get("identifiers") or []
    if not isinstance(entries, list):
        raise DocumentError("'spec.identifiers' must be a list")

    identifiers: List[HubIdentifier] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise DocumentError("'spec.identifiers' entries must be mappings")
        for hub_entry in entry.values():
            identifiers.append(_parse_hub_identifier(hub_entry))
    return identifiers


def parse_managed_clusters_group(document: Document) -> ManagedClustersGroup:
    spec = _section(document.body, "spec")
    tag_value = spec.get("tagValue")
    return ManagedClustersGroup(
        name=_metadata_name(document.body),
        identifiers=tuple(_parse_identifiers(spec)),
        tag_value=str(tag_value) if tag_value is not None else None,
    )


def parse_managed_cluster_set(document: Document) -> ManagedClusterSet:
    spec = _section(document.body, "spec")
    return ManagedClusterSet(
        name=_metadata_name(document.body),
        identifiers=tuple(_parse_identifiers(spec)),
    )


def build_hub_to_clusters(identifiers: Sequence[HubIdentifier]) -> Dict[str, Set[str]]:
    """Collapse identifiers into a hub -> set(managed cluster) mapping."""

    hub_to_clusters: Dict[str, Set[str]] = {}
    for identifier in identifiers:
        hub_to_clusters.setdefault(identifier.name, set()).update(
            identifier.managed_cluster_ids
        )
    return hub_to_clusters
