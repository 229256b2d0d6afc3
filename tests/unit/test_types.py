import pytest

from hoh_gitops.exceptions import DocumentError
from hoh_gitops.types import (
    HubIdentifier,
    build_hub_to_clusters,
    load_document,
    parse_managed_cluster_set,
    parse_managed_clusters_group,
)

GROUP_DOCUMENT = b"""
apiVersion: hub-of-hubs.open-cluster-management.io/v1
kind: ManagedClustersGroup
metadata:
  name: production
spec:
  tagValue: gold
  identifiers:
    - hub1:
        name: hub1
        managedClusterIdentifiers: [cluster-a, cluster-b, cluster-a]
    - second:
        name: hub2
        managedClusterIdentifiers: [cluster-c]
"""


def test_load_document_reads_kind():
    document = load_document(GROUP_DOCUMENT)

    assert document is not None
    assert document.kind == "ManagedClustersGroup"
    assert document.body["metadata"]["name"] == "production"


@pytest.mark.parametrize("data", [b"", b"just some text\n", b"- a\n- b\n"])
def test_non_mapping_content_is_not_a_document(data):
    assert load_document(data) is None


def test_invalid_yaml_raises():
    with pytest.raises(DocumentError):
        load_document(b"kind: [unclosed\n")


def test_parse_managed_clusters_group():
    group = parse_managed_clusters_group(load_document(GROUP_DOCUMENT))

    assert group.name == "production"
    assert group.tag_value == "gold"
    assert group.identifiers == (
        HubIdentifier("hub1", ("cluster-a", "cluster-b")),
        HubIdentifier("hub2", ("cluster-c",)),
    )


def test_parse_managed_cluster_set():
    document = load_document(
        b"""
kind: ManagedClusterSet
metadata:
  name: payments
spec:
  identifiers:
    - hub1:
        name: hub1
        managedClusterIdentifiers: [c1]
"""
    )

    cluster_set = parse_managed_cluster_set(document)

    assert cluster_set.name == "payments"
    assert cluster_set.to_resource() == {
        "apiVersion": "cluster.open-cluster-management.io/v1beta1",
        "kind": "ManagedClusterSet",
        "metadata": {"name": "payments"},
        "spec": {},
    }


@pytest.mark.parametrize(
    "data",
    [
        b"kind: ManagedClustersGroup\nspec: {}\n",
        b"kind: ManagedClustersGroup\nmetadata: {name: g}\nspec: {identifiers: nope}\n",
        b"kind: ManagedClustersGroup\nmetadata: {name: g}\nspec:\n  identifiers: [plain]\n",
        b"kind: ManagedClustersGroup\nmetadata: {name: g}\nspec:\n  identifiers:\n"
        b"    - h: {managedClusterIdentifiers: [c1]}\n",
        b"kind: ManagedClustersGroup\nmetadata: {name: g}\nspec:\n  identifiers:\n"
        b"    - h: {name: h, managedClusterIdentifiers: c1}\n",
    ],
)
def test_malformed_group_documents(data):
    with pytest.raises(DocumentError):
        parse_managed_clusters_group(load_document(data))


def test_build_hub_to_clusters_unions_per_hub():
    hub_to_clusters = build_hub_to_clusters(
        [
            HubIdentifier("hub1", ("a", "b")),
            HubIdentifier("hub2", ("c",)),
            HubIdentifier("hub1", ("b", "d")),
        ]
    )

    assert hub_to_clusters == {"hub1": {"a", "b", "d"}, "hub2": {"c"}}
