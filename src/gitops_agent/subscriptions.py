"""Subscription metadata lookups against the Kubernetes API.

Every directory under the git storage root is named after an application
subscription in the subscriptions namespace.  The subscription tells the
walker which syncer handles the repository and on behalf of which user::

    metadata:
      annotations:
        open-cluster-management.io/user-identity: <base64 user>
        open-cluster-management.io/user-group: <base64 group>
        apps.open-cluster-management.io/git-path: clusters/prod   # optional
    spec:
      placement:
        hubOfHubsGitOps: ManagedClustersGroup
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from hoh_gitops.dbsyncer import ManagedClusterSetClient
from hoh_gitops.exceptions import (
    ResourceCreationError,
    SubscriptionError,
    SubscriptionNotFound,
)

from .config import KubernetesConfig

LOG = logging.getLogger(__name__)

ANNOTATION_GIT_PATH = "apps.open-cluster-management.io/git-path"
ANNOTATION_USER_IDENTITY = "open-cluster-management.io/user-identity"
ANNOTATION_USER_GROUP = "open-cluster-management.io/user-group"

SUBSCRIPTIONS_API = "/apis/apps.open-cluster-management.io/v1"
MANAGED_CLUSTER_SETS_API = "/apis/cluster.open-cluster-management.io/v1beta1"


@dataclass(frozen=True)
class SubscriptionInfo:
    """What the walker needs to know about a subscription."""

    name: str
    syncer_tag: str
    base64_user_identity: str
    base64_user_group: str
    git_path: str = ""


def _mapping(value: Any, field: str, name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SubscriptionError(
            f"{field} of subscription {name} must be an object, "
            f"received {type(value).__name__}"
        )
    return value


def subscription_info_from_resource(name: str, resource: Any) -> SubscriptionInfo:
    if not isinstance(resource, dict):
        raise SubscriptionError(
            f"subscription {name} is not an object, received {type(resource).__name__}"
        )
    metadata = _mapping(resource.get("metadata"), "metadata", name)
    annotations = _mapping(metadata.get("annotations"), "metadata.annotations", name)

    user_identity = annotations.get(ANNOTATION_USER_IDENTITY)
    if user_identity is None:
        raise SubscriptionError(
            f"user-identity annotation was not found on subscription {name}"
        )
    user_group = annotations.get(ANNOTATION_USER_GROUP)
    if user_group is None:
        raise SubscriptionError(f"user-group annotation was not found on subscription {name}")

    spec = _mapping(resource.get("spec"), "spec", name)
    placement = _mapping(spec.get("placement"), "spec.placement", name)
    syncer_tag = placement.get("hubOfHubsGitOps")
    if not syncer_tag:
        raise SubscriptionError(
            f"hubOfHubsGitOps was not set in spec.placement of subscription {name}"
        )

    return SubscriptionInfo(
        name=name,
        syncer_tag=str(syncer_tag),
        base64_user_identity=str(user_identity),
        base64_user_group=str(user_group),
        git_path=str(annotations.get(ANNOTATION_GIT_PATH) or ""),
    )


class SubscriptionSource(ABC):
    @abstractmethod
    def get_subscription(self, name: str) -> SubscriptionInfo:
        """Return the subscription ``name``.

        Raises :class:`SubscriptionNotFound` when it does not exist and
        :class:`SubscriptionError` when it cannot be read or is incomplete.
        """


class KubernetesClient(SubscriptionSource, ManagedClusterSetClient):
    """Minimal REST client for the two Kubernetes calls the agent makes."""

    def __init__(
        self,
        config: KubernetesConfig,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_url = config.api_url.rstrip("/")
        self._namespace = config.subscriptions_namespace
        self._timeout = config.timeout
        self._session = session or requests.Session()

        if config.ca_bundle_path and Path(config.ca_bundle_path).exists():
            self._session.verify = config.ca_bundle_path
        if config.token_path and Path(config.token_path).exists():
            token = Path(config.token_path).read_text().strip()
            self._session.headers["Authorization"] = f"Bearer {token}"

    def get_subscription(self, name: str) -> SubscriptionInfo:
        url = (
            f"{self._api_url}{SUBSCRIPTIONS_API}/namespaces/{self._namespace}"
            f"/subscriptions/{name}"
        )
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise SubscriptionError(f"failed to get subscription {name}: {exc}") from exc

        if response.status_code == requests.codes.not_found:
            raise SubscriptionNotFound(f"subscription {name} not found")
        if response.status_code != requests.codes.ok:
            raise SubscriptionError(
                f"failed to get subscription {name}: status {response.status_code}"
            )

        try:
            resource = response.json()
        except ValueError as exc:
            raise SubscriptionError(f"failed to decode subscription {name}: {exc}") from exc
        return subscription_info_from_resource(name, resource)

    def create_managed_cluster_set(self, resource: Dict[str, Any]) -> bool:
        name = resource.get("metadata", {}).get("name")
        url = f"{self._api_url}{MANAGED_CLUSTER_SETS_API}/managedclustersets"
        try:
            response = self._session.post(url, json=resource, timeout=self._timeout)
        except requests.RequestException as exc:
            raise ResourceCreationError(
                f"failed to create ManagedClusterSet {name}: {exc}"
            ) from exc

        if response.status_code == requests.codes.conflict:
            LOG.debug("ManagedClusterSet %s already exists", name)
            return False
        if response.status_code not in (requests.codes.ok, requests.codes.created):
            raise ResourceCreationError(
                f"failed to create ManagedClusterSet {name}: status {response.status_code}"
            )
        return True
