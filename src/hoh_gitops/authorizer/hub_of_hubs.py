"""Authorization through the hub-of-hubs RBAC policy engine.

The policy engine is asked to partially evaluate ``data.rbac.clusters.allow``
with the cluster left unknown.  The residual it returns describes which
clusters the user may access and is translated into a filter over the status
database, whose result is the user's entitlement.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Set

import requests

from hoh_gitops.db.base import StatusDB
from hoh_gitops.exceptions import AuthorizationError, DatabaseError

from .base import Authorizer, get_disjoint_entries
from .predicate import DENY_ALL, translate_result

LOG = logging.getLogger(__name__)

MANAGED_CLUSTERS_TABLE = "managed_clusters"
COMPILE_QUERY = "data.rbac.clusters.allow == true"
CLUSTER_UNKNOWN = "input.cluster"
DEFAULT_TIMEOUT = 10.0


class HubOfHubsAuthorizer(Authorizer):
    """Resolve unauthorized managed-cluster entries for a user."""

    def __init__(
        self,
        status_db: StatusDB,
        url: str,
        *,
        ca_bundle_path: Optional[str] = None,
        certificate_path: Optional[str] = None,
        key_path: Optional[str] = None,
        insecure_skip_verify: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._status_db = status_db
        self._compile_url = f"{url.rstrip('/')}/v1/compile"
        self._timeout = timeout
        self._session = session or requests.Session()

        if ca_bundle_path:
            self._session.verify = ca_bundle_path
        elif insecure_skip_verify:
            LOG.warning(
                "TLS certificate verification of the policy engine at %s is disabled",
                url,
            )
            self._session.verify = False
        else:
            self._session.verify = True

        if certificate_path and key_path:
            self._session.cert = (certificate_path, key_path)

    def filter_managed_clusters_for_user(
        self,
        user: str,
        groups: Sequence[str],
        hub_to_clusters: Mapping[str, Set[str]],
    ) -> Dict[str, Set[str]]:
        predicate = self.filter_by_authorization(user, groups)
        try:
            accessible = self._status_db.get_accessible_managed_clusters(
                MANAGED_CLUSTERS_TABLE, predicate
            )
        except DatabaseError as exc:
            raise AuthorizationError(
                f"failed to filter managed clusters for user {user!r} in groups "
                f"{list(groups)} by authorization: {exc}"
            ) from exc

        return get_disjoint_entries(hub_to_clusters, accessible)

    def filter_by_authorization(self, user: str, groups: Sequence[str]) -> str:
        """Return the SQL filter selecting the clusters ``user`` may access."""

        try:
            result = self.get_partial_evaluation(user, groups)
        except AuthorizationError as exc:
            LOG.error("unable to get partial evaluation response: %s", exc)
            return DENY_ALL

        return translate_result(result)

    def get_partial_evaluation(self, user: str, groups: Sequence[str]) -> Any:
        # groups are not part of the policy input yet
        LOG.debug("requesting partial evaluation for user %s (groups %s)", user, groups)

        request = {
            "input": {"user": user},
            "query": COMPILE_QUERY,
            "unknowns": [CLUSTER_UNKNOWN],
        }
        try:
            response = self._session.post(
                self._compile_url, json=request, timeout=self._timeout
            )
        except requests.RequestException as exc:
            raise AuthorizationError(f"policy engine request failed: {exc}") from exc

        if response.status_code != requests.codes.ok:
            raise AuthorizationError(
                f"policy engine responded with status {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise AuthorizationError(
                f"failed to decode policy engine response: {exc}"
            ) from exc

        if not isinstance(body, dict):
            raise AuthorizationError("policy engine response is not an object")
        return body.get("result")
