"""Generic git-storage-to-DB sync engine.

The engine owns everything that is common to all resource kinds: change
detection through a :class:`Fingerprinter`, identity decoding, the
first-depth file walk and the all-or-nothing bookkeeping.  Subclasses only
turn a decoded :class:`~hoh_gitops.types.Document` into DB writes.
"""

from __future__ import annotations

import base64
import binascii
import logging
from abc import abstractmethod
from pathlib import Path
from typing import Dict, Optional, Sequence, Set, Union

from hoh_gitops.authorizer import Authorizer
from hoh_gitops.db import MANAGED_CLUSTER_LABELS_TABLE, SpecDB
from hoh_gitops.exceptions import FingerprintError, HubOfHubsError
from hoh_gitops.types import Document, load_document

from .base import StorageToDBSyncer
from .fingerprint import Fingerprinter, GitCommitFingerprinter

LOG = logging.getLogger(__name__)


def decode_identity(value: str) -> str:
    """Decode a base64 annotation value into text."""

    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ValueError(f"invalid base64 identity {value!r}") from exc


class GenericStorageToDBSyncer(StorageToDBSyncer):
    """Sync documents of one ``kind`` from local git repositories."""

    kind: str = ""

    def __init__(
        self,
        spec_db: SpecDB,
        authorizer: Authorizer,
        *,
        fingerprinter: Optional[Fingerprinter] = None,
        table_name: str = MANAGED_CLUSTER_LABELS_TABLE,
    ) -> None:
        self._spec_db = spec_db
        self._authorizer = authorizer
        self._fingerprinter = fingerprinter or GitCommitFingerprinter()
        self._table_name = table_name
        self._repo_fingerprints: Dict[str, str] = {}

    def synced_fingerprint(self, repo_path: Union[str, Path]) -> Optional[str]:
        return self._repo_fingerprints.get(str(repo_path))

    def sync_git_repo(
        self,
        base64_user_identity: str,
        base64_user_group: str,
        repo_path: Union[str, Path],
        work_path: str = "",
        force_reconcile: bool = False,
    ) -> bool:
        repo_path = Path(repo_path)
        repo_key = str(repo_path)

        try:
            fingerprint = self._fingerprinter.fingerprint(repo_path)
        except FingerprintError as exc:
            LOG.error("failed to read state of repo %s: %s", repo_path, exc)
            return False

        if force_reconcile:
            # a failed forced sync must be retried by the next regular cycle
            self._repo_fingerprints.pop(repo_key, None)
        elif self._repo_fingerprints.get(repo_key) == fingerprint:
            return False

        try:
            user = decode_identity(base64_user_identity)
            group = decode_identity(base64_user_group)
        except ValueError as exc:
            LOG.error("failed to decode identity of repo %s: %s", repo_path, exc)
            return False

        work_dir = (repo_path / work_path).resolve() if work_path else repo_path.resolve()
        if not work_dir.is_relative_to(repo_path.resolve()):
            LOG.error("work path %s escapes repo %s", work_path, repo_path)
            return False

        if not self.walk_git_repo(user, [group], work_dir):
            return False

        self._repo_fingerprints[repo_key] = fingerprint
        LOG.info("synced repo %s at %s", repo_path, fingerprint)
        return True

    def walk_git_repo(self, user: str, groups: Sequence[str], work_dir: Path) -> bool:
        """Sync every first-depth file of ``work_dir``; True if all succeeded."""

        try:
            entries = sorted(work_dir.iterdir())
        except OSError as exc:
            LOG.error("failed to list work directory %s: %s", work_dir, exc)
            return False

        all_synced = True
        for path in entries:
            if not path.is_file():
                continue  # first depth only

            try:
                data = path.read_bytes()
            except OSError as exc:
                LOG.error("failed to read file %s: %s", path, exc)
                all_synced = False
                continue

            try:
                self.sync_document(user, groups, data)
            except HubOfHubsError as exc:
                LOG.error("failed to sync git resource %s: %s", path, exc)
                all_synced = False

        return all_synced

    def sync_document(self, user: str, groups: Sequence[str], data: bytes) -> None:
        document = load_document(data)
        if document is None or document.kind != self.kind:
            LOG.debug(
                "skipping document of kind %s",
                document.kind if document is not None else None,
            )
            return
        self.sync_resource(user, groups, document)

    @abstractmethod
    def sync_resource(self, user: str, groups: Sequence[str], document: Document) -> None:
        """Apply one document of this syncer's kind."""

    def remove_unauthorized(
        self, user: str, groups: Sequence[str], hub_to_clusters: Dict[str, Set[str]]
    ) -> Dict[str, Set[str]]:
        """Drop, in place, the entries ``user`` is not entitled to."""

        for hub_name, clusters in hub_to_clusters.items():
            LOG.info(
                "found identifier in request: user=%s groups=%s hub=%s clusters=%s",
                user,
                groups,
                hub_name,
                sorted(clusters),
            )

        unauthorized = self._authorizer.filter_managed_clusters_for_user(
            user, groups, hub_to_clusters
        )
        for hub_name, clusters in unauthorized.items():
            if not clusters or hub_name not in hub_to_clusters:
                continue

            LOG.info(
                "unauthorized entry found in request (removed): hub=%s clusters=%s",
                hub_name,
                sorted(clusters),
            )
            hub_to_clusters[hub_name] -= clusters
            if not hub_to_clusters[hub_name]:
                del hub_to_clusters[hub_name]

        return hub_to_clusters
