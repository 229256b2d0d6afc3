"""Abstract interfaces for storage-to-DB syncers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union


class StorageToDBSyncer(ABC):
    """Base class for syncers managed by :class:`~hoh_gitops.registry.SyncerRegistry`."""

    @abstractmethod
    def sync_git_repo(
        self,
        base64_user_identity: str,
        base64_user_group: str,
        repo_path: Union[str, Path],
        work_path: str = "",
        force_reconcile: bool = False,
    ) -> bool:
        """Sync the first-depth documents of ``repo_path/work_path``.

        Returns True only when the repository changed since the last
        successful sync and every document in it was synced.
        """
