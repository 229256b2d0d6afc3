"""Tag to syncer registry consulted by the git storage walker."""

from __future__ import annotations

from typing import Dict, List, Optional

from .dbsyncer import StorageToDBSyncer


class SyncerRegistry:
    """Map subscription syncer tags to registered syncers.

    The registry is populated once at startup and sealed before the walker
    starts; it is never mutated afterwards.
    """

    def __init__(self) -> None:
        self._syncers: Dict[str, StorageToDBSyncer] = {}
        self._sealed = False

    def register(self, tag: str, syncer: StorageToDBSyncer) -> None:
        if self._sealed:
            raise RuntimeError("syncer registry is sealed")
        if tag in self._syncers:
            raise ValueError(f"syncer '{tag}' already registered")
        self._syncers[tag] = syncer

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, tag: str) -> Optional[StorageToDBSyncer]:
        return self._syncers.get(tag)

    def tags(self) -> List[str]:
        return sorted(self._syncers)

    def __contains__(self, tag: object) -> bool:
        return tag in self._syncers

    def __len__(self) -> int:
        return len(self._syncers)
