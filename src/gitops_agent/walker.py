"""Git storage walker.

Polls the git storage root, where the GitOps agent keeps one working tree per
subscription, and hands every repository to the syncer its subscription is
assigned to.
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from threading import Event, Thread
from typing import Callable

from hoh_gitops import IntervalPolicy, SyncerRegistry
from hoh_gitops.exceptions import SubscriptionError, SubscriptionNotFound

from .config import DEFAULT_FULL_RECONCILIATION_INTERVAL
from .subscriptions import SubscriptionSource

LOG = logging.getLogger(__name__)


class GitStorageWalker(Thread):
    """Periodically sync every repository under ``root_path``.

    Repositories are processed one after the other.  A cycle counts as
    productive when repositories that changed outnumber repositories that
    failed, which drives the adaptive poll interval.
    """

    def __init__(
        self,
        registry: SyncerRegistry,
        subscriptions: SubscriptionSource,
        root_path: Path,
        interval_policy: IntervalPolicy,
        stop_event: Event,
        *,
        full_reconciliation_interval: float = DEFAULT_FULL_RECONCILIATION_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(name="git-storage-walker", daemon=True)
        self._registry = registry
        self._subscriptions = subscriptions
        self._root_path = Path(root_path)
        self._policy = interval_policy
        self._stop_event = stop_event
        self._full_reconciliation_interval = full_reconciliation_interval
        self._clock = clock

    def run(self) -> None:
        LOG.info("initialized git storage walker (root=%s)", self._root_path)
        try:
            self._reconcile_all()
        except Exception:  # pragma: no cover - logged below
            LOG.exception("initial reconciliation of %s failed", self._root_path)
        next_full_reconciliation = self._clock() + self._full_reconciliation_interval

        while not self._stop_event.wait(self._policy.get_interval()):
            try:
                if self._clock() >= next_full_reconciliation:
                    self._reconcile_all()
                    next_full_reconciliation = (
                        self._clock() + self._full_reconciliation_interval
                    )
                else:
                    self.tick()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("git storage walker encountered an error")

        LOG.info("git storage walker stopped (root=%s)", self._root_path)

    def _reconcile_all(self) -> None:
        LOG.info("starting full reconciliation of %s", self._root_path)
        self.poll(force_reconcile=True)

    def tick(self) -> bool:
        """Run a regular cycle and feed its outcome to the interval policy."""

        current_interval = self._policy.get_interval()
        synced = self.poll()

        if synced:
            self._policy.evaluate()
        else:
            self._policy.reset()

        reevaluated_interval = self._policy.get_interval()
        if reevaluated_interval != current_interval:
            LOG.info("sync interval has been reset to %ss", reevaluated_interval)
        return synced

    def poll(self, force_reconcile: bool = False) -> bool:
        """Sync all repositories once; return True if most of them did work."""

        deadline = self._clock() + self._policy.get_max_interval()

        try:
            repos = sorted(path for path in self._root_path.iterdir() if path.is_dir())
        except OSError as exc:
            LOG.error("failed to open git root folder %s: %s", self._root_path, exc)
            return False

        success_rate = 0
        for index, repo_path in enumerate(repos):
            if self._stop_event.is_set():
                LOG.info("stop requested, leaving %d repos for later", len(repos) - index)
                break
            if self._clock() >= deadline:
                LOG.warning(
                    "sync cycle timed out, leaving %d repos for the next cycle",
                    len(repos) - index,
                )
                break
            success_rate += self._sync_repo(repo_path, force_reconcile)

        return success_rate > 0

    def _sync_repo(self, repo_path: Path, force_reconcile: bool) -> int:
        """Return +1 when the repo changed, -1 when it failed, 0 otherwise."""

        name = repo_path.name
        try:
            subscription = self._subscriptions.get_subscription(name)
        except SubscriptionNotFound:
            # each subscription owns exactly the directory named after it
            LOG.info("subscription %s was deleted, removing its repo", name)
            try:
                shutil.rmtree(repo_path)
            except OSError as exc:
                LOG.error("failed to delete repo of deleted subscription %s: %s", name, exc)
                return -1
            return 0
        except SubscriptionError as exc:
            LOG.error("failed to sync local git repo %s: %s", name, exc)
            return -1
        except Exception:  # pragma: no cover - logged below
            LOG.exception("failed to look up subscription of repo %s", name)
            return -1

        syncer = self._registry.get(subscription.syncer_tag)
        if syncer is None:
            LOG.error(
                "failed to sync local git repo %s: syncer tag %s is not registered",
                name,
                subscription.syncer_tag,
            )
            return -1

        try:
            changed = syncer.sync_git_repo(
                subscription.base64_user_identity,
                subscription.base64_user_group,
                repo_path,
                subscription.git_path,
                force_reconcile,
            )
        except Exception:  # pragma: no cover - logged below
            LOG.exception("syncer %s failed on repo %s", subscription.syncer_tag, name)
            return -1

        return 1 if changed else 0
