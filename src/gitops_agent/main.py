"""Entry point for the hub-of-hubs gitops agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from hoh_gitops import ExponentialBackoffPolicy, SyncerRegistry
from hoh_gitops.authorizer import HubOfHubsAuthorizer
from hoh_gitops.db import PostgreSQL
from hoh_gitops.dbsyncer import (
    MANAGED_CLUSTER_SET_SYNCER_TAG,
    MANAGED_CLUSTERS_GROUP_SYNCER_TAG,
    ManagedClusterSetStorageToDBSyncer,
    ManagedClustersGroupStorageToDBSyncer,
)
from hoh_gitops.exceptions import HubOfHubsError

from .config import AgentConfig, load_config
from .subscriptions import KubernetesClient
from .walker import GitStorageWalker

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def build_registry(config: AgentConfig, spec_db: PostgreSQL, k8s: KubernetesClient) -> SyncerRegistry:
    authorizer = HubOfHubsAuthorizer(
        spec_db,
        config.authorization.url,
        ca_bundle_path=config.authorization.ca_bundle_path,
        certificate_path=config.authorization.certificate_path,
        key_path=config.authorization.key_path,
        insecure_skip_verify=config.authorization.insecure_skip_verify,
        timeout=config.authorization.timeout,
    )

    registry = SyncerRegistry()
    registry.register(
        MANAGED_CLUSTERS_GROUP_SYNCER_TAG,
        ManagedClustersGroupStorageToDBSyncer(spec_db, authorizer),
    )
    registry.register(
        MANAGED_CLUSTER_SET_SYNCER_TAG,
        ManagedClusterSetStorageToDBSyncer(spec_db, authorizer, k8s),
    )
    registry.seal()
    return registry


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the hub-of-hubs gitops agent")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/hoh-gitops/config.yaml"),
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    stop_event = Event()

    try:
        config = load_config(args.config)
        if not config.storage.root_path.is_dir():
            raise ValueError(f"git storage root {config.storage.root_path} is not a directory")
        database = PostgreSQL(
            config.database.url,
            min_connections=config.database.min_connections,
            max_connections=config.database.max_connections,
            sleep=stop_event.wait,
        )
    except (OSError, ValueError, HubOfHubsError) as exc:
        LOG.error("initialization error: %s", exc)
        return 1

    try:
        k8s = KubernetesClient(config.kubernetes)
        registry = build_registry(config, database, k8s)

        walker = GitStorageWalker(
            registry=registry,
            subscriptions=k8s,
            root_path=config.storage.root_path,
            interval_policy=ExponentialBackoffPolicy(
                config.storage.sync_interval, config.storage.max_interval
            ),
            stop_event=stop_event,
            full_reconciliation_interval=config.storage.full_reconciliation_interval,
        )

        def _shutdown(signum, frame):  # pragma: no cover - signal handler
            LOG.info("received signal %s, shutting down", signum)
            stop_event.set()

        signal.signal(signal.SIGINT, _shutdown)
        signal.signal(signal.SIGTERM, _shutdown)

        LOG.info(
            "starting git storage walker with syncers %s", ", ".join(registry.tags())
        )
        walker.start()

        try:
            while not stop_event.is_set():
                stop_event.wait(1.0)
        except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
            stop_event.set()

        walker.join()
    finally:
        database.stop()

    LOG.info("gitops agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
