"""PostgreSQL implementation of the spec and status database interfaces."""

from __future__ import annotations

import logging
import re
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional, Set

import psycopg2
from psycopg2.extras import Json
from psycopg2.pool import ThreadedConnectionPool

from hoh_gitops.exceptions import DatabaseError, IncompleteSyncError
from hoh_gitops.intervalpolicy import ExponentialBackoffPolicy, IntervalPolicy

from .base import DEFAULT_TAG_VALUE, SpecDB, StatusDB
from .labels import merge_labels

LOG = logging.getLogger(__name__)

SPEC_SCHEMA = "spec"
STATUS_SCHEMA = "status"

OPTIMISTIC_CONCURRENCY_RETRIES = 5
RETRY_INTERVAL = 5.0

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _table(schema: str, table_name: str) -> str:
    if not _IDENTIFIER.match(table_name):
        raise ValueError(f"invalid table name {table_name!r}")
    return f"{schema}.{table_name}"


class PostgreSQL(SpecDB, StatusDB):
    """Pooled PostgreSQL client.

    Every statement runs on its own and commits immediately; concurrent label
    writers are reconciled through the per-row ``version`` column rather than
    transactions or locks.

    ``sleep`` waits between retry attempts; a callable returning True (such as
    ``threading.Event.wait`` once the event is set) abandons the remaining
    attempts.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        min_connections: int = 1,
        max_connections: int = 10,
        pool=None,
        retry_attempts: int = OPTIMISTIC_CONCURRENCY_RETRIES,
        backoff_factory: Optional[Callable[[], IntervalPolicy]] = None,
        sleep: Callable[[float], Optional[bool]] = time.sleep,
    ) -> None:
        if pool is None:
            if not database_url:
                raise ValueError("database_url is required when no pool is given")
            try:
                pool = ThreadedConnectionPool(
                    minconn=min_connections,
                    maxconn=max_connections,
                    dsn=database_url,
                )
            except psycopg2.Error as exc:
                raise DatabaseError(f"unable to connect to db: {exc}") from exc
            LOG.info("database connection pool initialized")

        self._pool = pool
        self._retry_attempts = retry_attempts
        self._backoff_factory = backoff_factory or (
            lambda: ExponentialBackoffPolicy(RETRY_INTERVAL)
        )
        self._sleep = sleep

    def stop(self) -> None:
        self._pool.closeall()
        LOG.info("database connection pool closed")

    @contextmanager
    def _connection(self) -> Iterator:
        try:
            conn = self._pool.getconn()
        except psycopg2.Error as exc:
            raise DatabaseError(f"unable to get a database connection: {exc}") from exc
        try:
            yield conn
        finally:
            # connections the server dropped are discarded instead of reused
            self._pool.putconn(conn, close=bool(getattr(conn, "closed", False)))

    @staticmethod
    def _rollback(conn) -> None:
        try:
            conn.rollback()
        except psycopg2.Error as exc:
            LOG.warning("failed to roll back database transaction: %s", exc)

    # ------------------------------------------------------------------
    # Spec DB
    # ------------------------------------------------------------------
    def update_label_for_managed_clusters(
        self,
        table_name: str,
        label_key: str,
        label_value: str,
        hub_to_clusters: Dict[str, Set[str]],
    ) -> None:
        if not label_value:
            label_value = DEFAULT_TAG_VALUE

        table = _table(SPEC_SCHEMA, table_name)
        backoff = self._backoff_factory()

        for attempt in range(1, self._retry_attempts + 1):
            self._update_pass(table, label_key, label_value, hub_to_clusters)
            if not hub_to_clusters:
                return

            if attempt < self._retry_attempts:
                LOG.debug(
                    "attempt %d left %d hubs with unsynced clusters, retrying in %ss",
                    attempt,
                    len(hub_to_clusters),
                    backoff.get_interval(),
                )
                if self._sleep(backoff.get_interval()):
                    LOG.info("stop requested, abandoning retries of label %s", label_key)
                    break
                backoff.reset()

        raise IncompleteSyncError(
            f"failed to sync all entries of label {label_key}: {hub_to_clusters}"
        )

    def _update_pass(
        self,
        table: str,
        label_key: str,
        label_value: str,
        hub_to_clusters: Dict[str, Set[str]],
    ) -> None:
        for hub_name in list(hub_to_clusters):
            clusters = hub_to_clusters[hub_name]
            for cluster_name in sorted(clusters):
                try:
                    updated = self._update_labels(
                        table, hub_name, cluster_name, label_key, label_value
                    )
                except DatabaseError as exc:
                    LOG.error(
                        "failed to update labels for cluster %s of hub %s (label %s): %s",
                        cluster_name,
                        hub_name,
                        label_key,
                        exc,
                    )
                    continue
                if not updated:
                    LOG.debug(
                        "optimistic concurrency update of cluster %s/%s lost a race",
                        hub_name,
                        cluster_name,
                    )
                    continue

                clusters.discard(cluster_name)

            if not clusters:
                del hub_to_clusters[hub_name]

    def _update_labels(
        self,
        table: str,
        hub_name: str,
        cluster_name: str,
        label_key: str,
        label_value: str,
    ) -> bool:
        """Apply the label to one row; return False when another writer won."""

        with self._connection() as conn:
            try:
                with conn.cursor() as cursor:
                    cursor.execute(
                        f"SELECT labels, deleted_label_keys, version FROM {table} "
                        "WHERE leaf_hub_name = %s AND managed_cluster_name = %s",
                        (hub_name, cluster_name),
                    )
                    row = cursor.fetchone()

                    if row is None:
                        cursor.execute(
                            f"INSERT INTO {table} (leaf_hub_name, managed_cluster_name, "
                            "labels, deleted_label_keys, version, updated_at) "
                            "VALUES (%s, %s, %s, %s, 0, now()) ON CONFLICT DO NOTHING",
                            (hub_name, cluster_name, Json({label_key: label_value}), Json([])),
                        )
                    else:
                        current_labels, current_deleted, version = row
                        state = merge_labels(
                            current_labels or {},
                            current_deleted or [],
                            label_key,
                            label_value,
                        )
                        cursor.execute(
                            f"UPDATE {table} SET labels = %s, deleted_label_keys = %s, "
                            "version = version + 1, updated_at = now() "
                            "WHERE leaf_hub_name = %s AND managed_cluster_name = %s "
                            "AND version = %s",
                            (
                                Json(state.labels),
                                Json(state.deleted_label_keys),
                                hub_name,
                                cluster_name,
                                version,
                            ),
                        )
                    affected = cursor.rowcount
                conn.commit()
            except psycopg2.Error as exc:
                self._rollback(conn)
                raise DatabaseError(
                    f"failed to update {table} for {hub_name}/{cluster_name}: {exc}"
                ) from exc

        return affected > 0

    # ------------------------------------------------------------------
    # Status DB
    # ------------------------------------------------------------------
    def get_accessible_managed_clusters(
        self, table_name: str, filter_clause: str
    ) -> Dict[str, Set[str]]:
        table = _table(STATUS_SCHEMA, table_name)
        query = (
            f"SELECT leaf_hub_name, payload -> 'metadata' ->> 'name' FROM {table} "
            f"WHERE TRUE AND ({filter_clause})"
        )

        hub_to_clusters: Dict[str, Set[str]] = {}
        with self._connection() as conn:
            try:
                with conn.cursor() as cursor:
                    cursor.execute(query)
                    rows = cursor.fetchall()
                conn.commit()
            except psycopg2.Error as exc:
                self._rollback(conn)
                raise DatabaseError(f"error reading from table {table}: {exc}") from exc

        for hub_name, cluster_name in rows:
            if cluster_name is None:
                continue
            hub_to_clusters.setdefault(hub_name, set()).add(cluster_name)
        return hub_to_clusters
