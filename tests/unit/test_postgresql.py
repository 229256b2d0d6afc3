import psycopg2
import pytest
from psycopg2.pool import PoolError

from hoh_gitops.db import PostgreSQL
from hoh_gitops.exceptions import DatabaseError, IncompleteSyncError

GROUP_KEY = "hub-of-hubs.open-cluster-management.io/grp"
LABELS_TABLE = "managed_clusters_labels"


def unwrap(value):
    # psycopg2.extras.Json keeps the wrapped object on ``adapted``
    return getattr(value, "adapted", value)


class LabelsStore:
    """In-memory stand-in for spec.managed_clusters_labels and status rows."""

    def __init__(self):
        self.rows = {}
        self.status_rows = []
        self.concurrent_writes = {}
        self.failing = set()
        self.statements = []

    def add_row(self, hub, cluster, labels, deleted=(), version=0):
        self.rows[(hub, cluster)] = {
            "labels": dict(labels),
            "deleted_label_keys": list(deleted),
            "version": version,
        }


class FakeCursor:
    def __init__(self, store):
        self.store = store
        self.rowcount = -1
        self._result = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        store = self.store
        store.statements.append(query)
        statement = query.lstrip().split(" ", 1)[0]

        if statement == "SELECT" and "deleted_label_keys" in query:
            key = tuple(params)
            if key in store.failing:
                raise psycopg2.OperationalError("server closed the connection")
            row = store.rows.get(key)
            self._result = (
                [(row["labels"], row["deleted_label_keys"], row["version"])] if row else []
            )
        elif statement == "SELECT":
            self._result = list(store.status_rows)
        elif statement == "INSERT":
            hub, cluster, labels, deleted = params
            if (hub, cluster) in store.rows:
                self.rowcount = 0
                return
            store.add_row(hub, cluster, unwrap(labels), unwrap(deleted))
            self.rowcount = 1
        elif statement == "UPDATE":
            labels, deleted, hub, cluster, version = params
            key = (hub, cluster)
            if store.concurrent_writes.get(key):
                store.concurrent_writes[key] -= 1
                store.rows[key]["version"] += 1
            row = store.rows.get(key)
            if row is None or row["version"] != version:
                self.rowcount = 0
                return
            row["labels"] = unwrap(labels)
            row["deleted_label_keys"] = unwrap(deleted)
            row["version"] += 1
            self.rowcount = 1
        else:
            raise AssertionError(f"unexpected statement {query}")

    def fetchone(self):
        return self._result[0] if self._result else None

    def fetchall(self):
        return list(self._result)


class FakeConnection:
    def __init__(self, store):
        self.store = store
        self.commits = 0
        self.rollbacks = 0
        self.closed = 0

    def cursor(self):
        return FakeCursor(self.store)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


class FakePool:
    def __init__(self, store):
        self.connection = FakeConnection(store)
        self.checked_out = 0
        self.closed = False
        self.discarded = []

    def getconn(self):
        self.checked_out += 1
        return self.connection

    def putconn(self, conn, close=False):
        self.checked_out -= 1
        if close:
            self.discarded.append(conn)

    def closeall(self):
        self.closed = True


def build_db(store):
    sleeps = []
    pool = FakePool(store)
    db = PostgreSQL(pool=pool, sleep=sleeps.append)
    return db, pool, sleeps


def test_new_cluster_row_is_inserted():
    store = LabelsStore()
    db, pool, sleeps = build_db(store)
    hub_to_clusters = {"hub1": {"c1"}}

    db.update_label_for_managed_clusters(LABELS_TABLE, GROUP_KEY, "true", hub_to_clusters)

    assert hub_to_clusters == {}
    assert store.rows[("hub1", "c1")] == {
        "labels": {GROUP_KEY: "true"},
        "deleted_label_keys": [],
        "version": 0,
    }
    assert sleeps == []
    assert pool.checked_out == 0
    assert any("spec.managed_clusters_labels" in query for query in store.statements)


def test_existing_row_is_merged_and_versioned():
    store = LabelsStore()
    store.add_row("hub1", "c1", {"k1": "v1"}, version=3)
    db, _, _ = build_db(store)

    db.update_label_for_managed_clusters(LABELS_TABLE, GROUP_KEY, "true", {"hub1": {"c1"}})

    assert store.rows[("hub1", "c1")] == {
        "labels": {GROUP_KEY: "true"},
        "deleted_label_keys": ["k1"],
        "version": 4,
    }


def test_empty_label_value_defaults_to_true():
    store = LabelsStore()
    db, _, _ = build_db(store)

    db.update_label_for_managed_clusters(LABELS_TABLE, GROUP_KEY, "", {"hub1": {"c1"}})

    assert store.rows[("hub1", "c1")]["labels"] == {GROUP_KEY: "true"}


def test_lost_race_is_retried_after_backoff():
    store = LabelsStore()
    store.add_row("hub1", "c1", {}, version=1)
    store.add_row("hub1", "c2", {}, version=1)
    store.concurrent_writes[("hub1", "c1")] = 1
    db, _, sleeps = build_db(store)

    db.update_label_for_managed_clusters(
        LABELS_TABLE, GROUP_KEY, "true", {"hub1": {"c1", "c2"}}
    )

    assert sleeps == [5.0]
    assert store.rows[("hub1", "c1")]["version"] == 3
    assert store.rows[("hub1", "c1")]["labels"] == {GROUP_KEY: "true"}
    assert store.rows[("hub1", "c2")]["version"] == 2


def test_exhausted_retries_report_remaining_entries():
    store = LabelsStore()
    store.add_row("hub1", "c1", {}, version=0)
    store.add_row("hub2", "c2", {}, version=0)
    store.concurrent_writes[("hub1", "c1")] = 100
    db, _, sleeps = build_db(store)
    hub_to_clusters = {"hub1": {"c1"}, "hub2": {"c2"}}

    with pytest.raises(IncompleteSyncError):
        db.update_label_for_managed_clusters(LABELS_TABLE, GROUP_KEY, "true", hub_to_clusters)

    assert hub_to_clusters == {"hub1": {"c1"}}
    assert sleeps == [5.0, 10.0, 20.0, 40.0]


def test_statement_failure_is_rolled_back_and_retried():
    store = LabelsStore()
    store.failing.add(("hub1", "c1"))
    db, pool, sleeps = build_db(store)
    hub_to_clusters = {"hub1": {"c1", "c2"}}

    with pytest.raises(IncompleteSyncError):
        db.update_label_for_managed_clusters(LABELS_TABLE, GROUP_KEY, "true", hub_to_clusters)

    assert hub_to_clusters == {"hub1": {"c1"}}
    assert ("hub1", "c2") in store.rows
    assert pool.connection.rollbacks == 5
    assert len(sleeps) == 4
    assert pool.checked_out == 0


def test_accessible_managed_clusters():
    store = LabelsStore()
    store.status_rows = [("hub1", "c1"), ("hub1", "c2"), ("hub2", "c3"), ("hub2", None)]
    db, _, _ = build_db(store)

    accessible = db.get_accessible_managed_clusters("managed_clusters", "TRUE")

    assert accessible == {"hub1": {"c1", "c2"}, "hub2": {"c3"}}
    assert store.statements[-1] == (
        "SELECT leaf_hub_name, payload -> 'metadata' ->> 'name' "
        "FROM status.managed_clusters WHERE TRUE AND (TRUE)"
    )


def test_accessible_managed_clusters_failure():
    class BrokenCursor(FakeCursor):
        def execute(self, query, params=None):
            raise psycopg2.OperationalError("boom")

    store = LabelsStore()
    db, pool, _ = build_db(store)
    pool.connection.cursor = lambda: BrokenCursor(store)

    with pytest.raises(DatabaseError):
        db.get_accessible_managed_clusters("managed_clusters", "FALSE")
    assert pool.connection.rollbacks == 1


def test_invalid_table_name_rejected():
    db, _, _ = build_db(LabelsStore())

    with pytest.raises(ValueError):
        db.get_accessible_managed_clusters("clusters; DROP TABLE x", "TRUE")


def test_stop_closes_pool():
    db, pool, _ = build_db(LabelsStore())

    db.stop()

    assert pool.closed is True


def test_database_url_required_without_pool():
    with pytest.raises(ValueError):
        PostgreSQL()


class ExhaustedPool(FakePool):
    def getconn(self):
        raise PoolError("connection pool exhausted")


def test_pool_exhaustion_raises_database_error():
    db = PostgreSQL(pool=ExhaustedPool(LabelsStore()))

    with pytest.raises(DatabaseError):
        db.get_accessible_managed_clusters("managed_clusters", "TRUE")


def test_pool_exhaustion_leaves_entries_unsynced():
    sleeps = []
    db = PostgreSQL(pool=ExhaustedPool(LabelsStore()), sleep=sleeps.append)
    hub_to_clusters = {"hub1": {"c1"}}

    with pytest.raises(IncompleteSyncError):
        db.update_label_for_managed_clusters(LABELS_TABLE, GROUP_KEY, "true", hub_to_clusters)

    assert hub_to_clusters == {"hub1": {"c1"}}
    assert len(sleeps) == 4


def test_dropped_connection_is_discarded():
    class DroppedConnection(FakeConnection):
        def rollback(self):
            self.closed = 2
            raise psycopg2.InterfaceError("connection already closed")

    store = LabelsStore()
    store.failing.add(("hub1", "c1"))
    db, pool, _ = build_db(store)
    pool.connection = DroppedConnection(store)

    with pytest.raises(IncompleteSyncError):
        db.update_label_for_managed_clusters(LABELS_TABLE, GROUP_KEY, "true", {"hub1": {"c1"}})

    assert pool.discarded and pool.discarded[0] is pool.connection
    assert pool.checked_out == 0


def test_interrupted_backoff_stops_retrying():
    store = LabelsStore()
    store.add_row("hub1", "c1", {}, version=0)
    store.concurrent_writes[("hub1", "c1")] = 100
    sleeps = []

    def stopped_wait(interval):
        sleeps.append(interval)
        return True

    db = PostgreSQL(pool=FakePool(store), sleep=stopped_wait)
    hub_to_clusters = {"hub1": {"c1"}}

    with pytest.raises(IncompleteSyncError):
        db.update_label_for_managed_clusters(LABELS_TABLE, GROUP_KEY, "true", hub_to_clusters)

    assert sleeps == [5.0]
    assert store.concurrent_writes[("hub1", "c1")] == 99
    assert hub_to_clusters == {"hub1": {"c1"}}
