"""In-memory RowStore used by service and API tests."""

import copy
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from clients.row_store import COLLECTIONS, parse_filter_key
from core.exceptions import PersistenceError

# Primary clinic and its staff member - use for single-clinic tests
CLINIC_ID = UUID("00000000-0000-0000-0000-00000000c001")
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")

# Secondary clinic - use for isolation tests
CLINIC_B_ID = UUID("00000000-0000-0000-0000-00000000c002")
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")

# Authenticated user with no profile row
ORPHAN_USER_ID = UUID("00000000-0000-0000-0000-000000000009")

CREATED_AT = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _matches(row: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    for key, expected in (filters or {}).items():
        column, op = parse_filter_key(key)
        actual = row.get(column)

        if op == "isnull":
            if (actual is None) != bool(expected):
                return False
        elif op == "in":
            if actual not in list(expected):
                return False
        elif op == "eq":
            if expected is None:
                if actual is not None:
                    return False
            elif actual != expected:
                return False
        else:
            if actual is None:
                return False
            if op == "gt" and not actual > expected:
                return False
            if op == "gte" and not actual >= expected:
                return False
            if op == "lt" and not actual < expected:
                return False
            if op == "lte" and not actual <= expected:
                return False
    return True


class InMemoryRowStore:
    """
    Same contract as PostgresRowStore, backed by dicts.

    Columns are checked against the real whitelist so a typo in a service
    fails here the way it would against Postgres. Ordering puts NULLs last
    ascending and first descending, as Postgres does.

    Failure injection:
        store.fail_on("insert", "invoice_items")
    makes every later insert into invoice_items raise PersistenceError.

    Every call is recorded in store.calls as (operation, collection).
    """

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {name: [] for name in COLLECTIONS}
        self.calls: list[tuple[str, str]] = []
        self._failures: set[tuple[str, str]] = set()
        self._in_transaction = False

    # -- test helpers ---------------------------------------------------------

    def fail_on(self, operation: str, collection: str) -> None:
        self._failures.add((operation, collection))

    def rows(self, collection: str) -> list[dict[str, Any]]:
        """Raw stored rows, bypassing call recording."""
        return [dict(row) for row in self.tables[collection]]

    def seed(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        self._check_columns(collection, row)
        self.tables[collection].append(dict(row))
        return dict(row)

    # -- RowStore -------------------------------------------------------------

    def _check_columns(self, collection: str, columns) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection}'")
        for column in columns:
            if column not in COLLECTIONS[collection]:
                raise ValueError(f"Unknown column '{column}' on '{collection}'")

    def _record(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        if (operation, collection) in self._failures:
            raise PersistenceError(f"Injected {operation} failure on {collection}")

    def select(self, collection, filters=None, order_by=None, descending=False, limit=None):
        self._record("select", collection)
        self._check_columns(collection, [parse_filter_key(k)[0] for k in (filters or {})])

        rows = [dict(row) for row in self.tables[collection] if _matches(row, filters)]

        if order_by is not None:
            self._check_columns(collection, [order_by])
            rows.sort(
                key=lambda row: (row.get(order_by) is None, row.get(order_by)),
                reverse=descending,
            )

        if limit is not None:
            rows = rows[:limit]
        return rows

    def first(self, collection, filters=None, order_by=None, descending=False):
        rows = self.select(collection, filters, order_by, descending, limit=1)
        return rows[0] if rows else None

    def insert(self, collection, row):
        self._record("insert", collection)
        self._check_columns(collection, row)
        stored = dict(row)
        self.tables[collection].append(stored)
        return dict(stored)

    def update(self, collection, filters, changes):
        self._record("update", collection)
        if not filters:
            raise ValueError(f"Refusing unfiltered UPDATE on '{collection}'")
        self._check_columns(collection, changes)

        updated = []
        for row in self.tables[collection]:
            if _matches(row, filters):
                row.update(changes)
                updated.append(dict(row))
        return updated

    def upsert(self, collection, row, conflict_column="id", update_columns=None):
        self._record("upsert", collection)
        self._check_columns(collection, row)
        if update_columns is None:
            update_columns = row
        for stored in self.tables[collection]:
            if stored.get(conflict_column) == row[conflict_column]:
                stored.update({
                    column: row[column] for column in update_columns if column != conflict_column
                })
                return dict(stored)
        stored = dict(row)
        self.tables[collection].append(stored)
        return dict(stored)

    def delete(self, collection, filters):
        self._record("delete", collection)
        if not filters:
            raise ValueError(f"Refusing unfiltered DELETE on '{collection}'")

        kept = [row for row in self.tables[collection] if not _matches(row, filters)]
        removed = len(self.tables[collection]) - len(kept)
        self.tables[collection] = kept
        return removed

    @contextmanager
    def transaction(self):
        if self._in_transaction:
            yield self
            return

        snapshot = copy.deepcopy(self.tables)
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            self.tables = snapshot
            raise
        finally:
            self._in_transaction = False
