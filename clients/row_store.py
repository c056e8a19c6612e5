"""
Generic row persistence over named collections.

Services never write SQL. They call select/insert/update/upsert/delete with
a collection name and plain dicts, and wrap multi-row writes in
transaction(). Collections and columns are whitelisted so that identifiers
interpolated into SQL can never come from request data.

Filter keys use a column__operator suffix:
    {"clinic_id": cid}                      -> clinic_id = %s
    {"status__in": ["draft", "sent"]}       -> status = ANY(%s)
    {"start_time__gte": start}              -> start_time >= %s
    {"appointment_number__isnull": False}   -> appointment_number IS NOT NULL
    {"vet_id": None}                        -> vet_id IS NULL
"""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterable, Iterator, Protocol

import psycopg2
import psycopg2.extras

from clients.postgres_client import PostgresClient
from core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

COLLECTIONS: dict[str, frozenset[str]] = {
    "clinics": frozenset({
        "id", "name", "address", "phone", "email", "created_at",
    }),
    "profiles": frozenset({
        "id", "clinic_id", "full_name", "role", "created_at",
    }),
    "owners": frozenset({
        "id", "clinic_id", "first_name", "last_name",
        "email", "phone", "address", "created_at",
    }),
    "pets": frozenset({
        "id", "clinic_id", "owner_id", "name", "species", "breed",
        "date_of_birth", "sex", "weight_kg", "notes", "created_at",
    }),
    "appointments": frozenset({
        "id", "clinic_id", "pet_id", "vet_id", "start_time", "end_time",
        "reason", "notes", "status", "room", "appointment_number", "created_at",
    }),
    "appointment_vitals": frozenset({
        "id", "appointment_id", "weight_lbs", "temperature_f",
        "heart_rate_bpm", "created_at",
    }),
    "appointment_prescriptions": frozenset({
        "id", "appointment_id", "item_name", "type", "dosage_instructions",
        "quantity", "status", "created_at",
    }),
    "appointment_recommendations": frozenset({
        "id", "appointment_id", "title", "description", "priority", "created_at",
    }),
    "invoices": frozenset({
        "id", "clinic_id", "owner_id", "appointment_id", "invoice_number",
        "status", "total", "issue_date", "due_date", "notes", "created_at",
    }),
    "invoice_items": frozenset({
        "id", "invoice_id", "description", "quantity", "unit_price",
    }),
    "audit_log": frozenset({
        "id", "clinic_id", "user_id", "entity_type", "entity_id",
        "action", "changes", "created_at",
    }),
}

_COMPARISONS = {
    "eq": "=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
}

OPERATORS = frozenset(_COMPARISONS) | {"in", "isnull"}


class RowStore(Protocol):
    """Persistence collaborator used by every service."""

    def select(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    def first(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> dict[str, Any] | None: ...

    def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]: ...

    def update(
        self, collection: str, filters: dict[str, Any], changes: dict[str, Any]
    ) -> list[dict[str, Any]]: ...

    def upsert(
        self,
        collection: str,
        row: dict[str, Any],
        conflict_column: str = "id",
        update_columns: Iterable[str] | None = None,
    ) -> dict[str, Any]: ...

    def delete(self, collection: str, filters: dict[str, Any]) -> int: ...

    def transaction(self) -> Any: ...


def parse_filter_key(key: str) -> tuple[str, str]:
    """Split 'start_time__gte' into ('start_time', 'gte')."""
    column, _, op = key.partition("__")
    op = op or "eq"
    if op not in OPERATORS:
        raise ValueError(f"Unknown filter operator '{op}' in '{key}'")
    return column, op


def _columns(collection: str) -> frozenset[str]:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection '{collection}'")


def _check_column(collection: str, column: str) -> None:
    if column not in _columns(collection):
        raise ValueError(f"Unknown column '{column}' on '{collection}'")


def build_where(collection: str, filters: dict[str, Any] | None) -> tuple[str, list[Any]]:
    """Build a WHERE clause (empty string when unfiltered) and its params."""
    if not filters:
        return "", []

    parts = []
    params: list[Any] = []
    for key, value in filters.items():
        column, op = parse_filter_key(key)
        _check_column(collection, column)

        if op == "isnull":
            parts.append(f"{column} IS NULL" if value else f"{column} IS NOT NULL")
        elif op == "in":
            parts.append(f"{column} = ANY(%s)")
            params.append(list(value))
        elif value is None and op == "eq":
            parts.append(f"{column} IS NULL")
        else:
            parts.append(f"{column} {_COMPARISONS[op]} %s")
            params.append(value)

    return " WHERE " + " AND ".join(parts), params


def build_select(
    collection: str,
    filters: dict[str, Any] | None = None,
    order_by: str | None = None,
    descending: bool = False,
    limit: int | None = None,
) -> tuple[str, list[Any]]:
    where, params = build_where(collection, filters)
    sql = f"SELECT * FROM {collection}{where}"

    if order_by is not None:
        _check_column(collection, order_by)
        sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"

    if limit is not None:
        sql += " LIMIT %s"
        params.append(limit)

    return sql, params


def build_insert(collection: str, row: dict[str, Any]) -> tuple[str, list[Any]]:
    for column in row:
        _check_column(collection, column)

    columns = ", ".join(row)
    placeholders = ", ".join(["%s"] * len(row))
    sql = f"INSERT INTO {collection} ({columns}) VALUES ({placeholders}) RETURNING *"
    return sql, list(row.values())


def build_update(
    collection: str, filters: dict[str, Any], changes: dict[str, Any]
) -> tuple[str, list[Any]]:
    if not filters:
        raise ValueError(f"Refusing unfiltered UPDATE on '{collection}'")
    if not changes:
        raise ValueError(f"No columns to update on '{collection}'")

    for column in changes:
        _check_column(collection, column)

    set_clause = ", ".join(f"{column} = %s" for column in changes)
    where, where_params = build_where(collection, filters)
    sql = f"UPDATE {collection} SET {set_clause}{where} RETURNING *"
    return sql, list(changes.values()) + where_params


def build_upsert(
    collection: str,
    row: dict[str, Any],
    conflict_column: str = "id",
    update_columns: Iterable[str] | None = None,
) -> tuple[str, list[Any]]:
    """
    INSERT ... ON CONFLICT. On conflict only update_columns are overwritten
    (default: every supplied column except the conflict column).
    """
    _check_column(collection, conflict_column)
    if conflict_column not in row:
        raise ValueError(f"Upsert on '{collection}' requires '{conflict_column}'")

    insert_sql, params = build_insert(collection, row)
    insert_sql = insert_sql.removesuffix(" RETURNING *")

    if update_columns is None:
        updates = [column for column in row if column != conflict_column]
    else:
        updates = [column for column in update_columns if column != conflict_column]
        for column in updates:
            if column not in row:
                raise ValueError(
                    f"Upsert on '{collection}' updates '{column}' but the row has no value for it"
                )

    if updates:
        set_clause = ", ".join(f"{column} = EXCLUDED.{column}" for column in updates)
        conflict = f" ON CONFLICT ({conflict_column}) DO UPDATE SET {set_clause}"
    else:
        conflict = f" ON CONFLICT ({conflict_column}) DO NOTHING"

    return f"{insert_sql}{conflict} RETURNING *", params


def build_delete(collection: str, filters: dict[str, Any]) -> tuple[str, list[Any]]:
    if not filters:
        raise ValueError(f"Refusing unfiltered DELETE on '{collection}'")

    where, params = build_where(collection, filters)
    return f"DELETE FROM {collection}{where} RETURNING id", params


def _adapt_value(value: Any) -> Any:
    if isinstance(value, dict):
        return psycopg2.extras.Json(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_adapt_value(v) for v in value]
    return value


def _adapt(values: list[Any]) -> tuple:
    """Wrap dict values (JSONB columns) and unwrap enums for psycopg2."""
    return tuple(_adapt_value(v) for v in values)


class PostgresRowStore:
    """
    RowStore backed by PostgresClient.

    Outside a transaction each call commits on its own. Inside
    `with store.transaction() as tx:` every call on tx shares one
    connection and commits or rolls back together.
    """

    def __init__(self, postgres: PostgresClient, _transaction=None):
        self.postgres = postgres
        self._transaction = _transaction

    def _run(self, sql: str, params: list[Any]) -> list[dict[str, Any]]:
        executor = self._transaction or self.postgres
        try:
            return executor.execute(sql, _adapt(params))
        except psycopg2.Error as e:
            logger.error(f"Row store query failed: {e}")
            raise PersistenceError(f"Database error: {e}") from e

    def select(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        sql, params = build_select(collection, filters, order_by, descending, limit)
        return self._run(sql, params)

    def first(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> dict[str, Any] | None:
        rows = self.select(collection, filters, order_by, descending, limit=1)
        return rows[0] if rows else None

    def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        sql, params = build_insert(collection, row)
        return self._run(sql, params)[0]

    def update(
        self, collection: str, filters: dict[str, Any], changes: dict[str, Any]
    ) -> list[dict[str, Any]]:
        sql, params = build_update(collection, filters, changes)
        return self._run(sql, params)

    def upsert(
        self,
        collection: str,
        row: dict[str, Any],
        conflict_column: str = "id",
        update_columns: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        sql, params = build_upsert(collection, row, conflict_column, update_columns)
        rows = self._run(sql, params)
        if rows:
            return rows[0]
        # DO NOTHING path returns no row
        return self.first(collection, {conflict_column: row[conflict_column]})

    def delete(self, collection: str, filters: dict[str, Any]) -> int:
        sql, params = build_delete(collection, filters)
        return len(self._run(sql, params))

    @contextmanager
    def transaction(self) -> Iterator["PostgresRowStore"]:
        """Group writes atomically. Nested calls join the outer transaction."""
        if self._transaction is not None:
            yield self
            return

        try:
            with self.postgres.transaction() as tx:
                yield PostgresRowStore(self.postgres, _transaction=tx)
        except psycopg2.Error as e:
            logger.error(f"Transaction failed: {e}")
            raise PersistenceError(f"Database error: {e}") from e
