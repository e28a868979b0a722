"""
training_portal/datastore.py — Structured data store contract
=============================================================
Every entity (Course, QuizQuestion, Employee, Assignment, Result) is reached
through an ``EntityCollection`` exposing the five operations the workflow
needs::

    list(**equality_filter) -> list[T]
    get(id)                 -> T | None
    create(fields)          -> T
    update(id, fields)      -> T
    delete(id)              -> None

Filters are simple equality on record fields (in practice one foreign key,
e.g. ``courseId == X``).  Field names may be given snake_case or camelCase.

Design decisions
----------------
- **Ids and timestamps are assigned here**, never by callers: ids are uuid4
  strings, ``createdAt`` / ``updatedAt`` are ISO-8601 UTC strings.
- **Driver errors never leak**: reads raise ``FetchFailed``, writes raise
  ``WriteFailed``.  A stored row that no longer validates is a read
  failure too.  ``get`` of a missing id returns None; ``update`` /
  ``delete`` of a missing id raise ``WriteFailed``.
- **List order is insertion order** for SQLite and scan order for DynamoDB.
  Callers must not rely on it being stable.

Backends
--------
  SqliteDataStore   one ``records`` table, JSON document per row (local mode)
  DynamoDataStore   one DynamoDB table per model (live mode, boto3)
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from training_portal.errors import FetchFailed, WriteFailed
from training_portal.models import (
    ENTITY_MODELS,
    Assignment,
    Course,
    Employee,
    Entity,
    QuizQuestion,
    Result,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Entity)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _wire_key(key: str) -> str:
    return to_camel(key) if "_" in key else key


def _wire_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _error_messages(exc: ValidationError) -> list[str]:
    return [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()]


def _wire_fields(fields: dict) -> dict:
    return {_wire_key(k): _wire_value(v) for k, v in fields.items()}


# ─── Per-entity collection ───────────────────────────────────────────────────

class EntityCollection(Generic[T]):
    """CRUD operations for one entity model on top of a backend."""

    def __init__(self, backend: "DataStore", model_name: str):
        self._backend = backend
        self.model_name = model_name
        self.model: type[T] = ENTITY_MODELS[model_name]  # type: ignore[assignment]
        self._known = {f.alias or to_camel(n) for n, f in self.model.model_fields.items()}

    def __repr__(self) -> str:
        return f"<EntityCollection {self.model_name}>"

    # ── Reads ────────────────────────────────────────────────────────────────

    def list(self, **filters: Any) -> list[T]:
        where = _wire_fields(filters)
        unknown = set(where) - self._known
        if unknown:
            raise FetchFailed(f"{self.model_name}: unknown filter field(s) {sorted(unknown)}")
        try:
            rows = self._backend._select(self.model_name, where)
        except self._backend.driver_errors as exc:
            logger.error("List %s failed (filter=%s): %s", self.model_name, where, exc)
            raise FetchFailed(f"Failed to fetch {self.model_name} records", [str(exc)]) from exc
        return [self._loaded(r) for r in rows]

    def get(self, record_id: str) -> Optional[T]:
        try:
            row = self._backend._fetch(self.model_name, record_id)
        except self._backend.driver_errors as exc:
            logger.error("Get %s %s failed: %s", self.model_name, record_id, exc)
            raise FetchFailed(f"Failed to fetch {self.model_name} {record_id}", [str(exc)]) from exc
        return None if row is None else self._loaded(row)

    def _loaded(self, row: dict) -> T:
        # Stored rows may predate or bypass our validation rules
        try:
            return self.model.model_validate(row)
        except ValidationError as exc:
            messages = _error_messages(exc)
            logger.error("Stored %s %s is invalid: %s", self.model_name, row.get("id"), messages)
            raise FetchFailed(f"Invalid stored {self.model_name} {row.get('id')}", messages) from exc

    # ── Writes ───────────────────────────────────────────────────────────────

    def create(self, fields: dict) -> T:
        now = utc_now_iso()
        record = _wire_fields(fields)
        record.setdefault("id", str(uuid.uuid4()))
        record["createdAt"] = now
        record["updatedAt"] = now
        entity = self._validated(record)
        try:
            self._backend._insert(self.model_name, entity.to_record())
        except self._backend.driver_errors as exc:
            logger.error("Create %s failed: %s", self.model_name, exc)
            raise WriteFailed(f"Failed to create {self.model_name}", [str(exc)]) from exc
        return entity

    def update(self, record_id: str, fields: dict) -> T:
        try:
            current = self._backend._fetch(self.model_name, record_id)
        except self._backend.driver_errors as exc:
            raise WriteFailed(f"Failed to update {self.model_name} {record_id}", [str(exc)]) from exc
        if current is None:
            raise WriteFailed(f"{self.model_name} {record_id} does not exist")

        changes = _wire_fields(fields)
        changes.pop("id", None)
        changes.pop("createdAt", None)
        merged = {**current, **changes, "updatedAt": utc_now_iso()}
        entity = self._validated(merged)
        try:
            self._backend._replace(self.model_name, entity.to_record())
        except self._backend.driver_errors as exc:
            logger.error("Update %s %s failed: %s", self.model_name, record_id, exc)
            raise WriteFailed(f"Failed to update {self.model_name} {record_id}", [str(exc)]) from exc
        return entity

    def delete(self, record_id: str) -> None:
        try:
            removed = self._backend._remove(self.model_name, record_id)
        except self._backend.driver_errors as exc:
            logger.error("Delete %s %s failed: %s", self.model_name, record_id, exc)
            raise WriteFailed(f"Failed to delete {self.model_name} {record_id}", [str(exc)]) from exc
        if not removed:
            raise WriteFailed(f"{self.model_name} {record_id} does not exist")

    def _validated(self, record: dict) -> T:
        try:
            return self.model.model_validate(record)
        except ValidationError as exc:
            messages = _error_messages(exc)
            logger.warning("Rejected %s write: %s", self.model_name, messages)
            raise WriteFailed(f"Invalid {self.model_name}", messages) from exc


# ─── Backend base ────────────────────────────────────────────────────────────

class DataStore:
    """
    Service handle for the structured data store.

    Subclasses implement the five record primitives and declare which driver
    exceptions they raise; the collections do validation, id/timestamp
    assignment and error translation.
    """

    driver_errors: tuple[type[BaseException], ...] = ()

    def __init__(self) -> None:
        self.courses:     EntityCollection[Course]       = EntityCollection(self, "Course")
        self.questions:   EntityCollection[QuizQuestion] = EntityCollection(self, "QuizQuestion")
        self.employees:   EntityCollection[Employee]     = EntityCollection(self, "Employee")
        self.assignments: EntityCollection[Assignment]   = EntityCollection(self, "Assignment")
        self.results:     EntityCollection[Result]       = EntityCollection(self, "Result")

    def _select(self, model: str, where: dict) -> list[dict]:
        raise NotImplementedError

    def _fetch(self, model: str, record_id: str) -> Optional[dict]:
        raise NotImplementedError

    def _insert(self, model: str, record: dict) -> None:
        raise NotImplementedError

    def _replace(self, model: str, record: dict) -> None:
        raise NotImplementedError

    def _remove(self, model: str, record_id: str) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        pass


# ─── SQLite backend (local mode) ─────────────────────────────────────────────

class SqliteDataStore(DataStore):
    """
    Single ``records`` table keyed by (model, id) with the wire-shaped JSON
    document in ``data_json``.  One shared connection guarded by a lock, so
    the joined concurrent reads issued by the admin views are safe.
    Pass ``":memory:"`` for a throwaway store.
    """

    driver_errors = (sqlite3.Error,)

    def __init__(self, db_path: str = ":memory:"):
        super().__init__()
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self.init_db()

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        with self._lock:
            self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS records (
                seq         INTEGER PRIMARY KEY AUTOINCREMENT,
                model       TEXT    NOT NULL,
                id          TEXT    NOT NULL,
                data_json   TEXT    NOT NULL,
                created_at  TEXT    NOT NULL,
                updated_at  TEXT    NOT NULL,
                UNIQUE (model, id)
            );
            CREATE INDEX IF NOT EXISTS idx_records_model ON records (model);
            """)
            self._conn.commit()

    def _select(self, model: str, where: dict) -> list[dict]:
        sql = "SELECT data_json FROM records WHERE model = ?"
        params: list[Any] = [model]
        for key, value in where.items():
            sql += " AND json_extract(data_json, ?) = ?"
            params += [f"$.{key}", int(value) if isinstance(value, bool) else value]
        sql += " ORDER BY seq"
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [json.loads(r["data_json"]) for r in rows]

    def _fetch(self, model: str, record_id: str) -> Optional[dict]:
        with self._lock:
            row = self._conn.execute(
                "SELECT data_json FROM records WHERE model = ? AND id = ?",
                (model, record_id),
            ).fetchone()
        return None if row is None else json.loads(row["data_json"])

    def _insert(self, model: str, record: dict) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO records (model, id, data_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (model, record["id"], json.dumps(record), record["createdAt"], record["updatedAt"]),
            )
            self._conn.commit()

    def _replace(self, model: str, record: dict) -> None:
        with self._lock:
            self._conn.execute(
                "UPDATE records SET data_json = ?, updated_at = ? WHERE model = ? AND id = ?",
                (json.dumps(record), record["updatedAt"], model, record["id"]),
            )
            self._conn.commit()

    def _remove(self, model: str, record_id: str) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "DELETE FROM records WHERE model = ? AND id = ?", (model, record_id)
            )
            self._conn.commit()
        return cur.rowcount > 0

    def close(self) -> None:
        with self._lock:
            self._conn.close()


# ─── DynamoDB backend (live mode) ────────────────────────────────────────────

class DynamoDataStore(DataStore):
    """
    One DynamoDB table per model, named ``{Model}{table_suffix}`` (the
    managed backend names its tables ``Course-<apiId>-<env>``).  Filters are
    scans with an equality ``FilterExpression``; pages are followed until
    ``LastEvaluatedKey`` is exhausted.
    """

    def __init__(self, region: str, table_suffix: str, resource: Any = None):
        import boto3
        from botocore.exceptions import BotoCoreError, ClientError

        super().__init__()
        self.driver_errors = (BotoCoreError, ClientError)
        self._ddb = resource or boto3.resource("dynamodb", region_name=region)
        self._suffix = table_suffix

    def _table(self, model: str):
        return self._ddb.Table(f"{model}{self._suffix}")

    def _select(self, model: str, where: dict) -> list[dict]:
        from boto3.dynamodb.conditions import Attr

        kwargs: dict[str, Any] = {}
        for key, value in where.items():
            cond = Attr(key).eq(value)
            kwargs["FilterExpression"] = cond if "FilterExpression" not in kwargs else kwargs["FilterExpression"] & cond

        table = self._table(model)
        items: list[dict] = []
        while True:
            page = table.scan(**kwargs)
            items.extend(page.get("Items", []))
            if "LastEvaluatedKey" not in page:
                return [_from_dynamo(i) for i in items]
            kwargs["ExclusiveStartKey"] = page["LastEvaluatedKey"]

    def _fetch(self, model: str, record_id: str) -> Optional[dict]:
        item = self._table(model).get_item(Key={"id": record_id}).get("Item")
        return None if item is None else _from_dynamo(item)

    def _insert(self, model: str, record: dict) -> None:
        self._table(model).put_item(Item={**record, "__typename": model})

    def _replace(self, model: str, record: dict) -> None:
        self._table(model).put_item(Item={**record, "__typename": model})

    def _remove(self, model: str, record_id: str) -> bool:
        resp = self._table(model).delete_item(Key={"id": record_id}, ReturnValues="ALL_OLD")
        return "Attributes" in resp


def _from_dynamo(item: dict) -> dict:
    """DynamoDB returns numbers as Decimal; the models want plain ints."""
    from decimal import Decimal

    out = {}
    for k, v in item.items():
        if k == "__typename":
            continue
        if isinstance(v, Decimal):
            v = int(v) if v == v.to_integral_value() else float(v)
        out[k] = v
    return out
