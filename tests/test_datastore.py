"""
Tests for the structured data store: SQLite backend CRUD, equality filters,
error translation, and the DynamoDB adapter against a mocked boto3 resource.
"""
import sqlite3
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from training_portal.datastore import DynamoDataStore, SqliteDataStore, _from_dynamo, utc_now_iso
from training_portal.errors import FetchFailed, WriteFailed
from training_portal.models import AssignmentStatus


@pytest.fixture
def db():
    store = SqliteDataStore(":memory:")
    yield store
    store.close()


# ─── SQLite CRUD ─────────────────────────────────────────────────────────────

class TestSqliteCreateGet:
    def test_create_assigns_id_and_timestamps(self, db):
        c = db.courses.create({"title": "Safety"})
        assert c.id
        assert c.created_at and c.created_at.endswith("Z")
        assert c.created_at == c.updated_at

    def test_ids_are_unique(self, db):
        a = db.courses.create({"title": "A"})
        b = db.courses.create({"title": "B"})
        assert a.id != b.id

    def test_get_round_trips_fields(self, db):
        c = db.courses.create({"title": "Emergency", "passing_score": 85, "video_key": "courses/videos/1_e.mp4"})
        got = db.courses.get(c.id)
        assert got.passing_score == 85
        assert got.video_key == "courses/videos/1_e.mp4"

    def test_camel_case_fields_accepted(self, db):
        c = db.courses.create({"title": "Safety", "passingScore": 60})
        assert c.passing_score == 60

    def test_get_missing_returns_none(self, db):
        assert db.courses.get("nope") is None

    def test_invalid_record_is_write_failed(self, db):
        with pytest.raises(WriteFailed) as exc_info:
            db.questions.create({"course_id": "c1", "question": "Q?", "options": ["A", "B"], "correct_answer": 5})
        assert exc_info.value.errors

    def test_models_do_not_share_ids_namespace(self, db):
        c = db.courses.create({"title": "Safety"})
        assert db.employees.get(c.id) is None


class TestSqliteList:
    def test_list_all_in_insertion_order(self, db):
        titles = ["One", "Two", "Three"]
        for t in titles:
            db.courses.create({"title": t})
        assert [c.title for c in db.courses.list()] == titles

    def test_equality_filter_snake_case(self, db):
        db.questions.create({"course_id": "c1", "question": "Q1", "options": ["A", "B"], "correct_answer": 0})
        db.questions.create({"course_id": "c2", "question": "Q2", "options": ["A", "B"], "correct_answer": 1})
        got = db.questions.list(course_id="c1")
        assert [q.question for q in got] == ["Q1"]

    def test_equality_filter_camel_case(self, db):
        db.employees.create({"user_id": "sub-1", "email": "a@x.com", "name": "A"})
        assert len(db.employees.list(userId="sub-1")) == 1

    def test_filter_on_enum_value(self, db):
        db.assignments.create({"employee_id": "e1", "course_id": "c1"})
        db.assignments.create({"employee_id": "e1", "course_id": "c2", "status": AssignmentStatus.COMPLETED})
        done = db.assignments.list(status=AssignmentStatus.COMPLETED)
        assert [a.course_id for a in done] == ["c2"]

    def test_filter_on_bool(self, db):
        db.employees.create({"user_id": "s1", "email": "a@x.com", "name": "A", "is_active": True})
        db.employees.create({"user_id": "s2", "email": "b@x.com", "name": "B", "is_active": False})
        assert [e.user_id for e in db.employees.list(is_active=False)] == ["s2"]

    def test_filter_no_match_is_empty(self, db):
        assert db.questions.list(course_id="missing") == []

    def test_unknown_filter_field_is_fetch_failed(self, db):
        with pytest.raises(FetchFailed):
            db.courses.list(colour="red")


class TestSqliteUpdateDelete:
    def test_update_merges_fields(self, db):
        c = db.courses.create({"title": "Safety", "passing_score": 80})
        updated = db.courses.update(c.id, {"passing_score": 90})
        assert updated.title == "Safety"
        assert updated.passing_score == 90
        assert db.courses.get(c.id).passing_score == 90

    def test_update_keeps_id_and_created_at(self, db):
        c = db.courses.create({"title": "Safety"})
        updated = db.courses.update(c.id, {"id": "hijack", "created_at": "1970-01-01T00:00:00Z", "title": "New"})
        assert updated.id == c.id
        assert updated.created_at == c.created_at

    def test_update_missing_is_write_failed(self, db):
        with pytest.raises(WriteFailed):
            db.courses.update("nope", {"title": "X"})

    def test_update_invalid_is_write_failed(self, db):
        c = db.courses.create({"title": "Safety"})
        with pytest.raises(WriteFailed):
            db.courses.update(c.id, {"passing_score": 500})

    def test_delete_removes(self, db):
        c = db.courses.create({"title": "Safety"})
        db.courses.delete(c.id)
        assert db.courses.get(c.id) is None

    def test_delete_missing_is_write_failed(self, db):
        with pytest.raises(WriteFailed):
            db.courses.delete("nope")


class TestSqliteDriverErrors:
    def test_closed_connection_read_is_fetch_failed(self):
        store = SqliteDataStore(":memory:")
        store.close()
        with pytest.raises(FetchFailed):
            store.courses.list()

    def test_closed_connection_write_is_write_failed(self):
        store = SqliteDataStore(":memory:")
        store.close()
        with pytest.raises(WriteFailed):
            store.courses.create({"title": "Safety"})

    def test_file_backed_store_persists(self, tmp_path):
        path = str(tmp_path / "portal.db")
        first = SqliteDataStore(path)
        c = first.courses.create({"title": "Safety"})
        first.close()
        second = SqliteDataStore(path)
        assert second.courses.get(c.id).title == "Safety"
        second.close()

    def test_driver_errors_declared(self):
        assert SqliteDataStore.driver_errors == (sqlite3.Error,)


class TestSqliteInvalidStoredRows:
    def _raw_course(self, db, **fields):
        row = {"id": "c-bad", "title": "Legacy", "createdAt": utc_now_iso(), "updatedAt": utc_now_iso()}
        row.update(fields)
        db._insert("Course", row)
        return row["id"]

    def test_get_invalid_row_is_fetch_failed(self, db):
        course_id = self._raw_course(db, passingScore=150)
        with pytest.raises(FetchFailed) as exc_info:
            db.courses.get(course_id)
        assert any("passingScore" in m for m in exc_info.value.errors)

    def test_list_invalid_row_is_fetch_failed(self, db):
        self._raw_course(db, title="")
        with pytest.raises(FetchFailed):
            db.courses.list()


def test_utc_now_iso_format():
    stamp = utc_now_iso()
    assert stamp.endswith("Z")
    assert "T" in stamp


# ─── DynamoDB adapter ────────────────────────────────────────────────────────

def _client_error(op="Scan"):
    return ClientError({"Error": {"Code": "ResourceNotFoundException", "Message": "no table"}}, op)


@pytest.fixture
def ddb():
    resource = MagicMock()
    tables = {}

    def _table(name):
        return tables.setdefault(name, MagicMock(name=name))

    resource.Table.side_effect = _table
    store = DynamoDataStore("ca-central-1", "-abc-NONE", resource=resource)
    return store, resource, tables


class TestDynamoDataStore:
    def test_table_name_uses_suffix(self, ddb):
        store, resource, tables = ddb
        tables["Course-abc-NONE"] = MagicMock()
        tables["Course-abc-NONE"].get_item.return_value = {}
        store.courses.get("c1")
        resource.Table.assert_called_with("Course-abc-NONE")

    def test_create_puts_item_with_typename(self, ddb):
        store, _, tables = ddb
        c = store.courses.create({"title": "Safety", "passing_score": 80})
        item = tables["Course-abc-NONE"].put_item.call_args.kwargs["Item"]
        assert item["__typename"] == "Course"
        assert item["id"] == c.id
        assert item["passingScore"] == 80

    def test_get_converts_decimals(self, ddb):
        store, _, tables = ddb
        table = store._table("Course")
        table.get_item.return_value = {"Item": {
            "id": "c1", "title": "Safety", "passingScore": Decimal("85"), "__typename": "Course",
        }}
        got = store.courses.get("c1")
        assert got.passing_score == 85
        assert isinstance(got.passing_score, int)

    def test_list_follows_pagination(self, ddb):
        store, _, _ = ddb
        table = store._table("QuizQuestion")
        page1 = {"Items": [{"id": "q1", "courseId": "c1", "question": "A?", "options": ["x", "y"], "correctAnswer": Decimal(0)}],
                 "LastEvaluatedKey": {"id": "q1"}}
        page2 = {"Items": [{"id": "q2", "courseId": "c1", "question": "B?", "options": ["x", "y"], "correctAnswer": Decimal(1)}]}
        table.scan.side_effect = [page1, page2]
        got = store.questions.list(course_id="c1")
        assert [q.id for q in got] == ["q1", "q2"]
        assert table.scan.call_args_list[1].kwargs["ExclusiveStartKey"] == {"id": "q1"}
        assert "FilterExpression" in table.scan.call_args_list[0].kwargs

    def test_client_error_on_list_is_fetch_failed(self, ddb):
        store, _, _ = ddb
        store._table("Course").scan.side_effect = _client_error()
        with pytest.raises(FetchFailed):
            store.courses.list()

    def test_client_error_on_create_is_write_failed(self, ddb):
        store, _, _ = ddb
        store._table("Course").put_item.side_effect = _client_error("PutItem")
        with pytest.raises(WriteFailed):
            store.courses.create({"title": "Safety"})

    def test_delete_missing_is_write_failed(self, ddb):
        store, _, _ = ddb
        store._table("Course").delete_item.return_value = {}
        with pytest.raises(WriteFailed):
            store.courses.delete("c1")

    def test_delete_existing(self, ddb):
        store, _, _ = ddb
        table = store._table("Course")
        table.delete_item.return_value = {"Attributes": {"id": "c1"}}
        store.courses.delete("c1")
        table.delete_item.assert_called_once_with(Key={"id": "c1"}, ReturnValues="ALL_OLD")


def test_from_dynamo_keeps_fractional_decimals():
    assert _from_dynamo({"ratio": Decimal("0.5"), "__typename": "X"}) == {"ratio": 0.5}
