"""Tests for turning cell edits into row UPDATEs."""

import pytest

from sqldesk.adapters import MySQLAdapter, PostgreSQLAdapter, Session
from sqldesk.errors import ReadOnlyResultError, ReconcileError
from sqldesk.reconciler import (
    ByFullRowMatch,
    ByPrimaryKey,
    EditSession,
    format_sql_with_params,
    row_identity,
)
from sqldesk.tables import TableNameResolver, TableRef

PG = PostgreSQLAdapter()


class FakeWriteSession:
    """Records writes; fails on any UPDATE whose params contain ``fail_on``."""

    def __init__(self, dialect, fail_on=None, database=None):
        self.dialect = dialect
        self.database = database
        self.fail_on = fail_on
        self.writes = []

    def execute_write(self, sql, params=()):
        if self.fail_on is not None and self.fail_on in params:
            raise RuntimeError("deadlock detected")
        self.writes.append((sql, tuple(params)))
        return 1


class TestPlan:

    def test_row_with_id_updates_by_id(self):
        edits = EditSession("SELECT * FROM people", [{"id": 7, "name": "a"}])
        edits.set_cell(0, "name", "b")

        [op] = edits.plan(PG)

        assert isinstance(op.target, ByPrimaryKey)
        assert op.where == {"id": 7}
        assert op.assignments == {"name": "b"}
        assert op.sql == 'UPDATE "people" SET "name" = %s WHERE "id" = %s'
        assert op.params == ("b", 7)
        assert not op.ambiguous
        assert op.preview() == 'UPDATE "people" SET "name" = \'b\' WHERE "id" = 7'

    def test_row_without_id_matches_all_original_values(self):
        edits = EditSession("SELECT * FROM people", [{"name": "a", "city": "X"}])
        edits.set_cell(0, "name", "b")

        [op] = edits.plan(PG)

        assert isinstance(op.target, ByFullRowMatch)
        assert op.where == {"name": "a", "city": "X"}
        assert op.assignments == {"name": "b"}
        assert op.sql == 'UPDATE "people" SET "name" = %s WHERE "name" = %s AND "city" = %s'
        assert op.params == ("b", "a", "X")
        assert op.ambiguous

    def test_mysql_quoting(self):
        edits = EditSession("SELECT * FROM shop.people", [{"id": 1, "name": "a"}])
        edits.set_cell(0, "name", "b")
        [op] = edits.plan(MySQLAdapter())
        assert op.sql == "UPDATE `shop`.`people` SET `name` = %s WHERE `id` = %s"

    def test_null_original_uses_is_null(self):
        edits = EditSession("SELECT * FROM t", [{"a": None, "b": 2}])
        edits.set_cell(0, "b", 3)
        [op] = edits.plan(PG)
        assert op.sql == 'UPDATE "t" SET "b" = %s WHERE "a" IS NULL AND "b" = %s'
        assert op.params == (3, 2)

    def test_supplied_primary_key(self):
        edits = EditSession("SELECT * FROM t", [{"code": "A1", "qty": 1}], primary_key=["code"])
        edits.set_cell(0, "qty", 5)
        [op] = edits.plan(PG)
        assert op.where == {"code": "A1"}

    def test_one_update_per_row_in_edit_order(self):
        rows = [{"id": 1, "a": 1, "b": 1}, {"id": 2, "a": 2, "b": 2}]
        edits = EditSession("SELECT * FROM t", rows)
        edits.set_cell(1, "a", 20)
        edits.set_cell(0, "b", 10)
        edits.set_cell(1, "b", 21)

        ops = edits.plan(PG)

        assert [op.row for op in ops] == [1, 0]
        assert ops[0].assignments == {"a": 20, "b": 21}
        assert ops[1].assignments == {"b": 10}

    def test_explicit_target_overrides_inferred_table(self):
        edits = EditSession("SELECT * FROM people", [{"id": 1, "name": "a"}])
        edits.set_cell(0, "name", "b")
        [op] = edits.plan(PG, TableRef("people", schema="archive", database="old"))
        assert op.sql.startswith('UPDATE "archive"."people"')


class TestPendingEdits:

    def test_later_edit_overwrites_same_cell(self):
        edits = EditSession("SELECT * FROM t", [{"id": 1, "name": "a"}])
        edits.set_cell(0, "name", "b")
        edits.set_cell(0, "name", "c")
        assert len(edits.pending) == 1
        assert edits.pending[0].value == "c"
        assert edits.pending[0].old_value == "a"
        assert edits.value_at(0, "name") == "c"

    def test_reverting_removes_edit(self):
        edits = EditSession("SELECT * FROM t", [{"id": 1, "name": "a"}])
        edits.set_cell(0, "name", "b")
        edits.set_cell(0, "name", "a")
        assert not edits.has_changes()

    def test_discard(self):
        edits = EditSession("SELECT * FROM t", [{"id": 1, "n": 1}, {"id": 2, "n": 2}])
        edits.set_cell(0, "n", 5)
        edits.set_cell(1, "n", 6)
        assert edits.discard() == 2
        assert edits.pending == []

    def test_bad_coordinates(self):
        edits = EditSession("SELECT * FROM t", [{"id": 1}])
        with pytest.raises(IndexError):
            edits.set_cell(3, "id", 2)
        with pytest.raises(KeyError):
            edits.set_cell(0, "nope", 2)

    def test_no_table_means_read_only(self):
        edits = EditSession("SELECT 1", [{"1": 1}])
        assert not edits.editable
        with pytest.raises(ReadOnlyResultError):
            edits.set_cell(0, "1", 2)
        assert edits.pending == []
        with pytest.raises(ReadOnlyResultError):
            edits.plan(PG)

    def test_custom_resolver(self):
        class Fixed(TableNameResolver):
            def resolve(self, sql):
                return TableRef("fixed")

        edits = EditSession("SELECT 1", [{"id": 1, "v": 1}], resolver=Fixed())
        assert edits.editable
        edits.set_cell(0, "v", 2)
        assert edits.plan(PG)[0].table == TableRef("fixed")


class TestSave:

    def _people(self, session):
        session.execute("CREATE TABLE people (id INTEGER, name TEXT)")
        session.execute("INSERT INTO people VALUES (1, 'ann'), (2, 'bob')")
        result = session.execute("SELECT * FROM people ORDER BY id")
        return EditSession("SELECT * FROM people ORDER BY id", result.rows, result.columns)

    def test_save_writes_and_clears(self, session, history):
        edits = self._people(session)
        seen = []
        edits.add_refresh_listener(seen.append)
        edits.set_cell(1, "name", "bobby")

        report = edits.save(session, history=history, connection_id=1)

        assert report.rows_saved == 1
        assert report.affected == {1: 1}
        assert report.warnings == []
        assert not edits.has_changes()
        assert seen == [report]
        assert edits.rows[1]["name"] == "bobby"
        assert session.execute("SELECT name FROM people ORDER BY id").rows == [
            {"name": "ann"}, {"name": "bobby"}]
        assert history.entries[0]["query"] == 'UPDATE "people" SET "name" = \'bobby\' WHERE "id" = 2'
        assert history.entries[0]["row_count"] == 1

    def test_duplicate_rows_are_all_updated(self, session):
        # Full-row matching cannot tell duplicates apart; both rows change.
        session.execute("CREATE TABLE dup (name TEXT, city TEXT)")
        session.execute("INSERT INTO dup VALUES ('a', 'X'), ('a', 'X')")
        result = session.execute("SELECT * FROM dup")
        edits = EditSession("SELECT * FROM dup", result.rows[:1], result.columns)
        edits.set_cell(0, "name", "b")

        report = edits.save(session)

        assert report.applied[0].ambiguous
        assert report.affected == {0: 2}
        assert len(report.warnings) == 1
        assert session.execute("SELECT name FROM dup").rows == [{"name": "b"}, {"name": "b"}]

    def test_failure_keeps_earlier_rows_and_restores_rest(self, history):
        rows = [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}, {"id": 3, "name": "c"}]
        edits = EditSession("SELECT * FROM t", rows)
        seen = []
        edits.add_refresh_listener(seen.append)
        for i, value in enumerate(["A", "B", "C"]):
            edits.set_cell(i, "name", value)
        fake = FakeWriteSession(PG, fail_on=2)

        with pytest.raises(ReconcileError) as exc_info:
            edits.save(fake, history=history)

        err = exc_info.value
        assert err.row == 1
        assert str(err) == "Row 2: deadlock detected"
        assert [op.row for op in err.applied] == [0]
        assert len(fake.writes) == 1
        assert edits.pending_rows == [1, 2]
        assert edits.rows[0]["name"] == "A"
        assert seen == []
        assert [e["status"] for e in history.entries] == ["success", "error"]

    def test_save_goes_to_target_database(self, session, sqlite_adapter_class, sqlite_info):
        with Session(sqlite_adapter_class(), sqlite_info, "archive") as archive:
            archive.execute("CREATE TABLE people (id INTEGER, name TEXT)")
            archive.execute("INSERT INTO people VALUES (1, 'ann')")
            rows = archive.execute("SELECT * FROM people").rows
        edits = EditSession("SELECT * FROM people", rows)
        edits.set_cell(0, "name", "anna")

        report = edits.save(session, TableRef("people", database="archive"))

        assert report.affected == {0: 1}
        with Session(sqlite_adapter_class(), sqlite_info, "archive") as archive:
            assert archive.execute("SELECT name FROM people").rows == [{"name": "anna"}]
        tables = session.execute("SELECT name FROM sqlite_master WHERE type = 'table'").rows
        assert tables == []

    def test_mysql_target_database_is_qualified(self):
        edits = EditSession("SELECT * FROM people", [{"id": 1, "name": "a"}])
        edits.set_cell(0, "name", "b")
        fake = FakeWriteSession(MySQLAdapter(), database="main")

        edits.save(fake, TableRef("people", database="shop"))

        assert fake.writes == [
            ("UPDATE `shop`.`people` SET `name` = %s WHERE `id` = %s", ("b", 1))]

    def test_nothing_pending(self):
        edits = EditSession("SELECT * FROM t", [{"id": 1}])
        seen = []
        edits.add_refresh_listener(seen.append)
        report = edits.save(FakeWriteSession(PG))
        assert report.rows_saved == 0
        assert seen == []


def test_row_identity_prefers_id():
    assert row_identity({"id": None, "a": 1}) == ByPrimaryKey({"id": None})
    assert row_identity({"a": 1}) == ByFullRowMatch({"a": 1})
    assert row_identity({"id": 1, "k": 9}, ["k"]) == ByPrimaryKey({"k": 9})


def test_format_sql_with_params():
    assert format_sql_with_params("UPDATE t SET a = ? WHERE b = ?", ["it's", None]) == \
        "UPDATE t SET a = 'it''s' WHERE b = NULL"
    assert format_sql_with_params("x = %s AND y = %s", [1.5, True]) == "x = 1.5 AND y = TRUE"


def test_format_sql_with_params_leaves_placeholders_in_values():
    assert format_sql_with_params("UPDATE t SET a = ? WHERE b = ?", ["what?", 1]) == \
        "UPDATE t SET a = 'what?' WHERE b = 1"
    assert format_sql_with_params("UPDATE t SET a = %s WHERE b = %s", ["50%s off", "x"]) == \
        "UPDATE t SET a = '50%s off' WHERE b = 'x'"


class TestFromSession:

    def test_primary_key_read_from_table(self, session):
        session.execute("CREATE TABLE items (code TEXT PRIMARY KEY, qty INTEGER)")
        session.execute("INSERT INTO items VALUES ('A1', 1)")
        result = session.execute("SELECT * FROM items")

        edits = EditSession.from_session(session, "SELECT * FROM items", result.rows, result.columns)
        edits.set_cell(0, "qty", 5)

        assert edits.primary_key == ["code"]
        [op] = edits.plan(session.dialect)
        assert op.where == {"code": "A1"}
        assert edits.save(session).affected == {0: 1}
        assert session.execute("SELECT qty FROM items").rows == [{"qty": 5}]

    def test_lookup_failure_falls_back(self):
        class NoMetadata(FakeWriteSession):
            def primary_key(self, table_ref):
                raise RuntimeError("permission denied")

        edits = EditSession.from_session(NoMetadata(PG), "SELECT * FROM t", [{"a": 1, "b": 2}])
        edits.set_cell(0, "b", 3)

        assert edits.primary_key == []
        assert isinstance(edits.plan(PG)[0].target, ByFullRowMatch)

    def test_read_only_statement_skips_lookup(self):
        looked_up = []

        class Recording(FakeWriteSession):
            def primary_key(self, table_ref):
                looked_up.append(table_ref)
                return []

        edits = EditSession.from_session(Recording(PG), "SELECT 1", [{"1": 1}])
        assert not edits.editable
        assert looked_up == []
