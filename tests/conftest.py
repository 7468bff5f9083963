"""Shared fixtures: a sqlite-backed adapter gives tests a real stateful session."""

import sqlite3
from pathlib import Path

import pytest

from sqldesk.adapters import DBAdapter, Session
from sqldesk.database import Database


class SQLiteAdapter(DBAdapter):
    """Test dialect: ``host`` is the sqlite file path.

    Databases other than ``main`` are sibling files named ``<database>.db``.
    """

    db_type = "sqlite"
    display_name = "SQLite"

    def connect(self, host, user, password, port=None, database=None, use_ssl=False):
        if database and database != "main":
            return sqlite3.connect(Path(host).parent / f"{database}.db")
        return sqlite3.connect(host)

    def get_version_query(self):
        return "SELECT sqlite_version()"

    def get_databases_query(self):
        return "SELECT name FROM pragma_database_list ORDER BY seq"

    def get_tables_query(self, schema=None):
        return """
            SELECT 'main', name, CASE type WHEN 'view' THEN 'VIEW' ELSE 'BASE TABLE' END
            FROM sqlite_master
            WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'
            ORDER BY name
        """, ()

    def get_columns_query(self, table_ref):
        return """
            SELECT name, type, CASE WHEN "notnull" THEN 'NO' ELSE 'YES' END,
                   CASE WHEN pk > 0 THEN 'PRI' ELSE '' END, dflt_value
            FROM pragma_table_info(?)
            ORDER BY cid
        """, (table_ref.name,)


class RecordingHistory:
    """In-memory stand-in for the history store."""

    def __init__(self):
        self.entries = []

    def add_query_history(self, connection_id, query, execution_time=0, row_count=0,
                          status="success", error_message=None):
        self.entries.append({
            "connection_id": connection_id,
            "query": query,
            "execution_time": execution_time,
            "row_count": row_count,
            "status": status,
            "error_message": error_message,
        })


@pytest.fixture
def sqlite_adapter_class():
    return SQLiteAdapter


@pytest.fixture
def sqlite_info(tmp_path):
    return {
        "id": 1,
        "name": "local",
        "db_type": "sqlite",
        "host": str(tmp_path / "data.db"),
        "port": None,
        "database": "main",
        "user": "",
        "password": "",
        "use_ssl": False,
    }


@pytest.fixture
def session(sqlite_info):
    s = Session(SQLiteAdapter(), sqlite_info)
    yield s
    s.close()


@pytest.fixture
def history():
    return RecordingHistory()


@pytest.fixture
def store(tmp_path):
    return Database(tmp_path / "store.db")
