"""SQLite database for storing connections, query history and settings."""

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

DB_PATH_ENV = "SQLDESK_DB_PATH"

DEFAULT_SETTINGS = {
    "rows_per_page": "30",
    "history_limit": "500",
}


def default_db_path():
    env_path = os.environ.get(DB_PATH_ENV)
    if env_path:
        return Path(env_path)
    return Path.home() / ".sqldesk" / "sqldesk.db"


class Database:
    def __init__(self, db_path=None):
        if db_path is None:
            db_path = default_db_path()
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self):
        with self._get_conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS connections (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    db_type TEXT NOT NULL,
                    host TEXT NOT NULL,
                    port INTEGER,
                    database TEXT,
                    user TEXT NOT NULL,
                    password TEXT NOT NULL,
                    use_ssl INTEGER NOT NULL DEFAULT 0,
                    is_connected INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS query_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    connection_id INTEGER,
                    query TEXT NOT NULL,
                    execution_time INTEGER,
                    row_count INTEGER,
                    status TEXT NOT NULL DEFAULT 'success',
                    error_message TEXT,
                    executed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    # Connection methods
    def get_connections(self):
        with self._get_conn() as conn:
            cursor = conn.execute(
                "SELECT id, name, db_type, host, port, database, user, use_ssl, is_connected "
                "FROM connections ORDER BY name"
            )
            return [_connection_dict(row) for row in cursor.fetchall()]

    def get_connection(self, name):
        with self._get_conn() as conn:
            cursor = conn.execute("SELECT * FROM connections WHERE name = ?", (name,))
            row = cursor.fetchone()
            return _connection_dict(row) if row else None

    def get_connection_by_id(self, conn_id):
        with self._get_conn() as conn:
            cursor = conn.execute("SELECT * FROM connections WHERE id = ?", (conn_id,))
            row = cursor.fetchone()
            return _connection_dict(row) if row else None

    def save_connection(self, name, db_type, host, port, database, user, password,
                        use_ssl=False, conn_id=None):
        """Insert or update a connection. Returns its id."""
        with self._get_conn() as conn:
            if conn_id:
                conn.execute(
                    """UPDATE connections SET name = ?, db_type = ?, host = ?, port = ?,
                       database = ?, user = ?, password = ?, use_ssl = ? WHERE id = ?""",
                    (name, db_type, host, port, database, user, password, int(use_ssl), conn_id)
                )
                return conn_id
            cursor = conn.execute(
                """INSERT INTO connections (name, db_type, host, port, database, user, password, use_ssl)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (name, db_type, host, port, database, user, password, int(use_ssl))
            )
            return cursor.lastrowid

    def delete_connection(self, conn_id):
        with self._get_conn() as conn:
            cursor = conn.execute("DELETE FROM connections WHERE id = ?", (conn_id,))
            return cursor.rowcount > 0

    def update_connection_status(self, conn_id, is_connected):
        with self._get_conn() as conn:
            conn.execute(
                "UPDATE connections SET is_connected = ? WHERE id = ?",
                (int(bool(is_connected)), conn_id)
            )

    # Query history methods
    def add_query_history(self, connection_id, query, execution_time=0, row_count=0,
                          status="success", error_message=None):
        with self._get_conn() as conn:
            cursor = conn.execute(
                """INSERT INTO query_history
                   (connection_id, query, execution_time, row_count, status, error_message)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (connection_id, query, int(execution_time or 0), int(row_count or 0),
                 status, error_message)
            )
            return cursor.lastrowid

    def get_query_history(self, connection_id=None, limit=None):
        """Most recent entries first."""
        if limit is None:
            limit = int(self.get_setting("history_limit"))
        with self._get_conn() as conn:
            if connection_id is not None:
                cursor = conn.execute(
                    "SELECT * FROM query_history WHERE connection_id = ? ORDER BY id DESC LIMIT ?",
                    (connection_id, limit)
                )
            else:
                cursor = conn.execute(
                    "SELECT * FROM query_history ORDER BY id DESC LIMIT ?", (limit,)
                )
            return [dict(row) for row in cursor.fetchall()]

    def delete_query_history(self, history_id):
        with self._get_conn() as conn:
            cursor = conn.execute("DELETE FROM query_history WHERE id = ?", (history_id,))
            return cursor.rowcount > 0

    def clear_query_history(self, connection_id=None):
        with self._get_conn() as conn:
            if connection_id is None:
                conn.execute("DELETE FROM query_history")
            else:
                conn.execute("DELETE FROM query_history WHERE connection_id = ?", (connection_id,))

    # Settings methods
    def get_setting(self, key, default=None):
        with self._get_conn() as conn:
            cursor = conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = cursor.fetchone()
        if row:
            return row[0]
        return default if default is not None else DEFAULT_SETTINGS.get(key)

    def set_setting(self, key, value):
        with self._get_conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, str(value))
            )


def _connection_dict(row):
    data = dict(row)
    for flag in ("use_ssl", "is_connected"):
        if flag in data:
            data[flag] = bool(data[flag])
    return data


_db = None


def _get_db():
    global _db
    if _db is None:
        _db = Database()
    return _db


def get_setting(key, default=None):
    return _get_db().get_setting(key, default)


def set_setting(key, value):
    _get_db().set_setting(key, value)


def get_connection(name):
    return _get_db().get_connection(name)
