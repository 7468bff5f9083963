"""Database adapters and the session handle the executor runs on.

An adapter knows how to open a DB-API connection for one server type and
how that server spells identifiers and parameters. Drivers are imported
lazily, so a missing driver only disables its adapter.
"""

import importlib.util
import logging
import time
from abc import ABC, abstractmethod

from .errors import UnknownDatabaseTypeError
from .models import ColumnInfo, ExecutionResult, TableInfo

logger = logging.getLogger(__name__)


class DBAdapter(ABC):
    """One supported server type."""

    db_type = "base"
    display_name = "Base"
    default_port = None
    default_database = None
    required_module = None  # driver import name
    install_hint = None
    placeholder = "?"  # paramstyle marker
    identifier_quote = '"'
    database_is_schema = False  # `db`.`table` reaches another database

    @classmethod
    def is_available(cls):
        """True when the driver module can be imported."""
        if not cls.required_module:
            return True
        try:
            return importlib.util.find_spec(cls.required_module) is not None
        except ModuleNotFoundError:
            # parent package of a dotted name is missing
            return False

    @abstractmethod
    def connect(self, host, user, password, port=None, database=None, use_ssl=False):
        """Open and return a DB-API connection."""

    def quote_identifier(self, name):
        q = self.identifier_quote
        return f"{q}{str(name).replace(q, q + q)}{q}"

    def qualify(self, table_ref):
        """Quoted name of a TableRef, prefixed by its schema when set.

        Where databases are schemas (MySQL) the database stands in for a
        missing schema.
        """
        name = self.quote_identifier(table_ref.name)
        qualifier = table_ref.schema
        if not qualifier and self.database_is_schema:
            qualifier = table_ref.database
        if qualifier:
            return f"{self.quote_identifier(qualifier)}.{name}"
        return name

    def get_version_query(self):
        return "SELECT VERSION()"

    @abstractmethod
    def get_databases_query(self):
        """SQL listing database names, one per row."""

    @abstractmethod
    def get_tables_query(self, schema=None):
        """(sql, params) listing schema, table name and table type.

        ``schema`` defaults to the connection's current schema/database.
        """

    @abstractmethod
    def get_columns_query(self, table_ref):
        """(sql, params) listing name, type, nullable, key, default per column.

        ``nullable`` is 'YES'/'NO'; ``key`` is 'PRI' for primary key columns.
        """

    def get_version(self, conn):
        """Server version string, or None if it cannot be read."""
        cur = conn.cursor()
        try:
            cur.execute(self.get_version_query())
            first = cur.fetchone()
        except Exception as e:
            logger.debug(f"Version lookup failed: {e}")
            return None
        finally:
            cur.close()
        return str(first[0]) if first else None


class MySQLAdapter(DBAdapter):
    db_type = "mysql"
    display_name = "MySQL"
    default_port = 3306
    required_module = "mysql.connector"
    install_hint = "pip install sqldesk[mysql]"
    placeholder = "%s"
    identifier_quote = "`"
    database_is_schema = True

    def connect(self, host, user, password, port=None, database=None, use_ssl=False):
        import mysql.connector
        return mysql.connector.connect(
            host=host,
            port=int(port or self.default_port),
            user=user,
            password=password,
            database=database or None,
            ssl_disabled=not use_ssl,
        )

    def get_databases_query(self):
        return "SELECT SCHEMA_NAME FROM INFORMATION_SCHEMA.SCHEMATA ORDER BY SCHEMA_NAME"

    def get_tables_query(self, schema=None):
        return """
            SELECT TABLE_SCHEMA, TABLE_NAME, TABLE_TYPE
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_SCHEMA = COALESCE(%s, DATABASE())
            ORDER BY TABLE_NAME
        """, (schema,)

    def get_columns_query(self, table_ref):
        return """
            SELECT COLUMN_NAME, COLUMN_TYPE, IS_NULLABLE, COLUMN_KEY, COLUMN_DEFAULT
            FROM INFORMATION_SCHEMA.COLUMNS
            WHERE TABLE_SCHEMA = COALESCE(%s, DATABASE()) AND TABLE_NAME = %s
            ORDER BY ORDINAL_POSITION
        """, (table_ref.schema or table_ref.database, table_ref.name)


class PostgreSQLAdapter(DBAdapter):
    db_type = "postgresql"
    display_name = "PostgreSQL"
    default_port = 5432
    default_database = "postgres"
    required_module = "psycopg2"
    install_hint = "pip install sqldesk[postgresql]"
    placeholder = "%s"

    def connect(self, host, user, password, port=None, database=None, use_ssl=False):
        import psycopg2
        return psycopg2.connect(
            host=host,
            port=int(port or self.default_port),
            user=user,
            password=password,
            dbname=database or self.default_database,
            sslmode="require" if use_ssl else "prefer",
        )

    def get_databases_query(self):
        return """
            SELECT datname FROM pg_database
            WHERE datistemplate = false
            ORDER BY datname
        """

    def get_tables_query(self, schema=None):
        return """
            SELECT table_schema, table_name, table_type
            FROM information_schema.tables
            WHERE table_schema = COALESCE(%s, current_schema())
            ORDER BY table_name
        """, (schema,)

    def get_columns_query(self, table_ref):
        return """
            SELECT c.column_name, c.data_type, c.is_nullable,
                   CASE WHEN pk.column_name IS NULL THEN '' ELSE 'PRI' END,
                   c.column_default
            FROM information_schema.columns c
            LEFT JOIN (
                SELECT kcu.table_schema, kcu.table_name, kcu.column_name
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage kcu
                  ON kcu.constraint_name = tc.constraint_name
                 AND kcu.table_schema = tc.table_schema
                 AND kcu.table_name = tc.table_name
                WHERE tc.constraint_type = 'PRIMARY KEY'
            ) pk ON pk.table_schema = c.table_schema
                AND pk.table_name = c.table_name
                AND pk.column_name = c.column_name
            WHERE c.table_schema = COALESCE(%s, current_schema()) AND c.table_name = %s
            ORDER BY c.ordinal_position
        """, (table_ref.schema, table_ref.name)

    def get_version(self, conn):
        # "PostgreSQL 16.2 on x86_64-pc-linux-gnu, ..." -> "16.2"
        banner = super().get_version(conn)
        if not banner:
            return banner
        words = banner.split()
        if "PostgreSQL" in words[:-1]:
            return words[words.index("PostgreSQL") + 1].rstrip(",")
        return banner


ADAPTERS = {
    MySQLAdapter.db_type: MySQLAdapter,
    PostgreSQLAdapter.db_type: PostgreSQLAdapter,
}


def get_adapter(db_type):
    """Instantiate the adapter registered for ``db_type``."""
    try:
        return ADAPTERS[db_type]()
    except KeyError:
        raise UnknownDatabaseTypeError(f"Unknown database type: {db_type}") from None


def get_adapter_choices(include_unavailable=False):
    """(db_type, display_name) pairs, by default only for installed drivers."""
    return [
        (db_type, cls.display_name)
        for db_type, cls in ADAPTERS.items()
        if include_unavailable or cls.is_available()
    ]


def get_unavailable_adapters():
    """(db_type, display_name, install_hint) for adapters missing a driver."""
    missing = []
    for db_type, cls in ADAPTERS.items():
        if not cls.is_available():
            missing.append((db_type, cls.display_name, cls.install_hint))
    return missing


def connect_from_info(adapter, conn_info, database=None):
    """Open a connection for a saved connection dict."""
    return adapter.connect(
        conn_info['host'],
        conn_info['user'],
        conn_info['password'],
        port=conn_info.get('port'),
        database=database or conn_info.get('database'),
        use_ssl=bool(conn_info.get('use_ssl')),
    )


def check_connection(conn_info):
    """Try to connect and run ``SELECT 1``.

    Returns (is_connected, version, error_message).
    """
    adapter = get_adapter(conn_info['db_type'])
    conn = None
    try:
        conn = connect_from_info(adapter, conn_info)
        cursor = conn.cursor()
        cursor.execute("SELECT 1")
        cursor.fetchall()
        cursor.close()
        return True, adapter.get_version(conn), None
    except Exception as e:
        logger.info(f"Connection test for {conn_info.get('name')} failed: {e}")
        return False, None, str(e)
    finally:
        if conn:
            try:
                conn.close()
            except Exception:
                pass


class Session:
    """A single-flight handle on one open database connection.

    The connection opens lazily on first use and stays open across calls so
    session state (temporary tables, variables, search_path) carries over
    from one statement to the next.
    """

    def __init__(self, adapter, conn_info, database=None):
        self.adapter = adapter
        self.conn_info = conn_info
        self.database = database or conn_info.get('database')
        self._conn = None

    @property
    def dialect(self):
        return self.adapter

    def open(self):
        if self._conn is None:
            self._conn = connect_from_info(self.adapter, self.conn_info, self.database)
        return self._conn

    def for_database(self, database):
        """A new, unopened session on the same server bound to ``database``."""
        return Session(self.adapter, self.conn_info, database)

    def execute(self, sql):
        """Run one statement and return its ExecutionResult.

        Every successful statement is committed, including writes that
        return rows (``INSERT ... RETURNING``). A failing statement is
        rolled back and the driver exception propagates.
        """
        conn = self.open()
        cursor = conn.cursor()
        start = time.time()
        try:
            cursor.execute(sql)
            if cursor.description:
                columns = [col[0] for col in cursor.description]
                rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
                row_count = len(rows)
            else:
                columns = []
                rows = []
                row_count = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
            conn.commit()
            elapsed_ms = int((time.time() - start) * 1000)
        except Exception:
            self._rollback()
            raise
        finally:
            cursor.close()

        return ExecutionResult(columns=columns, rows=rows, row_count=row_count,
                               elapsed_ms=elapsed_ms)

    def execute_write(self, sql, params=()):
        """Run one parameterized write as its own unit of work.

        Returns the number of affected rows.
        """
        conn = self.open()
        cursor = conn.cursor()
        try:
            cursor.execute(sql, tuple(params))
            affected = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
            conn.commit()
            return affected
        except Exception:
            self._rollback()
            raise
        finally:
            cursor.close()

    def _fetch(self, sql, params=()):
        conn = self.open()
        cursor = conn.cursor()
        try:
            if params:
                cursor.execute(sql, tuple(params))
            else:
                cursor.execute(sql)
            rows = cursor.fetchall()
            conn.commit()
            return rows
        except Exception:
            self._rollback()
            raise
        finally:
            cursor.close()

    def list_databases(self):
        return [row[0] for row in self._fetch(self.adapter.get_databases_query())]

    def list_tables(self, schema=None):
        """Tables and views of ``schema``, default the current one."""
        sql, params = self.adapter.get_tables_query(schema)
        return [TableInfo(name, table_type, table_schema)
                for table_schema, name, table_type in self._fetch(sql, params)]

    def list_columns(self, table_ref):
        sql, params = self.adapter.get_columns_query(table_ref)
        return [ColumnInfo(name, str(col_type or ""), str(nullable).upper() == "YES",
                           key or "", default)
                for name, col_type, nullable, key, default in self._fetch(sql, params)]

    def primary_key(self, table_ref):
        """Primary key column names of a table, in column order."""
        return [col.name for col in self.list_columns(table_ref) if col.primary_key]

    def _rollback(self):
        try:
            self._conn.rollback()
        except Exception as e:
            logger.debug(f"Rollback failed: {e}")

    def close(self):
        if self._conn is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
