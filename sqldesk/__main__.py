"""Entry point for sqldesk."""

import logging
import sys
from pathlib import Path

from .adapters import Session, check_connection, get_adapter, get_unavailable_adapters
from .database import _get_db
from .envelope import MultiEnvelope
from .errors import ConnectionNotFoundError, SqlDeskError
from .executor import QueryExecutor
from .export import export_result
from .models import HistoryEntry
from .paging import paginate
from .splitter import format_sql
from .tables import TableRef

HELP = """\
sqldesk - MySQL/PostgreSQL workbench

Usage: sqldesk [--verbose] <command> [args]

Commands:
  --connections                      List saved connections
  --add-connection NAME TYPE HOST PORT DATABASE USER PASSWORD
                                     Save a connection (TYPE: mysql, postgresql)
  --delete-connection NAME           Delete a saved connection
  --test NAME                        Test a saved connection
  --run NAME SQL [--database DB] [--page N] [--export FILE]
                                     Execute SQL ("-" reads stdin); statements
                                     separated by ';' run in order
  --databases NAME                   List the databases on a connection
  --tables NAME [--database DB] [--schema SCHEMA]
                                     List tables and views
  --columns NAME [SCHEMA.]TABLE [--database DB]
                                     Show the columns of a table
  --history [NAME]                   Show the query history
  --format SQL                       Pretty-print SQL
  --help, -h                         Show this help message
"""


def _option(args, name, default=None):
    """Pop ``name value`` from args."""
    if name in args:
        i = args.index(name)
        if i + 1 < len(args):
            value = args[i + 1]
            del args[i:i + 2]
            return value
        del args[i]
    return default


def _format_table(columns, rows):
    if not columns:
        return ""
    cells = [["" if row.get(col) is None else str(row.get(col)) for col in columns] for row in rows]
    widths = [min(max([len(col)] + [len(r[i]) for r in cells]), 60) for i, col in enumerate(columns)]
    lines = [" | ".join(col.ljust(w) for col, w in zip(columns, widths)),
             "-+-".join("-" * w for w in widths)]
    for r in cells:
        lines.append(" | ".join(v[:w].ljust(w) for v, w in zip(r, widths)))
    return "\n".join(lines)


def _print_result(result, page_number, per_page):
    if result.columns:
        page = paginate(result.rows, page_number, per_page)
        print(_format_table(result.columns, page.rows))
        print(f"{page.describe()} in {result.elapsed_ms}ms")
    else:
        print(f"OK ({result.row_count} row(s) affected) in {result.elapsed_ms}ms")


def _require_connection(db, name):
    conn_info = db.get_connection(name)
    if not conn_info:
        raise ConnectionNotFoundError(f"Connection not found: {name}")
    return conn_info


def _cmd_connections(db, args):
    connections = db.get_connections()
    if not connections:
        print("No saved connections.")
    for c in connections:
        status = "connected" if c["is_connected"] else "-"
        print(f"{c['name']:<24} {c['db_type']:<11} {c['host']}:{c['port'] or ''}"
              f"/{c['database'] or ''}  {status}")
    for db_type, name, hint in get_unavailable_adapters():
        print(f"({name} driver not installed: {hint})")
    return 0


def _cmd_add_connection(db, args):
    if len(args) < 7:
        print("Usage: --add-connection NAME TYPE HOST PORT DATABASE USER PASSWORD", file=sys.stderr)
        return 2
    name, db_type, host, port, database, user, password = args[:7]
    get_adapter(db_type)  # validate type
    if port and not port.isdigit():
        print(f"Invalid port: {port}", file=sys.stderr)
        return 2
    db.save_connection(name, db_type, host, int(port) if port else None,
                       database or None, user, password)
    print(f"Saved connection: {name}")
    return 0


def _cmd_delete_connection(db, args):
    if not args:
        print("Usage: --delete-connection NAME", file=sys.stderr)
        return 2
    conn_info = _require_connection(db, args[0])
    db.delete_connection(conn_info["id"])
    print(f"Deleted connection: {args[0]}")
    return 0


def _cmd_test(db, args):
    if not args:
        print("Usage: --test NAME", file=sys.stderr)
        return 2
    conn_info = _require_connection(db, args[0])
    ok, version, error = check_connection(conn_info)
    db.update_connection_status(conn_info["id"], ok)
    if ok:
        print(f"Connected to {conn_info['name']} (version {version or 'unknown'})")
        return 0
    print(f"Connection failed: {error}", file=sys.stderr)
    return 1


def _cmd_run(db, args):
    database = _option(args, "--database")
    page = _option(args, "--page", "1")
    export_file = _option(args, "--export")
    if not page.isdigit() or int(page) < 1:
        print(f"Invalid page number: {page}", file=sys.stderr)
        return 2
    page_number = int(page)
    if len(args) < 2:
        print("Usage: --run NAME SQL [--database DB] [--page N] [--export FILE]", file=sys.stderr)
        return 2
    name, sql = args[0], args[1]
    if sql == "-":
        sql = sys.stdin.read()

    conn_info = _require_connection(db, name)
    per_page = int(db.get_setting("rows_per_page"))

    adapter = get_adapter(conn_info["db_type"])
    with Session(adapter, conn_info, database) as session:
        executor = QueryExecutor(session, history=db, connection_id=conn_info["id"])
        envelope = executor.run(sql)

    if isinstance(envelope, MultiEnvelope):
        for item in envelope.items:
            print(f"== {item.title}")
            _print_result(item.result, page_number, per_page)
            print()
    else:
        _print_result(envelope.result, page_number, per_page)

    if export_file:
        path = Path(export_file)
        for item in envelope.items:
            target = path
            if envelope.kind == "multi":
                target = path.with_name(f"{path.stem}_{item.index}{path.suffix}")
            print(f"Exported to {export_result(item.result, target)}")
    return 0


def _browse(db, name, database, fetch):
    """Run ``fetch(session)`` on a fresh session; driver errors become SqlDeskError."""
    conn_info = _require_connection(db, name)
    with Session(get_adapter(conn_info["db_type"]), conn_info, database) as session:
        try:
            return fetch(session)
        except Exception as e:
            raise SqlDeskError(f"{name}: {e}") from e


def _cmd_databases(db, args):
    if not args:
        print("Usage: --databases NAME", file=sys.stderr)
        return 2
    for name in _browse(db, args[0], None, lambda s: s.list_databases()):
        print(name)
    return 0


def _cmd_tables(db, args):
    database = _option(args, "--database")
    schema = _option(args, "--schema")
    if not args:
        print("Usage: --tables NAME [--database DB] [--schema SCHEMA]", file=sys.stderr)
        return 2
    tables = _browse(db, args[0], database, lambda s: s.list_tables(schema))
    for table in tables:
        kind = "view" if table.is_view else "table"
        print(f"{table.name:<40} {kind}")
    if not tables:
        print("No tables.")
    return 0


def _cmd_columns(db, args):
    database = _option(args, "--database")
    if len(args) < 2:
        print("Usage: --columns NAME [SCHEMA.]TABLE [--database DB]", file=sys.stderr)
        return 2
    schema, _, table = args[1].rpartition(".")
    table_ref = TableRef(table, schema=schema or None, database=database)
    columns = _browse(db, args[0], database, lambda s: s.list_columns(table_ref))
    if not columns:
        print(f"Table not found: {args[1]}", file=sys.stderr)
        return 1
    for col in columns:
        flags = ["PK"] if col.primary_key else []
        if not col.nullable:
            flags.append("NOT NULL")
        if col.default is not None:
            flags.append(f"DEFAULT {col.default}")
        print(f"{col.name:<30} {col.type:<20} {' '.join(flags)}".rstrip())
    return 0


def _cmd_history(db, args):
    connection_id = None
    if args:
        conn_info = _require_connection(db, args[0])
        connection_id = conn_info["id"]
    for row in reversed(db.get_query_history(connection_id)):
        entry = HistoryEntry.from_row(row)
        sql = " ".join(entry.query.split())
        print(f"{entry.executed_at}  {entry.status:<7} {entry.execution_time:>6}ms "
              f"{entry.row_count:>6} row(s)  {sql[:100]}")
        if entry.error_message:
            print(f"    {entry.error_message}")
    return 0


def _cmd_format(db, args):
    if not args:
        print("Usage: --format SQL", file=sys.stderr)
        return 2
    sql = sys.stdin.read() if args[0] == "-" else args[0]
    print(format_sql(sql))
    return 0


COMMANDS = {
    "--connections": _cmd_connections,
    "--add-connection": _cmd_add_connection,
    "--delete-connection": _cmd_delete_connection,
    "--test": _cmd_test,
    "--run": _cmd_run,
    "--databases": _cmd_databases,
    "--tables": _cmd_tables,
    "--columns": _cmd_columns,
    "--history": _cmd_history,
    "--format": _cmd_format,
}


def main(argv=None):
    """Main entry point with argument handling."""
    args = list(sys.argv[1:] if argv is None else argv)

    verbose = "--verbose" in args
    if verbose:
        args.remove("--verbose")
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args or args[0].lower() in ("--help", "-h"):
        print(HELP)
        return 0

    command = COMMANDS.get(args[0].lower())
    if command is None:
        print(f"Unknown option: {args[0]}\n", file=sys.stderr)
        print(HELP, file=sys.stderr)
        return 2

    # --format needs no store
    db = None if command is _cmd_format else _get_db()
    try:
        return command(db, args[1:])
    except SqlDeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
