"""Writing grid cell edits back to their origin rows.

An :class:`EditSession` holds the rows of the page on screen and the edits
made to them. Saving turns the edits into one UPDATE per row. The row is
found by its ``id`` column when it has one (or by caller-supplied primary
key columns). Otherwise every original column value goes into the WHERE
clause.

The full-row match is a heuristic. When a table holds duplicate rows, all
of them are updated. Operations using it are flagged ``ambiguous``, and a
save that touches more than one row per UPDATE reports a warning.

Each row UPDATE is its own unit of work. A failure stops the save but rows
written before it stay written.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .errors import ReadOnlyResultError, ReconcileError
from .tables import TableNameResolver, TableRef, default_resolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingCellEdit:
    """A new value for one cell, with the row as it was fetched."""

    row: int
    column: str
    value: Any
    original: Dict[str, Any]

    @property
    def old_value(self) -> Any:
        return self.original.get(self.column)


@dataclass(frozen=True)
class ByPrimaryKey:
    """Row identified by key column values."""

    columns: Dict[str, Any]
    ambiguous = False


@dataclass(frozen=True)
class ByFullRowMatch:
    """Row identified by every original column value. May match duplicates."""

    columns: Dict[str, Any]
    ambiguous = True


UpdateTarget = Union[ByPrimaryKey, ByFullRowMatch]


@dataclass(frozen=True)
class UpdateOperation:
    row: int
    table: TableRef
    assignments: Dict[str, Any]
    target: UpdateTarget
    sql: str
    params: Tuple[Any, ...]

    @property
    def where(self) -> Dict[str, Any]:
        return self.target.columns

    @property
    def ambiguous(self) -> bool:
        return self.target.ambiguous

    def preview(self) -> str:
        return format_sql_with_params(self.sql, self.params)


@dataclass
class SaveReport:
    applied: List[UpdateOperation] = field(default_factory=list)
    affected: Dict[int, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def rows_saved(self) -> int:
        return len(self.applied)


def row_identity(original: Dict[str, Any], primary_key: Sequence[str] = ()) -> UpdateTarget:
    """Pick how to find ``original`` again: key columns, ``id``, or everything."""
    if primary_key and all(col in original for col in primary_key):
        return ByPrimaryKey({col: original[col] for col in primary_key})
    if "id" in original:
        return ByPrimaryKey({"id": original["id"]})
    return ByFullRowMatch(dict(original))


def build_update(dialect, table: TableRef, row: int, assignments: Dict[str, Any],
                 target: UpdateTarget) -> UpdateOperation:
    """Generate the UPDATE for one edited row."""
    q = dialect.quote_identifier
    ph = dialect.placeholder

    set_parts = []
    params = []
    for column, value in assignments.items():
        set_parts.append(f"{q(column)} = {ph}")
        params.append(value)

    where_parts = []
    for column, value in target.columns.items():
        if value is None:
            where_parts.append(f"{q(column)} IS NULL")
        else:
            where_parts.append(f"{q(column)} = {ph}")
            params.append(value)

    sql = (f"UPDATE {dialect.qualify(table)} SET {', '.join(set_parts)} "
           f"WHERE {' AND '.join(where_parts)}")
    return UpdateOperation(row, table, dict(assignments), target, sql, tuple(params))


def _sql_literal(param) -> str:
    if param is None:
        return "NULL"
    if isinstance(param, bool):
        return "TRUE" if param else "FALSE"
    if isinstance(param, (int, float)):
        return str(param)
    return "'" + str(param).replace("'", "''") + "'"


def format_sql_with_params(sql: str, params) -> str:
    """Format SQL with parameter values substituted for logging.

    Placeholders are located in ``sql`` before any value is inserted, so a
    value containing ``%s`` or ``?`` is never substituted into.
    """
    marker = '%s' if '%s' in sql else '?'
    pieces = sql.split(marker)
    values = [_sql_literal(p) for p in params]
    out = [pieces[0]]
    for i, piece in enumerate(pieces[1:]):
        out.append(values[i] if i < len(values) else marker)
        out.append(piece)
    return "".join(out)


class EditSession:
    """Pending cell edits over one page of a result set.

    Rows are addressed by their position within the page. Editing is only
    possible when the statement's origin table could be determined.
    """

    def __init__(self, statement: str, rows: Sequence[Dict[str, Any]],
                 columns: Optional[Sequence[str]] = None,
                 resolver: Optional[TableNameResolver] = None,
                 primary_key: Sequence[str] = ()):
        self.statement = str(statement or "")
        self.rows = [dict(row) for row in rows]
        if columns is not None:
            self.columns = list(columns)
        else:
            self.columns = list(self.rows[0].keys()) if self.rows else []
        self.primary_key = list(primary_key)
        self.table = (resolver or default_resolver).resolve(self.statement)
        self._pending: Dict[Tuple[int, str], PendingCellEdit] = {}
        self._refresh_listeners: List[Callable[[SaveReport], None]] = []

    @classmethod
    def from_session(cls, session, statement: str, rows: Sequence[Dict[str, Any]],
                     columns: Optional[Sequence[str]] = None,
                     resolver: Optional[TableNameResolver] = None) -> "EditSession":
        """Build an EditSession whose row identity uses the table's primary key.

        The key is read from the server's column metadata. When the lookup
        fails, or the key columns are not all in the result, rows fall back
        to ``id`` or full-row matching.
        """
        table = (resolver or default_resolver).resolve(str(statement or ""))
        primary_key = []
        if table is not None:
            try:
                primary_key = session.primary_key(table)
            except Exception as e:
                logger.warning(f"Could not read primary key of {table}: {e}")
        return cls(statement, rows, columns, resolver, primary_key)

    @property
    def editable(self) -> bool:
        return self.table is not None

    @property
    def pending(self) -> List[PendingCellEdit]:
        return list(self._pending.values())

    @property
    def pending_rows(self) -> List[int]:
        rows = []
        for edit in self._pending.values():
            if edit.row not in rows:
                rows.append(edit.row)
        return rows

    def has_changes(self) -> bool:
        return bool(self._pending)

    def add_refresh_listener(self, callback: Callable[[SaveReport], None]) -> None:
        """Call ``callback(report)`` after every successful save."""
        self._refresh_listeners.append(callback)

    def set_cell(self, row: int, column: str, value: Any) -> None:
        if not self.editable:
            raise ReadOnlyResultError("Result is read-only: origin table unknown")
        if not 0 <= row < len(self.rows):
            raise IndexError(f"Row {row} is outside the current page")
        if column not in self.columns:
            raise KeyError(column)

        original = self.rows[row]
        key = (row, column)
        if value == original.get(column):
            # Value reverted
            self._pending.pop(key, None)
        else:
            self._pending[key] = PendingCellEdit(row, column, value, dict(original))

    def value_at(self, row: int, column: str) -> Any:
        edit = self._pending.get((row, column))
        if edit is not None:
            return edit.value
        return self.rows[row].get(column)

    def is_modified(self, row: int, column: Optional[str] = None) -> bool:
        if column is not None:
            return (row, column) in self._pending
        return any(edit.row == row for edit in self._pending.values())

    def discard(self) -> int:
        """Drop all pending edits. Returns how many rows had changes."""
        count = len(self.pending_rows)
        self._pending.clear()
        return count

    def plan(self, dialect, target: Optional[TableRef] = None) -> List[UpdateOperation]:
        """The UPDATEs a save would run, in edit order."""
        return self._plan(list(self._pending.values()), dialect, self._target(target))

    def save(self, session, target: Optional[TableRef] = None, history=None,
             connection_id: Optional[int] = None) -> SaveReport:
        """Write all pending edits through ``session.execute_write``.

        ``target`` is the table/schema/database to update; it defaults to the
        table inferred from the statement. When the target names a database
        other than the session's, the UPDATEs go to that database: through a
        ``db.table`` name where the dialect allows it, otherwise through a
        session opened on it for the duration of the save.
        """
        table = self._target(target)
        if not self._pending:
            return SaveReport()

        write_session = _session_for(session, table)
        try:
            return self._apply(write_session, table, history, connection_id)
        finally:
            if write_session is not session:
                write_session.close()

    def _apply(self, session, table: TableRef, history, connection_id) -> SaveReport:
        # Collect then clear
        drained = dict(self._pending)
        self._pending.clear()
        operations = self._plan(list(drained.values()), session.dialect, table)

        report = SaveReport()
        for i, op in enumerate(operations):
            start = time.time()
            try:
                affected = session.execute_write(op.sql, op.params)
            except Exception as e:
                duration = int((time.time() - start) * 1000)
                _log_history(history, connection_id, op.preview(), duration, 0, "error", str(e))
                unsaved = {o.row for o in operations[i:]}
                for key, edit in drained.items():
                    if edit.row in unsaved:
                        self._pending.setdefault(key, edit)
                logger.error(f"Update of row {op.row + 1} in {table} failed: {e}")
                raise ReconcileError(f"Row {op.row + 1}: {e}", row=op.row, operation=op,
                                     applied=report.applied) from e

            duration = int((time.time() - start) * 1000)
            _log_history(history, connection_id, op.preview(), duration, affected, "success")
            report.applied.append(op)
            report.affected[op.row] = affected
            if affected > 1:
                message = f"Row {op.row + 1}: UPDATE matched {affected} rows in {table}"
                logger.warning(message)
                report.warnings.append(message)

            # Saved values become the new originals
            self.rows[op.row].update(op.assignments)

        logger.info(f"Saved {report.rows_saved} row(s) to {table}")
        for callback in self._refresh_listeners:
            callback(report)
        return report

    def _target(self, target: Optional[TableRef]) -> TableRef:
        table = target or self.table
        if table is None:
            raise ReadOnlyResultError("Result is read-only: origin table unknown")
        return table

    def _plan(self, edits: List[PendingCellEdit], dialect, table: TableRef) -> List[UpdateOperation]:
        by_row: Dict[int, Dict[str, Any]] = {}
        originals: Dict[int, Dict[str, Any]] = {}
        for edit in edits:
            by_row.setdefault(edit.row, {})[edit.column] = edit.value
            originals.setdefault(edit.row, edit.original)

        operations = []
        for row, assignments in by_row.items():
            target = row_identity(originals[row], self.primary_key)
            operations.append(build_update(dialect, table, row, assignments, target))
        return operations


def _session_for(session, table: TableRef):
    """The session that reaches ``table.database``."""
    bound = getattr(session, "database", None)
    if not table.database or table.database == bound or session.dialect.database_is_schema:
        return session
    logger.debug(f"Opening a session on database {table.database} for the save")
    return session.for_database(table.database)


def _log_history(history, connection_id, query, duration, row_count, status, error=None):
    if history is None:
        return
    try:
        history.add_query_history(connection_id, query, execution_time=duration,
                                  row_count=row_count, status=status, error_message=error)
    except Exception as e:
        logger.warning(f"Failed to log query: {e}")
