"""Sequential execution of a submitted SQL buffer on one session.

Statements run strictly in submission order; each one completes before the
next is sent. In a multi-statement run the first failure stops the batch
and is raised. Results gathered before it are dropped, so callers never see
a half-successful envelope.

Every statement that was attempted is written to the query history, failed
ones with a row count of 0.
"""

import logging
import threading
import time
from typing import List, Optional

from .envelope import Envelope, build_envelope
from .errors import ExecutorBusyError, QueryExecutionError
from .models import ExecutionResult, Statement
from .splitter import resolve_submission

logger = logging.getLogger(__name__)


class QueryExecutor:
    """Runs submissions against a single session.

    ``session`` needs an ``execute(sql) -> ExecutionResult`` method.
    ``history`` needs ``add_query_history(...)`` as on
    :class:`sqldesk.database.Database`; it is optional.
    """

    def __init__(self, session, history=None, connection_id: Optional[int] = None):
        self.session = session
        self.history = history
        self.connection_id = connection_id
        self._running = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    def run(self, buffer: str, selection: Optional[str] = None) -> Envelope:
        """Execute the selection, or every statement in the buffer."""
        statements = resolve_submission(buffer, selection)
        return self.run_statements(statements)

    def run_statements(self, statements: List[Statement]) -> Envelope:
        if not statements:
            raise ValueError("No statements to run")
        if not self._running.acquire(blocking=False):
            raise ExecutorBusyError("A query is already running on this session")
        try:
            if len(statements) > 1:
                logger.info(f"Executing {len(statements)} statement(s)")
            pairs = []
            for stmt in statements:
                pairs.append((stmt, self._execute(stmt)))
            return build_envelope(pairs)
        finally:
            self._running.release()

    def _execute(self, stmt: Statement) -> ExecutionResult:
        logger.debug(f"Statement {stmt.position}: {stmt.text[:200]}")
        start = time.time()
        try:
            result = self.session.execute(stmt.text)
        except Exception as e:
            elapsed_ms = int((time.time() - start) * 1000)
            message = str(e)
            failed = ExecutionResult.failed(message, elapsed_ms)
            logger.error(f"Statement {stmt.position} failed: {message}")
            self._log_history(stmt, failed)
            raise QueryExecutionError(message, statement=stmt, result=failed) from e

        self._log_history(stmt, result)
        return result

    def _log_history(self, stmt: Statement, result: ExecutionResult) -> None:
        if self.history is None:
            return
        try:
            self.history.add_query_history(
                self.connection_id,
                stmt.text,
                execution_time=result.elapsed_ms,
                row_count=result.row_count if result.ok else 0,
                status="success" if result.ok else "error",
                error_message=result.error,
            )
        except Exception as e:
            logger.warning(f"Failed to log query: {e}")
