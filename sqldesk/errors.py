"""Exceptions raised by the sqldesk core."""


class SqlDeskError(Exception):
    """Base class for all sqldesk errors."""


class EmptyQueryError(SqlDeskError, ValueError):
    """The submitted buffer holds no statement to execute."""


class UnknownDatabaseTypeError(SqlDeskError, ValueError):
    """No adapter is registered for the requested database type."""


class ConnectionNotFoundError(SqlDeskError):
    """A saved connection could not be found in the store."""


class ExecutorBusyError(SqlDeskError):
    """A run was requested while another run is still executing."""


class QueryExecutionError(SqlDeskError):
    """A statement failed on the database.

    The message is the driver's message verbatim. ``statement`` is the
    failing Statement and ``result`` the ExecutionResult recorded for it.
    """

    def __init__(self, message, statement=None, result=None):
        super().__init__(message)
        self.statement = statement
        self.result = result


class ReadOnlyResultError(SqlDeskError):
    """Cell edits were attempted on a result with no known origin table."""


class ReconcileError(SqlDeskError):
    """A row UPDATE failed while saving pending cell edits.

    Rows in ``applied`` were already written and are not rolled back.
    """

    def __init__(self, message, row=None, operation=None, applied=None):
        super().__init__(message)
        self.row = row
        self.operation = operation
        self.applied = list(applied or [])
