"""Background threads for query execution and saving cell edits."""

from typing import Optional

from PyQt6.QtCore import QThread, pyqtSignal

from ..errors import SqlDeskError


class QueryWorker(QThread):
    """Runs one submission on a QueryExecutor off the UI thread."""

    finished = pyqtSignal(object)  # envelope
    error = pyqtSignal(str)

    def __init__(self, executor, buffer: str, selection: Optional[str] = None):
        super().__init__()
        self.executor = executor
        self.buffer = buffer
        self.selection = selection

    def run(self) -> None:
        try:
            envelope = self.executor.run(self.buffer, self.selection)
        except SqlDeskError as e:
            self.error.emit(str(e))
            return
        self.finished.emit(envelope)


class SaveWorker(QThread):
    """Saves the pending edits of an EditSession off the UI thread."""

    saved = pyqtSignal(object)  # SaveReport
    error = pyqtSignal(str)

    def __init__(self, edit_session, session, target=None, history=None,
                 connection_id: Optional[int] = None):
        super().__init__()
        self.edit_session = edit_session
        self.session = session
        self.target = target
        self.history = history
        self.connection_id = connection_id

    def run(self) -> None:
        try:
            report = self.edit_session.save(
                self.session, self.target,
                history=self.history, connection_id=self.connection_id)
        except (SqlDeskError, ValueError) as e:
            self.error.emit(str(e))
            return
        self.saved.emit(report)
