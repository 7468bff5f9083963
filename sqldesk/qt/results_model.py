"""Table model showing one page of a result with inline editing."""

from decimal import Decimal
from typing import Any, Optional

from PyQt6.QtCore import QAbstractTableModel, QModelIndex, Qt
from PyQt6.QtGui import QColor

from ..errors import ReadOnlyResultError
from ..paging import DEFAULT_ROWS_PER_PAGE, Page, paginate
from ..reconciler import EditSession

MODIFIED_ROW_COLOR = QColor(100, 100, 0, 60)


def coerce_text(text: Any, original: Any) -> Any:
    """Convert edited text back to the type of the value it replaces.

    Text equal to the original's display form yields the original itself.
    Text that does not parse as the original's type is kept as text and
    left for the database to convert.
    """
    if not isinstance(text, str) or original is None or isinstance(original, str):
        return text
    if text == str(original):
        return original
    if isinstance(original, bool):
        lowered = text.strip().lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        return text
    if isinstance(original, (int, float, Decimal)):
        try:
            return type(original)(text.strip())
        except (ValueError, ArithmeticError):
            return text
    return text


class ResultsTableModel(QAbstractTableModel):
    """Grid model over a Page and the EditSession tracking its edits.

    Cells are editable only when the edit session knows its origin table.
    Edited rows are highlighted until saved or discarded.
    """

    def __init__(self, page: Page, edit_session: EditSession, parent=None):
        super().__init__(parent)
        self.page = page
        self.edit_session = edit_session
        self.columns = edit_session.columns

    @classmethod
    def from_result(cls, statement: str, result, page: int = 1,
                    per_page: int = DEFAULT_ROWS_PER_PAGE, parent=None, session=None):
        """Model for one page of ``result``.

        With a database ``session`` the origin table's primary key is looked
        up and used to identify edited rows.
        """
        page_obj = paginate(result.rows, page, per_page)
        if session is not None:
            edits = EditSession.from_session(session, statement, page_obj.rows, result.columns)
        else:
            edits = EditSession(statement, page_obj.rows, columns=result.columns)
        return cls(page_obj, edits, parent)

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:
        if parent.isValid():
            return 0
        return len(self.page.rows)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:
        if parent.isValid():
            return 0
        return len(self.columns)

    def data(self, index: QModelIndex, role: int = Qt.ItemDataRole.DisplayRole) -> Any:
        if not index.isValid():
            return None
        row, column = index.row(), self.columns[index.column()]

        if role in (Qt.ItemDataRole.DisplayRole, Qt.ItemDataRole.EditRole):
            value = self.edit_session.value_at(row, column)
            return "" if value is None else str(value)
        if role == Qt.ItemDataRole.BackgroundRole and self.edit_session.is_modified(row):
            return MODIFIED_ROW_COLOR
        return None

    def headerData(self, section: int, orientation: Qt.Orientation,
                   role: int = Qt.ItemDataRole.DisplayRole) -> Any:
        if role != Qt.ItemDataRole.DisplayRole:
            return None
        if orientation == Qt.Orientation.Horizontal:
            return self.columns[section] if section < len(self.columns) else None
        return str(self.page.start + section + 1)

    def flags(self, index: QModelIndex) -> Qt.ItemFlag:
        if not index.isValid():
            return Qt.ItemFlag.NoItemFlags
        flags = Qt.ItemFlag.ItemIsSelectable | Qt.ItemFlag.ItemIsEnabled
        if self.edit_session.editable:
            flags |= Qt.ItemFlag.ItemIsEditable
        return flags

    def setData(self, index: QModelIndex, value: Any,
                role: int = Qt.ItemDataRole.EditRole) -> bool:
        if not index.isValid() or role != Qt.ItemDataRole.EditRole:
            return False
        column = self.columns[index.column()]
        original = self.edit_session.rows[index.row()].get(column)
        # Empty text means NULL, unless the cell was an empty string already
        if value == "" and original != "":
            value = None
        else:
            value = coerce_text(value, original)
        try:
            self.edit_session.set_cell(index.row(), column, value)
        except ReadOnlyResultError:
            return False
        left = self.index(index.row(), 0)
        right = self.index(index.row(), len(self.columns) - 1)
        self.dataChanged.emit(left, right)
        return True

    def discard_changes(self) -> int:
        """Drop pending edits and repaint."""
        self.beginResetModel()
        count = self.edit_session.discard()
        self.endResetModel()
        return count

    def status_text(self, extra: Optional[str] = None) -> str:
        text = self.page.describe()
        if self.edit_session.editable:
            text += " [Editable]"
        if extra:
            text += f" {extra}"
        return text
