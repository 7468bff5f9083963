"""Value types shared by the splitter, executor and reconciler."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Statement:
    """One SQL command cut out of a submission. Position is 1-based."""

    text: str
    position: int = 1

    def __str__(self) -> str:
        return self.text


@dataclass
class ExecutionResult:
    """Outcome of a single statement."""

    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    elapsed_ms: int = 0
    error: Optional[str] = None

    @classmethod
    def failed(cls, message: str, elapsed_ms: int = 0) -> "ExecutionResult":
        return cls(row_count=0, elapsed_ms=elapsed_ms, error=message)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "columns": list(self.columns),
            "rows": [dict(row) for row in self.rows],
            "rowCount": self.row_count,
            "executionTime": self.elapsed_ms,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class HistoryEntry:
    """A row of the query history log."""

    id: Optional[int]
    connection_id: Optional[int]
    query: str
    execution_time: int = 0
    row_count: int = 0
    status: str = "success"
    error_message: Optional[str] = None
    executed_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            id=row.get("id"),
            connection_id=row.get("connection_id"),
            query=row.get("query", ""),
            execution_time=row.get("execution_time") or 0,
            row_count=row.get("row_count") or 0,
            status=row.get("status") or "success",
            error_message=row.get("error_message"),
            executed_at=row.get("executed_at"),
        )


@dataclass(frozen=True)
class TableInfo:
    name: str
    type: str = "BASE TABLE"
    schema: Optional[str] = None

    @property
    def is_view(self) -> bool:
        return "VIEW" in (self.type or "").upper()


@dataclass(frozen=True)
class ColumnInfo:
    """Column metadata; ``key`` is 'PRI' for primary key columns."""

    name: str
    type: str
    nullable: bool = True
    key: str = ""
    default: Any = None

    @property
    def primary_key(self) -> bool:
        return (self.key or "").upper() == "PRI"
