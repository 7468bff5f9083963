"""Result envelopes handed from the executor to the results view.

An envelope is either a :class:`SingleEnvelope` (one statement was
submitted) or a :class:`MultiEnvelope` (several were). The ``kind``
attribute tells them apart; an empty column list never does, since a
single statement such as an UPDATE legitimately returns no columns.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple, Union

from .models import ExecutionResult, Statement

# verb -> (label, regex for the identifier that follows the target keyword)
_LABEL_RULES = {
    "SELECT": ("Query", r'\bFROM\s+[`"]?(\w+)'),
    "INSERT": ("Insert", r'\bINTO\s+[`"]?(\w+)'),
    "UPDATE": ("Update", r'^\s*UPDATE\s+[`"]?(\w+)'),
    "DELETE": ("Delete", r'\bFROM\s+[`"]?(\w+)'),
    "CREATE": ("Create", None),
    "DROP": ("Drop", None),
    "ALTER": ("Alter", None),
}

_DDL_TARGET = (r'\b(?:TABLE|VIEW|INDEX|DATABASE|SCHEMA|SEQUENCE|FUNCTION|PROCEDURE)\s+'
               r'(?:IF\s+(?:NOT\s+)?EXISTS\s+)?[`"]?(\w+)')

_VERB_RE = re.compile(r'^\s*(\w+)')


def statement_label(text: str, position: int) -> str:
    """Human label for a statement: verb plus target table, else its position."""
    match = _VERB_RE.match(text or "")
    verb = match.group(1).upper() if match else ""
    rule = _LABEL_RULES.get(verb)
    if rule:
        label, pattern = rule
        target = re.search(pattern or _DDL_TARGET, text, re.IGNORECASE)
        if target:
            return f"{label} {target.group(1)}"
    return f"Statement {position}"


@dataclass(frozen=True)
class StatementResult:
    """One statement of a multi-statement submission and its result."""

    statement: Statement
    result: ExecutionResult

    @property
    def index(self) -> int:
        return self.statement.position

    @property
    def label(self) -> str:
        return statement_label(self.statement.text, self.statement.position)

    @property
    def title(self) -> str:
        return f"{self.label} ({self.result.row_count} rows)"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "statement": self.statement.text,
            "label": self.label,
            "result": self.result.to_dict(),
        }


@dataclass(frozen=True)
class SingleEnvelope:
    """Envelope for a one-statement submission."""

    statement: Statement
    result: ExecutionResult

    kind = "single"

    @property
    def items(self) -> Tuple[StatementResult, ...]:
        return (StatementResult(self.statement, self.result),)

    @property
    def total_rows(self) -> int:
        return self.result.row_count

    def to_dict(self) -> Dict[str, Any]:
        data = self.result.to_dict()
        data["kind"] = self.kind
        return data


@dataclass(frozen=True)
class MultiEnvelope:
    """Envelope for a submission of several statements, in order."""

    items: Tuple[StatementResult, ...]

    kind = "multi"

    @property
    def statements(self) -> List[str]:
        return [item.statement.text for item in self.items]

    @property
    def results(self) -> List[ExecutionResult]:
        return [item.result for item in self.items]

    @property
    def total_rows(self) -> int:
        return sum(item.result.row_count for item in self.items)

    def to_dict(self) -> Dict[str, Any]:
        # Top-level columns/rows stay empty; the content is per statement.
        return {
            "kind": self.kind,
            "columns": [],
            "rows": [],
            "rowCount": self.total_rows,
            "executionTime": 0,
            "multiStatementResults": [item.to_dict() for item in self.items],
        }


Envelope = Union[SingleEnvelope, MultiEnvelope]


def build_envelope(pairs: Iterable[Tuple[Statement, ExecutionResult]]) -> Envelope:
    """Wrap (statement, result) pairs; one pair gives a single envelope."""
    items = tuple(StatementResult(stmt, result) for stmt, result in pairs)
    if not items:
        raise ValueError("Cannot build an envelope without results")
    if len(items) == 1:
        return SingleEnvelope(items[0].statement, items[0].result)
    return MultiEnvelope(items)
