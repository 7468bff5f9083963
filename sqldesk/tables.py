"""Best-effort detection of the table a statement reads from or writes to.

This is a text scan, not a parse. Anything behind the
:class:`TableNameResolver` interface can replace it.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TableRef:
    """A table plus the schema and database it lives in."""

    name: str
    schema: Optional[str] = None
    database: Optional[str] = None

    def qualified(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name

    def __str__(self) -> str:
        return self.qualified()


class TableNameResolver(ABC):
    """Finds the origin table of a statement, or None."""

    @abstractmethod
    def resolve(self, sql: str) -> Optional[TableRef]:
        pass


_IDENT = r'[`"]?(\w+)[`"]?'

_TABLE_RE = re.compile(
    r'\b(?:FROM|INTO|UPDATE)\s+' + _IDENT + r'(?:\s*\.\s*' + _IDENT + r')?',
    re.IGNORECASE,
)


class RegexTableNameResolver(TableNameResolver):
    """First identifier after FROM, INTO or UPDATE.

    ``db.table`` yields a TableRef with the qualifier in ``schema``.
    """

    def resolve(self, sql: str) -> Optional[TableRef]:
        if not sql:
            return None
        match = _TABLE_RE.search(sql)
        if not match:
            return None
        first, second = match.group(1), match.group(2)
        if second:
            return TableRef(second, schema=first)
        return TableRef(first)


default_resolver = RegexTableNameResolver()


def infer_table_name(sql: str) -> Optional[str]:
    """Return the bare table name for ``sql`` or None when none is found."""
    table = default_resolver.resolve(sql)
    return table.name if table else None
