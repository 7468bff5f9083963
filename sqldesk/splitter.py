"""Splitting an editor buffer into statements.

The separator is a bare ``;``. Semicolons inside string literals or
comments are not protected, so ``SELECT ';'`` splits in two. Use a
selection to run such a statement as-is.
"""

from typing import List, Optional

import sqlparse

from .errors import EmptyQueryError
from .models import Statement


def split_statements(text: str) -> List[Statement]:
    """Split SQL text into trimmed statements, dropping empty fragments."""
    fragments = [part.strip() for part in (text or "").split(';')]
    statements = []
    for fragment in fragments:
        if not fragment:
            continue
        statements.append(Statement(fragment, len(statements) + 1))

    if not statements:
        raise EmptyQueryError("No query to execute")
    return statements


def resolve_submission(buffer: str, selection: Optional[str] = None) -> List[Statement]:
    """Get the statements to run for a buffer and optional selection.

    A non-blank selection runs verbatim as one statement, separators
    included. Otherwise the whole buffer is split.
    """
    if selection is not None and selection.strip():
        return [Statement(selection, 1)]
    return split_statements(buffer)


def is_multi_statement(buffer: str, selection: Optional[str] = None) -> bool:
    return len(resolve_submission(buffer, selection)) > 1


def format_sql(text: str) -> str:
    """Reindent SQL and upper-case its keywords."""
    return sqlparse.format(text, reindent=True, keyword_case='upper')
