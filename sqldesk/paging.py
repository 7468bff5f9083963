"""Client-side pagination of fetched result rows."""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

DEFAULT_ROWS_PER_PAGE = 30


@dataclass
class Page:
    number: int
    per_page: int
    total_rows: int
    rows: List[Dict[str, Any]]

    @property
    def page_count(self) -> int:
        return max(1, (self.total_rows + self.per_page - 1) // self.per_page)

    @property
    def start(self) -> int:
        """Offset of the first row of this page in the full result."""
        return (self.number - 1) * self.per_page

    @property
    def end(self) -> int:
        return self.start + len(self.rows)

    @property
    def has_next(self) -> bool:
        return self.number < self.page_count

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    def describe(self) -> str:
        if not self.rows:
            return "No results"
        return (f"Showing {self.start + 1:,}-{self.end:,} of {self.total_rows:,} row(s) "
                f"(Page {self.number} of {self.page_count})")


def paginate(rows: Sequence[Dict[str, Any]], page: int = 1,
             per_page: int = DEFAULT_ROWS_PER_PAGE) -> Page:
    """Slice ``rows`` to 1-based ``page``, clamped to the available pages."""
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    total = len(rows)
    page_count = max(1, (total + per_page - 1) // per_page)
    number = min(max(1, page), page_count)
    start = (number - 1) * per_page
    return Page(number, per_page, total, list(rows[start:start + per_page]))
