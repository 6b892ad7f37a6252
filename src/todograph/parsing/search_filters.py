"""Search query filters.

A search query is free text mixed with ``prefix:value`` filter tokens::

    report tag:work status:done due:week has:subtasks list:"inbox"

Recognized tokens are removed and the remaining text is matched against
task descriptions. A token with an unknown value (``status:later``) is kept
as plain text.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, Field

from todograph.models.core import Priority, TaskStatus

DueFilter = Literal["today", "overdue", "week", "month"]
HasFilter = Literal["subtasks", "parent", "due", "tags"]

STATUS_VALUES = {
    "pending": TaskStatus.PENDING,
    "wip": TaskStatus.IN_PROGRESS,
    "in-progress": TaskStatus.IN_PROGRESS,
    "inprogress": TaskStatus.IN_PROGRESS,
    "done": TaskStatus.DONE,
}

PRIORITY_VALUES = {
    "high": Priority.HIGH,
    "p1": Priority.HIGH,
    "medium": Priority.MEDIUM,
    "p2": Priority.MEDIUM,
    "low": Priority.LOW,
    "p3": Priority.LOW,
}

DUE_VALUES = ("today", "overdue", "week", "month")
HAS_VALUES = ("subtasks", "parent", "due", "tags")

TOKEN_PATTERN = re.compile(
    r"\b(tag|status|priority|due|list|has):(\"[^\"]*\"|\S+)", re.IGNORECASE
)


class SearchFilters(BaseModel):
    """Structured form of a search query; every filter must match."""

    text: str = ""
    tags: list[str] = Field(default_factory=list)
    status: TaskStatus | None = None
    priority: Priority | None = None
    due: DueFilter | None = None
    list_name: str | None = None
    has: set[HasFilter] = Field(default_factory=set)


def parse_search_filters(query: str) -> SearchFilters:
    """Split a search query into filters and free text."""
    filters = SearchFilters()

    def _take(match: re.Match[str]) -> str:
        prefix = match.group(1).lower()
        raw = match.group(2).strip('"')
        value = raw.lower()

        if prefix == "tag":
            filters.tags.append(value)
        elif prefix == "list":
            # List names are case-sensitive
            filters.list_name = raw
        elif prefix == "status" and value in STATUS_VALUES:
            filters.status = STATUS_VALUES[value]
        elif prefix == "priority" and value in PRIORITY_VALUES:
            filters.priority = PRIORITY_VALUES[value]
        elif prefix == "due" and value in DUE_VALUES:
            filters.due = value
        elif prefix == "has" and value in HAS_VALUES:
            filters.has.add(value)
        else:
            return match.group(0)
        return ""

    remaining = TOKEN_PATTERN.sub(_take, query)
    filters.text = " ".join(remaining.split())
    return filters
