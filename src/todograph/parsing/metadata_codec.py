"""Inline metadata markers on a task description.

A description is free text whose last line may consist purely of markers::

    Write the quarterly report
    ^a1b !c2d -^e3f -!g4h ~i5j p1 @friday #work #q3

Only the last line is scanned, and only when removing every recognized token
leaves it blank; otherwise the whole description is prose and nothing is
extracted. The description stays the source of truth and structured fields
are derived from it.
"""

from __future__ import annotations

import re
from datetime import date

from pydantic import BaseModel, Field

from todograph.models.core import Priority
from todograph.parsing.date_parser import parse_date

# A token must start a line or follow whitespace, so "^abc" never matches the
# tail of "-^abc".
_ID = r"(\w{3})"
_END = r"(?!\S)"

INVERSE_PARENT_PATTERN = re.compile(r"(?<!\S)-\^" + _ID + _END)
INVERSE_BLOCKED_BY_PATTERN = re.compile(r"(?<!\S)-!" + _ID + _END)
PARENT_PATTERN = re.compile(r"(?<!\S)\^" + _ID + _END)
BLOCKS_PATTERN = re.compile(r"(?<!\S)!" + _ID + _END)
RELATED_PATTERN = re.compile(r"(?<!\S)~" + _ID + _END)
PRIORITY_PATTERN = re.compile(r"(?<!\S)p([123])" + _END, re.IGNORECASE)
DUE_PATTERN = re.compile(r"(?<!\S)@(\S+)")
TAG_PATTERN = re.compile(r"(?<!\S)#([\w-]+)" + _END)

# Inverse tokens are stripped before their forward counterparts.
_STRIP_ORDER = (
    INVERSE_PARENT_PATTERN,
    INVERSE_BLOCKED_BY_PATTERN,
    PARENT_PATTERN,
    BLOCKS_PATTERN,
    RELATED_PATTERN,
    PRIORITY_PATTERN,
    DUE_PATTERN,
    TAG_PATTERN,
)


class MarkerFields(BaseModel):
    """Structured content of a metadata line, in canonical order."""

    parent_id: str | None = None
    blocks_ids: list[str] = Field(default_factory=list)
    inverse_parent_ids: list[str] = Field(default_factory=list)
    inverse_blocked_by_ids: list[str] = Field(default_factory=list)
    related_ids: list[str] = Field(default_factory=list)
    priority: Priority | None = None
    due_date_raw: str | None = None
    tags: list[str] = Field(default_factory=list)


class ParsedDescription(MarkerFields):
    """Result of parsing a description.

    Attributes:
        prose: Description without the metadata line
        due_date: ``due_date_raw`` resolved against the reference day
        is_last_line_metadata_only: Whether a metadata line was found
    """

    prose: str = ""
    due_date: date | None = None
    is_last_line_metadata_only: bool = False

    def markers(self) -> MarkerFields:
        """Return only the structured marker fields."""
        return MarkerFields(**self.model_dump(include=set(MarkerFields.model_fields)))


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def is_metadata_line(line: str) -> bool:
    """Check whether a line holds markers and nothing else."""
    if not line.strip():
        return False
    stripped = line
    for pattern in _STRIP_ORDER:
        stripped = pattern.sub(" ", stripped)
    return not stripped.strip()


def parse(description: str, today: date | None = None) -> ParsedDescription:
    """Extract structured fields from a description.

    Args:
        description: Raw task description
        today: Reference day for relative due-date markers

    Returns:
        ParsedDescription; all fields empty when the last line is prose
    """
    lines = description.split("\n")
    last_line = lines[-1]
    if not is_metadata_line(last_line):
        return ParsedDescription(prose=description)

    priority_match = PRIORITY_PATTERN.search(last_line)
    due_match = DUE_PATTERN.search(last_line)
    parent_match = PARENT_PATTERN.search(last_line)
    due_raw = due_match.group(1) if due_match else None

    return ParsedDescription(
        prose="\n".join(lines[:-1]),
        parent_id=parent_match.group(1) if parent_match else None,
        blocks_ids=_dedupe(BLOCKS_PATTERN.findall(last_line)),
        inverse_parent_ids=_dedupe(INVERSE_PARENT_PATTERN.findall(last_line)),
        inverse_blocked_by_ids=_dedupe(INVERSE_BLOCKED_BY_PATTERN.findall(last_line)),
        related_ids=_dedupe(RELATED_PATTERN.findall(last_line)),
        priority=Priority(int(priority_match.group(1))) if priority_match else None,
        due_date_raw=due_raw,
        due_date=parse_date(due_raw, today) if due_raw else None,
        tags=_dedupe([tag.lower() for tag in TAG_PATTERN.findall(last_line)]),
        is_last_line_metadata_only=True,
    )


def build_marker_line(fields: MarkerFields) -> str:
    """Render marker fields as a single line in canonical order."""
    tokens: list[str] = []
    if fields.parent_id:
        tokens.append(f"^{fields.parent_id}")
    tokens.extend(f"!{task_id}" for task_id in _dedupe(fields.blocks_ids))
    tokens.extend(f"-^{task_id}" for task_id in _dedupe(fields.inverse_parent_ids))
    tokens.extend(f"-!{task_id}" for task_id in _dedupe(fields.inverse_blocked_by_ids))
    tokens.extend(f"~{task_id}" for task_id in _dedupe(fields.related_ids))
    if fields.priority is not None:
        tokens.append(f"p{int(fields.priority)}")
    if fields.due_date_raw:
        tokens.append(f"@{fields.due_date_raw}")
    tokens.extend(f"#{tag}" for tag in _dedupe([t.lower() for t in fields.tags]))
    return " ".join(tokens)


def serialize(prose: str, fields: MarkerFields) -> str:
    """Rebuild a description from prose and marker fields.

    Absent fields are omitted; an empty marker line leaves the prose alone.
    """
    line = build_marker_line(fields)
    if not line:
        return prose
    if not prose:
        return line
    return f"{prose}\n{line}"


def with_markers(description: str, **changes) -> str:
    """Return ``description`` with some marker fields replaced.

    Example:
        >>> with_markers("Buy milk", parent_id="a1b")
        'Buy milk\\n^a1b'
    """
    parsed = parse(description)
    fields = parsed.markers().model_copy(update=changes)
    return serialize(parsed.prose, fields)


def get_display_description(description: str) -> str:
    """Description as shown to users, without its metadata line.

    A single-line description is always shown as is, even if it consists
    only of markers.
    """
    lines = description.split("\n")
    if len(lines) == 1:
        return description
    if is_metadata_line(lines[-1]):
        return "\n".join(lines[:-1]).rstrip()
    return description.rstrip()
