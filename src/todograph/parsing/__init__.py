"""Description marker codec, due-date grammar and search filters."""

from .date_parser import format_date, parse_date
from .metadata_codec import (
    MarkerFields,
    ParsedDescription,
    get_display_description,
    parse,
    serialize,
    with_markers,
)
from .search_filters import SearchFilters, parse_search_filters

__all__ = [
    "MarkerFields",
    "ParsedDescription",
    "SearchFilters",
    "format_date",
    "get_display_description",
    "parse",
    "parse_date",
    "parse_search_filters",
    "serialize",
    "with_markers",
]
