"""Filter matching language: matchers, filters and per-type filter groups."""

from __future__ import annotations

from .filter import Filter, FilterGroup, build_filter, build_filter_group
from .matcher import Matcher, MatchMode, parse_duration

__all__ = [
    "Filter",
    "FilterGroup",
    "Matcher",
    "MatchMode",
    "build_filter",
    "build_filter_group",
    "parse_duration",
]
