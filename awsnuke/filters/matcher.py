"""Single property comparisons used by filters.

A Matcher compares one resource property against a pattern using a match
mode. Patterns are validated when the Matcher is built so that a broken
configuration fails before any scan begins.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

from ..errors import ConfigurationError
from ..models.resource import Resource, format_value

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d|w)")

_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}


class MatchMode(Enum):
    """Comparison mode of a Matcher."""

    EXACT = "exact"
    CONTAINS = "contains"
    GLOB = "glob"
    REGEX = "regex"
    GREATER_THAN = "gt"
    LESS_THAN = "lt"
    DATE_OLDER_THAN = "dateOlderThan"
    EMPTY = "empty"

    @classmethod
    def parse(cls, name: Optional[str]) -> "MatchMode":
        """Resolve a mode name from the configuration document.

        Raises:
            ConfigurationError: If the name is unknown
        """
        if name is None:
            return cls.EXACT
        normalized = str(name).strip()
        for mode in cls:
            if normalized == mode.value or normalized.lower() == mode.value.lower():
                return mode
        aliases = {"greater-than": cls.GREATER_THAN, "less-than": cls.LESS_THAN, "absent": cls.EMPTY}
        if normalized.lower() in aliases:
            return aliases[normalized.lower()]
        raise ConfigurationError(f"Unknown filter type '{name}'")


def parse_duration(text: str) -> timedelta:
    """Parse durations like "24h", "7d" or "1h30m".

    Raises:
        ConfigurationError: If the text is not a valid duration
    """
    value = str(text).strip()
    parts = _DURATION_PART.findall(value)
    if not value or "".join(number + unit for number, unit in parts) != value:
        raise ConfigurationError(f"Invalid duration '{text}'")
    seconds = sum(float(number) * _DURATION_UNITS[unit] for number, unit in parts)
    return timedelta(seconds=seconds)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a property value as a point in time (ISO 8601 or unix seconds)."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = datetime.fromtimestamp(float(text), tz=timezone.utc)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Matcher:
    """Comparison of one resource property against a pattern.

    Attributes:
        value: Pattern to compare against
        mode: Comparison mode
        property: Property name, None to compare against str(resource)
        invert: Negate the comparison result
        clock: Returns "now" for dateOlderThan comparisons
    """

    value: Any
    mode: MatchMode = MatchMode.EXACT
    property: Optional[str] = None
    invert: bool = False
    clock: Callable[[], datetime] = field(default=_utcnow, repr=False, compare=False)
    _regex: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)
    _number: Optional[float] = field(default=None, init=False, repr=False, compare=False)
    _duration: Optional[timedelta] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check that the pattern is usable for the mode.

        Raises:
            ConfigurationError: If the pattern is invalid for its mode
        """
        if self.mode == MatchMode.REGEX:
            try:
                self._regex = re.compile(str(self.value))
            except re.error as e:
                raise ConfigurationError(f"Invalid regex '{self.value}': {e}")
        elif self.mode == MatchMode.GLOB:
            self._regex = re.compile(fnmatch.translate(str(self.value)))
        elif self.mode in (MatchMode.GREATER_THAN, MatchMode.LESS_THAN):
            self._number = _to_number(self.value)
            if self._number is None:
                raise ConfigurationError(f"Filter type '{self.mode.value}' needs a numeric value, got '{self.value}'")
        elif self.mode == MatchMode.DATE_OLDER_THAN:
            if self.property is None:
                raise ConfigurationError("Filter type 'dateOlderThan' needs a property")
            self._duration = parse_duration(self.value)

    def matches(self, resource: Resource) -> bool:
        """Evaluate the comparison against a resource, applying invert."""
        return self._compare(resource) != self.invert

    def _compare(self, resource: Resource) -> bool:
        if self.property is None:
            actual: Any = str(resource)
        elif not resource.has_property(self.property):
            return self.mode == MatchMode.EMPTY
        else:
            actual = resource.get_property(self.property)

        if self.mode == MatchMode.EMPTY:
            return actual is None or format_value(actual) == ""

        if actual is None:
            return False

        if self.mode in (MatchMode.GREATER_THAN, MatchMode.LESS_THAN):
            number = _to_number(actual)
            if number is None:
                return False
            if self.mode == MatchMode.GREATER_THAN:
                return number > self._number
            return number < self._number

        if self.mode == MatchMode.DATE_OLDER_THAN:
            timestamp = parse_timestamp(actual)
            if timestamp is None:
                return False
            return timestamp + self._duration < self.clock()

        text = format_value(actual)
        pattern = format_value(self.value)
        if self.mode == MatchMode.EXACT:
            return text == pattern
        if self.mode == MatchMode.CONTAINS:
            return pattern in text
        if self.mode == MatchMode.GLOB:
            return self._regex.match(text) is not None
        return self._regex.search(text) is not None

    def describe(self) -> str:
        """Short human-readable form used in filter decision reasons."""
        target = self.property or "name"
        operator = "not " if self.invert else ""
        return f"{target} {operator}{self.mode.value} '{format_value(self.value)}'"
