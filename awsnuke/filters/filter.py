"""Filters and filter groups.

A Filter is a set of Matchers that must all match (AND). A FilterGroup is the
ordered list of Filters configured for one resource type; any matching Filter
protects the resource (OR) and the first one is reported as the reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import ConfigurationError
from ..models.resource import Resource
from .matcher import Matcher, MatchMode

# Keys of the single-property filter form: {property, type, value, invert}
_SINGLE_FORM_KEYS = {"property", "type", "value", "invert"}


@dataclass
class Filter:
    """Named conjunction of property matchers.

    Attributes:
        name: Rule identifier reported when the filter protects a resource
        matchers: Matchers that must all match
    """

    name: str
    matchers: list[Matcher] = field(default_factory=list)

    def matches(self, resource: Resource) -> bool:
        if not self.matchers:
            return False
        return all(matcher.matches(resource) for matcher in self.matchers)

    def describe(self) -> str:
        return " and ".join(matcher.describe() for matcher in self.matchers)


@dataclass
class FilterGroup:
    """Ordered filters for one resource type."""

    resource_type: str
    filters: list[Filter] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.filters)

    def first_match(self, resource: Resource) -> Optional[Filter]:
        """Return the first filter matching the resource, None if none does."""
        for candidate in self.filters:
            if candidate.matches(resource):
                return candidate
        return None

    def extend(self, other: "FilterGroup") -> None:
        self.filters.extend(other.filters)


def build_matcher(entry: Any, property_name: Optional[str] = None) -> Matcher:
    """Build a Matcher from a pattern entry.

    Args:
        entry: Scalar (exact match) or mapping with type/value/invert keys
        property_name: Property the matcher is bound to (optional)

    Raises:
        ConfigurationError: If the entry is malformed or the pattern invalid
    """
    if isinstance(entry, dict):
        unknown = set(entry) - {"type", "value", "invert"}
        if unknown:
            raise ConfigurationError(f"Unknown filter keys {sorted(unknown)} for property '{property_name}'")
        mode = MatchMode.parse(entry.get("type"))
        if "value" not in entry and mode != MatchMode.EMPTY:
            raise ConfigurationError(f"Filter for property '{property_name}' has no value")
        return Matcher(
            value=entry.get("value", ""),
            mode=mode,
            property=property_name,
            invert=_parse_invert(entry.get("invert", False)),
        )
    if isinstance(entry, (list, tuple)) or entry is None:
        raise ConfigurationError(f"Invalid filter pattern {entry!r} for property '{property_name}'")
    return Matcher(value=entry, mode=MatchMode.EXACT, property=property_name)


def _parse_invert(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if str(value).lower() in ("true", "yes", "1"):
        return True
    if str(value).lower() in ("false", "no", "0", ""):
        return False
    raise ConfigurationError(f"Invalid invert flag {value!r}")


def build_filter(resource_type: str, index: int, entry: Any, source: Optional[str] = None) -> Filter:
    """Build a Filter from one entry of a resource type's filter list.

    Supported forms:
        "my-bucket"                               exact match on str(resource)
        {property: Name, type: glob, value: x}    one property
        {type: regex, value: "^tmp-"}             str(resource), with a mode
        {Name: "x", tag:Env: {type: glob, ...}}   several properties, AND

    Raises:
        ConfigurationError: If the entry is malformed
    """
    name = f"{resource_type}[{index}]"
    if source:
        name = f"{source}:{name}"

    if isinstance(entry, dict):
        if not entry:
            raise ConfigurationError(f"Empty filter {name}")
        if "property" in entry or (set(entry) <= _SINGLE_FORM_KEYS and "value" in entry):
            unknown = set(entry) - _SINGLE_FORM_KEYS
            if unknown:
                raise ConfigurationError(f"Unknown keys {sorted(unknown)} in filter {name}")
            property_name = entry.get("property")
            pattern = {key: entry[key] for key in ("type", "value", "invert") if key in entry}
            return Filter(name=name, matchers=[build_matcher(pattern, property_name)])

        matchers = [build_matcher(pattern, str(property_name)) for property_name, pattern in entry.items()]
        return Filter(name=name, matchers=matchers)

    if isinstance(entry, (list, tuple)) or entry is None:
        raise ConfigurationError(f"Invalid filter {name}: {entry!r}")

    return Filter(name=name, matchers=[build_matcher(entry)])


def build_filter_group(resource_type: str, entries: Optional[list], source: Optional[str] = None) -> FilterGroup:
    """Build the FilterGroup for one resource type from its configured entries.

    Args:
        resource_type: Resource type the entries apply to
        entries: Filter entries from the configuration document
        source: Prefix for rule names, e.g. "preset common" (optional)
    """
    if entries is None:
        return FilterGroup(resource_type=resource_type)
    if not isinstance(entries, list):
        raise ConfigurationError(f"Filters for {resource_type} must be a list")
    return FilterGroup(
        resource_type=resource_type,
        filters=[build_filter(resource_type, index, entry, source) for index, entry in enumerate(entries)],
    )
