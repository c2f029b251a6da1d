"""Resource and filter decision models.

A Resource is one discovered cloud object as returned by a lister. It only
lives for the duration of a run and is never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

TAG_PREFIX = "tag:"


@dataclass
class Resource:
    """Discovered cloud resource.

    Attributes:
        resource_type: Lister name (e.g. "S3Bucket")
        identifier: Opaque, stable identifier used for removal
        region: AWS region, or "global" for global services
        properties: Matchable properties (tags exposed as "tag:<Key>")
        label: Optional human-readable name
    """

    resource_type: str
    identifier: str
    region: str
    properties: dict[str, Any] = field(default_factory=dict)
    label: Optional[str] = None

    def __str__(self) -> str:
        return self.label if self.label else self.identifier

    @property
    def tags(self) -> dict[str, Any]:
        """Tags of the resource, without the property prefix."""
        return {
            key[len(TAG_PREFIX) :]: value for key, value in self.properties.items() if key.startswith(TAG_PREFIX)
        }

    def has_property(self, name: str) -> bool:
        return name in self.properties

    def get_property(self, name: str) -> Any:
        """Return a property value, None when the resource lacks it."""
        return self.properties.get(name)

    def set_tags(self, tags: dict[str, Any]) -> None:
        """Expose tags as "tag:<Key>" properties."""
        for key, value in tags.items():
            self.properties[f"{TAG_PREFIX}{key}"] = value

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_type": self.resource_type,
            "identifier": self.identifier,
            "region": self.region,
            "label": self.label,
            "properties": {key: format_value(value) for key, value in self.properties.items()},
        }


def format_value(value: Any) -> str:
    """Render a property value the way filters compare it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


@dataclass(frozen=True)
class FilterDecision:
    """Outcome of evaluating one resource against the filter configuration.

    Attributes:
        filtered: True when the resource is protected from removal
        reason: Human-readable explanation, None for candidates
        rule: Identifier of the rule that decided, None for candidates
    """

    filtered: bool
    reason: Optional[str] = None
    rule: Optional[str] = None

    @classmethod
    def candidate(cls) -> "FilterDecision":
        return cls(filtered=False)

    @classmethod
    def protected(cls, reason: str, rule: Optional[str] = None) -> "FilterDecision":
        return cls(filtered=True, reason=reason, rule=rule)
