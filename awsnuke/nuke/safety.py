"""Safety checks and filter evaluation.

Decides for every scanned resource whether it is a deletion candidate or
protected, and records the rule that decided.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..config.loader import GLOBAL_REGION
from ..filters.filter import Filter, FilterGroup
from ..models.resource import FilterDecision, Resource

NOT_TARGETED = "not targeted"
REGION_PROTECTED = "account/region protection"


class SafetyChecker:
    """Safety checker for resource protection evaluation.

    Rules are evaluated in a fixed order and the first one that protects a
    resource is reported:

    1. the resource type is not in the resolved target set
    2. the resource lives in a region the configuration does not cover
    3. a filter of the resource type's filter group matches

    Attributes:
        filter_groups: Filter groups keyed by resource type
        targets: Resolved resource types of the run
        regions: Configured regions (None disables the region check)
    """

    def __init__(
        self,
        filter_groups: Optional[dict[str, FilterGroup]] = None,
        targets: Optional[Iterable[str]] = None,
        regions: Optional[Iterable[str]] = None,
    ) -> None:
        """Initialize safety checker.

        Args:
            filter_groups: Filter groups keyed by resource type (optional)
            targets: Resource types of the run, None allows every type
            regions: Configured regions, None allows every region
        """
        self.filter_groups = filter_groups or {}
        self.targets = set(targets) if targets is not None else None
        self.regions = set(regions) if regions is not None else None

    def group_for(self, resource_type: str) -> FilterGroup:
        """Filter group of a type; types without configuration get an empty group."""
        return self.filter_groups.get(resource_type) or FilterGroup(resource_type=resource_type)

    def evaluate(self, resource: Resource) -> FilterDecision:
        """Decide whether a resource is protected.

        Args:
            resource: Scanned resource

        Returns:
            FilterDecision, filtered with the first deciding rule or a candidate
        """
        if self.targets is not None and resource.resource_type not in self.targets:
            return FilterDecision.protected(NOT_TARGETED, rule="targets")

        if self.regions is not None and resource.region != GLOBAL_REGION and resource.region not in self.regions:
            return FilterDecision.protected(
                f"{REGION_PROTECTED}: region {resource.region} is not configured", rule="regions"
            )

        matched = self.group_for(resource.resource_type).first_match(resource)
        if matched is not None:
            return FilterDecision.protected(self._get_protection_reason(matched), rule=matched.name)

        return FilterDecision.candidate()

    def _get_protection_reason(self, matched: Filter) -> str:
        return f"filtered by config ({matched.name}: {matched.describe()})"
