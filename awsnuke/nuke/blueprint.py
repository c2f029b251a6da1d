"""Blueprint generation.

Scans the account read-only and writes a filter configuration that protects
every resource currently present. Merged with the main configuration through
a second --config, the blueprint turns every former candidate into a filtered
resource, which makes it a starting point for a protection configuration.
"""

from __future__ import annotations

import json
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from ..config.loader import NukeConfig
from ..models.resource import FilterDecision, Resource, format_value
from ..resources.registry import ResourceRegistry
from .safety import SafetyChecker
from .scanner import DEFAULT_MAX_WORKERS, Scanner

if TYPE_CHECKING:
    from ..aws.account import Account

logger = logging.getLogger(__name__)


def _quote(value: Any) -> str:
    # JSON strings are valid YAML flow scalars
    return json.dumps(format_value(value), ensure_ascii=False)


def _comment(text: Optional[str]) -> str:
    # A comment ends at the first line break
    return " ".join((text or "").splitlines())


class BlueprintBuilder:
    """Generate a filter configuration from the current account state.

    Attributes:
        account: Account to describe
        config: Configuration whose filters classify the scan
        registry: Listers of the resource types to describe
        scanner: Read-only scan/filter pipeline
    """

    def __init__(
        self,
        account: "Account",
        config: NukeConfig,
        registry: Optional[ResourceRegistry] = None,
        targets: Optional[list[str]] = None,
        excludes: Optional[list[str]] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        """Initialize blueprint builder.

        Raises:
            ConfigurationError: If targets or filters are invalid, or no region is configured
        """
        config.validate_for_run()

        self.account = account
        self.config = config

        catalogue = registry if registry is not None else ResourceRegistry.from_account(account)
        resource_types = config.resolve_resource_types(
            catalogue.names(),
            account_id=account.account_id,
            targets=targets,
            excludes=excludes,
        )
        self.registry = catalogue.restrict(resource_types)
        self.scanner = Scanner(
            registry=self.registry,
            checker=SafetyChecker(
                filter_groups=config.filter_groups(account.account_id),
                targets=resource_types,
                regions=config.regions,
            ),
            regions=config.regions,
            max_workers=max_workers,
            call_timeout=account.call_timeout,
        )

    def build(self, include_filtered: bool = False, include_name: bool = False) -> str:
        """Scan the account and render the blueprint.

        Args:
            include_filtered: List already-filtered resources as comments
            include_name: Also emit a filter on each resource's label

        Returns:
            YAML document with an accounts.<id>.filters section
        """
        by_type: "OrderedDict[str, list[tuple[Resource, FilterDecision]]]" = OrderedDict()
        for resource, decision in self.scanner.scan():
            by_type.setdefault(resource.resource_type, []).append((resource, decision))

        candidates = sum(1 for entries in by_type.values() for _, decision in entries if not decision.filtered)
        logger.info(f"Blueprint covers {candidates} resources in {len(by_type)} resource types")

        lines = [
            f"# Blueprint for account {self.account.account_id}",
            f"# Generated {datetime.now(timezone.utc).isoformat()}",
        ]
        for error in self.scanner.errors:
            lines.append(f"# Listing failed: {_comment(str(error))}")

        lines.append("accounts:")
        lines.append(f"  {_quote(self.account.account_id)}:")

        body = []
        for resource_type in sorted(by_type):
            entries = self._render_type(resource_type, by_type[resource_type], include_filtered, include_name)
            if entries:
                body.append(f"      {resource_type}:")
                body.extend(entries)

        if body:
            lines.append("    filters:")
            lines.extend(body)
        else:
            lines.append("    filters: {}")

        return "\n".join(lines) + "\n"

    def _render_type(
        self,
        resource_type: str,
        entries: list[tuple[Resource, FilterDecision]],
        include_filtered: bool,
        include_name: bool,
    ) -> list[str]:
        id_property = self.registry.get(resource_type).id_property
        lines: list[str] = []

        for resource, decision in entries:
            if decision.filtered:
                if include_filtered:
                    lines.append(f"        # {_quote(str(resource))}: {_comment(decision.reason)}")
                continue

            by_name = not (id_property and resource.has_property(id_property))
            if by_name:
                lines.append(f"        - {_quote(str(resource))}")
            else:
                lines.append(f"        - property: {_quote(id_property)}")
                lines.append(f"          value: {_quote(resource.get_property(id_property))}")

            if include_name and resource.label and not by_name:
                lines.append(f"        - {_quote(resource.label)}")

        # A type with only comments still needs a valid (empty) list
        if lines and all(line.lstrip().startswith("#") for line in lines):
            lines.append("        []")
        return lines
