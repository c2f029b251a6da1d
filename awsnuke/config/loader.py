"""Filter configuration document loading and validation.

The configuration is a YAML document naming the regions to scan, the accounts
that must never be touched, global and per-account resource type selection,
reusable filter presets and the per-account filters.

Several documents can be loaded at once (e.g. a base configuration plus a
generated blueprint). Later documents override scalars and lists, except that
filter lists and preset references of an account are concatenated.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import yaml

from ..errors import ConfigurationError
from ..filters.filter import FilterGroup, build_filter_group

logger = logging.getLogger(__name__)

GLOBAL_REGION = "global"

_TOP_LEVEL_KEYS = {"regions", "account-blocklist", "account-blacklist", "resource-types", "presets", "accounts"}
_ACCOUNT_KEYS = {"filters", "presets", "resource-types"}
_SELECTION_KEYS = {"targets", "excludes"}


@dataclass
class TypeSelection:
    """Resource type allow-list and deny-list."""

    targets: list[str] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict], where: str) -> "TypeSelection":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(f"'resource-types' in {where} must be a mapping")
        unknown = set(data) - _SELECTION_KEYS
        if unknown:
            raise ConfigurationError(f"Unknown keys {sorted(unknown)} in {where} resource-types")
        return cls(
            targets=_string_list(data.get("targets"), f"{where} resource-types.targets"),
            excludes=_string_list(data.get("excludes"), f"{where} resource-types.excludes"),
        )


@dataclass
class AccountConfig:
    """Per-account settings.

    Attributes:
        filters: Raw filter entries keyed by resource type
        presets: Names of presets whose filters apply to this account
        resource_types: Account-level type selection
    """

    filters: dict[str, list] = field(default_factory=dict)
    presets: list[str] = field(default_factory=list)
    resource_types: TypeSelection = field(default_factory=TypeSelection)


@dataclass
class NukeConfig:
    """Parsed filter configuration.

    Attributes:
        regions: Regions to scan, "global" for global services
        account_blocklist: Account IDs that must never be nuked
        resource_types: Global type selection
        presets: Named, reusable filter sets
        accounts: Per-account configuration keyed by account ID
        sources: Files the configuration was loaded from
    """

    regions: list[str] = field(default_factory=list)
    account_blocklist: list[str] = field(default_factory=list)
    resource_types: TypeSelection = field(default_factory=TypeSelection)
    presets: dict[str, dict[str, list]] = field(default_factory=dict)
    accounts: dict[str, AccountConfig] = field(default_factory=dict)
    sources: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict], sources: Optional[list[str]] = None) -> "NukeConfig":
        """Build a configuration from a parsed document.

        Raises:
            ConfigurationError: If the document is malformed
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration document must be a mapping")

        unknown = set(data) - _TOP_LEVEL_KEYS
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        blocklist = data.get("account-blocklist")
        if blocklist is None and "account-blacklist" in data:
            logger.warning("'account-blacklist' is deprecated, use 'account-blocklist'")
            blocklist = data.get("account-blacklist")

        presets = {}
        for name, preset in (data.get("presets") or {}).items():
            if not isinstance(preset, dict) or set(preset) - {"filters"}:
                raise ConfigurationError(f"Preset '{name}' must be a mapping with a 'filters' key")
            presets[str(name)] = _filter_mapping(preset.get("filters"), f"preset '{name}'")

        accounts = {}
        raw_accounts = data.get("accounts") or {}
        if not isinstance(raw_accounts, dict):
            raise ConfigurationError("'accounts' must be a mapping of account ID to settings")
        for account_id, settings in raw_accounts.items():
            settings = settings or {}
            if not isinstance(settings, dict):
                raise ConfigurationError(f"Account '{account_id}' settings must be a mapping")
            unknown = set(settings) - _ACCOUNT_KEYS
            if unknown:
                raise ConfigurationError(f"Unknown keys {sorted(unknown)} for account '{account_id}'")
            accounts[str(account_id)] = AccountConfig(
                filters=_filter_mapping(settings.get("filters"), f"account '{account_id}'"),
                presets=_string_list(settings.get("presets"), f"account '{account_id}' presets"),
                resource_types=TypeSelection.from_dict(settings.get("resource-types"), f"account '{account_id}'"),
            )

        config = cls(
            regions=_string_list(data.get("regions"), "regions"),
            account_blocklist=_string_list(blocklist, "account-blocklist"),
            resource_types=TypeSelection.from_dict(data.get("resource-types"), "configuration"),
            presets=presets,
            accounts=accounts,
            sources=sources or [],
        )
        config.validate()
        return config

    def validate(self) -> bool:
        """Validate cross references and compile every filter.

        Returns:
            True if validation passes

        Raises:
            ConfigurationError: If any validation rule fails
        """
        if len(set(self.regions)) != len(self.regions):
            raise ConfigurationError("Duplicate entries in 'regions'")

        for account_id, account in self.accounts.items():
            for preset_name in account.presets:
                if preset_name not in self.presets:
                    raise ConfigurationError(f"Account '{account_id}' references unknown preset '{preset_name}'")
            self.filter_groups(account_id)

        for name, filters in self.presets.items():
            for resource_type, entries in filters.items():
                build_filter_group(resource_type, entries, source=f"preset {name}")

        return True

    def validate_for_run(self) -> None:
        """Checks that only apply once every document has been merged."""
        if not self.regions:
            raise ConfigurationError("The configuration must specify at least one region")

    def filter_groups(self, account_id: str) -> dict[str, FilterGroup]:
        """Compile the filter groups that apply to an account.

        Account filters come first, then preset filters in reference order.
        Resource types without filters are absent from the result.
        """
        account = self.accounts.get(account_id)
        if account is None:
            return {}

        groups: dict[str, FilterGroup] = {}
        sources = [(None, account.filters)]
        sources.extend((f"preset {name}", self.presets.get(name, {})) for name in account.presets)

        for source, filters in sources:
            for resource_type, entries in filters.items():
                group = build_filter_group(resource_type, entries, source=source)
                if resource_type in groups:
                    groups[resource_type].extend(group)
                else:
                    groups[resource_type] = group

        return groups

    def resolve_resource_types(
        self,
        catalogue: Iterable[str],
        account_id: Optional[str] = None,
        targets: Optional[list[str]] = None,
        excludes: Optional[list[str]] = None,
    ) -> list[str]:
        """Resolve the resource types a run will scan.

        Every non-empty target list (command line, configuration, account)
        narrows the selection; every exclude list removes types. Excludes
        always win over targets.

        Args:
            catalogue: All registered resource type names
            account_id: Account whose resource-types settings apply (optional)
            targets: Command line allow-list (optional)
            excludes: Command line deny-list (optional)

        Returns:
            Sorted list of resource type names

        Raises:
            ConfigurationError: If any list names an unknown resource type
        """
        known = set(catalogue)
        account = self.accounts.get(account_id) if account_id else None

        include_lists = [targets or [], self.resource_types.targets]
        exclude_lists = [excludes or [], self.resource_types.excludes]
        if account is not None:
            include_lists.append(account.resource_types.targets)
            exclude_lists.append(account.resource_types.excludes)

        for names in include_lists + exclude_lists:
            unknown = sorted(set(names) - known)
            if unknown:
                raise ConfigurationError(f"Unknown resource types: {', '.join(unknown)}")

        selected = set(known)
        for names in include_lists:
            if names:
                selected &= set(names)
        for names in exclude_lists:
            selected -= set(names)

        return sorted(selected)


def _string_list(value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, list):
        raise ConfigurationError(f"'{where}' must be a list")
    return [str(item) for item in value]


def _filter_mapping(value: Any, where: str) -> dict[str, list]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Filters of {where} must be a mapping of resource type to filter list")
    result = {}
    for resource_type, entries in value.items():
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise ConfigurationError(f"Filters for {resource_type} in {where} must be a list")
        result[str(resource_type)] = entries
    return result


def merge_documents(documents: list[dict]) -> dict:
    """Merge several configuration documents into one.

    Later documents override earlier ones, except for the filter lists and the
    preset references of each account, which are concatenated.
    """
    merged: dict = {}
    for document in documents:
        if document is None:
            continue
        if not isinstance(document, dict):
            raise ConfigurationError("Configuration document must be a mapping")
        for key, value in document.items():
            if key == "accounts" and isinstance(value, dict):
                accounts = merged.setdefault("accounts", {})
                for account_id, settings in value.items():
                    accounts[str(account_id)] = _merge_account(accounts.get(str(account_id)), settings or {})
            elif key == "presets" and isinstance(value, dict):
                merged.setdefault("presets", {}).update(copy.deepcopy(value))
            else:
                merged[key] = copy.deepcopy(value)
    return merged


def _merge_account(existing: Optional[dict], update: dict) -> dict:
    if existing is None:
        return copy.deepcopy(update)
    if not isinstance(update, dict):
        raise ConfigurationError("Account settings must be a mapping")

    result = copy.deepcopy(existing)
    for key, value in update.items():
        if key == "filters" and isinstance(value, dict):
            filters = result.setdefault("filters", {}) or {}
            for resource_type, entries in value.items():
                filters[resource_type] = list(filters.get(resource_type) or []) + list(entries or [])
            result["filters"] = filters
        elif key == "presets" and isinstance(value, list):
            presets = list(result.get("presets") or [])
            result["presets"] = presets + [name for name in value if name not in presets]
        else:
            result[key] = copy.deepcopy(value)
    return result


def parse_document(text: str, source: str = "<string>") -> dict:
    """Parse one YAML configuration document.

    Raises:
        ConfigurationError: If the text is not valid YAML
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse config file {source}: {e}")
    return data or {}


def load_config(*paths: Union[str, Path]) -> NukeConfig:
    """Load and merge configuration files.

    Args:
        paths: Configuration files, later files merged over earlier ones

    Returns:
        Validated NukeConfig

    Raises:
        ConfigurationError: If a file is missing, unreadable or invalid
    """
    if not paths:
        raise ConfigurationError("No configuration file given")

    documents = []
    for path in paths:
        config_path = Path(path).expanduser()
        try:
            text = config_path.read_text()
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file {config_path}: {e}")
        documents.append(parse_document(text, str(config_path)))
        logger.debug(f"Loaded configuration from {config_path}")

    return NukeConfig.from_dict(merge_documents(documents), sources=[str(p) for p in paths])
