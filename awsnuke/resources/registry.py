"""Resource type catalogue and per-run registry."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from ..errors import ConfigurationError
from .base import ResourceLister

if TYPE_CHECKING:
    from ..aws.account import Account

_CATALOGUE: dict[str, type[ResourceLister]] = {}


def register(lister_class: type[ResourceLister]) -> type[ResourceLister]:
    """Class decorator adding a lister to the catalogue.

    Raises:
        ValueError: If the resource type is empty or already registered
    """
    name = lister_class.resource_type
    if not name:
        raise ValueError(f"{lister_class.__name__} has no resource_type")
    if name in _CATALOGUE and _CATALOGUE[name] is not lister_class:
        raise ValueError(f"Resource type {name} is already registered")
    _CATALOGUE[name] = lister_class
    return lister_class


def lister_names() -> list[str]:
    """Sorted names of every registered resource type."""
    return sorted(_CATALOGUE)


def get_lister_class(name: str) -> type[ResourceLister]:
    try:
        return _CATALOGUE[name]
    except KeyError:
        raise ConfigurationError(f"Unknown resource type: {name}")


class ResourceRegistry:
    """Mapping of resource type name to lister instance for one run."""

    def __init__(self, listers: Optional[dict[str, ResourceLister]] = None) -> None:
        self._listers: dict[str, ResourceLister] = dict(listers or {})

    @classmethod
    def from_account(cls, account: "Account", names: Optional[Iterable[str]] = None) -> "ResourceRegistry":
        """Instantiate listers for the given types (all registered types by default).

        Raises:
            ConfigurationError: If a name is not in the catalogue
        """
        selected = lister_names() if names is None else list(names)
        return cls({name: get_lister_class(name)(account) for name in selected})

    def __contains__(self, name: object) -> bool:
        return name in self._listers

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._listers))

    def __len__(self) -> int:
        return len(self._listers)

    def names(self) -> list[str]:
        return sorted(self._listers)

    def get(self, name: str) -> ResourceLister:
        try:
            return self._listers[name]
        except KeyError:
            raise ConfigurationError(f"Resource type {name} is not enabled for this run")

    def restrict(self, names: Iterable[str]) -> "ResourceRegistry":
        """Registry containing only the given types."""
        return ResourceRegistry({name: self.get(name) for name in names})
