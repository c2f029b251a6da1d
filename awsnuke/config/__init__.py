"""Filter configuration loading."""

from __future__ import annotations

from .loader import GLOBAL_REGION, AccountConfig, NukeConfig, TypeSelection, load_config, merge_documents

__all__ = [
    "GLOBAL_REGION",
    "AccountConfig",
    "NukeConfig",
    "TypeSelection",
    "load_config",
    "merge_documents",
]
