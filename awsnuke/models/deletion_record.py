"""Deletion record model.

Per-resource lifecycle state tracked by the deletion scheduler across sweeps.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .resource import FilterDecision, Resource


class ItemState(Enum):
    """Lifecycle state of a single resource during a run."""

    NEW = "new"
    FILTERED = "filtered"
    PENDING = "pending"
    REMOVING = "removing"
    WAITING = "waiting"
    REMOVED = "removed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({ItemState.FILTERED, ItemState.REMOVED, ItemState.FAILED, ItemState.SKIPPED})

ALLOWED_TRANSITIONS: dict[ItemState, frozenset[ItemState]] = {
    ItemState.NEW: frozenset({ItemState.FILTERED, ItemState.PENDING}),
    ItemState.PENDING: frozenset({ItemState.REMOVING, ItemState.SKIPPED, ItemState.FAILED}),
    ItemState.REMOVING: frozenset({ItemState.REMOVED, ItemState.WAITING, ItemState.FAILED}),
    ItemState.WAITING: frozenset({ItemState.REMOVING, ItemState.SKIPPED, ItemState.FAILED}),
    ItemState.FILTERED: frozenset(),
    ItemState.REMOVED: frozenset(),
    ItemState.FAILED: frozenset(),
    ItemState.SKIPPED: frozenset(),
}


@dataclass
class DeletionRecord:
    """Deletion record entity.

    Tracks one scanned resource from classification to its final state.

    State transitions:
        new → filtered
        new → pending → removing → removed
        removing → waiting → removing (retry on the next sweep)
        removing → failed (unrecoverable removal error)
        pending/waiting → skipped (stuck run, retry budget or cancellation)
        pending/waiting → failed (retry budget exhausted after an error)

    Attributes:
        resource: The scanned resource
        decision: Filter decision computed during the scan
        state: Current lifecycle state
        attempts: Number of removal calls issued so far
        last_error: Message of the most recent removal error (optional)
        reason: Why the record is in its current state (optional)
    """

    resource: Resource
    decision: FilterDecision
    state: ItemState = ItemState.NEW
    attempts: int = 0
    last_error: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def from_scan(cls, resource: Resource, decision: FilterDecision) -> "DeletionRecord":
        """Create a record and move it out of the new state."""
        record = cls(resource=resource, decision=decision)
        if decision.filtered:
            record.transition(ItemState.FILTERED, decision.reason)
        else:
            record.transition(ItemState.PENDING, "would remove")
        return record

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def transition(self, new_state: ItemState, reason: Optional[str] = None) -> None:
        """Move to a new state.

        Args:
            new_state: Target state
            reason: Explanation for the new state (optional)

        Raises:
            ValueError: If the transition is not part of the state machine
        """
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(f"Invalid transition {self.state.value} → {new_state.value} for {self.resource}")

        self.state = new_state
        self.reason = reason
