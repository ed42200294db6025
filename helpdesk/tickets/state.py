from __future__ import annotations

from enum import Enum
from typing import TypeVar


_E = TypeVar("_E", bound="_CanonicalEnum")


class _CanonicalEnum(str, Enum):
    """String enum parsed case-insensitively at the I/O edge."""

    @classmethod
    def parse(cls: type[_E], value: object) -> _E:
        if isinstance(value, cls):
            return value
        text = str(value).strip().casefold()
        for member in cls:
            if member.value.casefold() == text or member.name.casefold() == text:
                return member
        raise ValueError(f"{value!r} is not a valid {cls.__name__}")

    def __str__(self) -> str:
        return self.value


class TicketStatus(_CanonicalEnum):
    """Supported states for a ticket's lifecycle."""

    NEW = "New"
    IN_PROGRESS = "In Progress"
    WAITING = "Waiting for Customer"
    RESOLVED = "Resolved"
    CLOSED = "Closed"

    @property
    def is_closed(self) -> bool:
        return self in CLOSED_STATUSES

    @property
    def is_open(self) -> bool:
        return self in OPEN_STATUSES


OPEN_STATUSES = frozenset({TicketStatus.NEW, TicketStatus.IN_PROGRESS, TicketStatus.WAITING})
CLOSED_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})

# States from which an assignment moves the ticket to In Progress.
ASSIGNABLE_STATUSES = frozenset({TicketStatus.NEW, TicketStatus.IN_PROGRESS})


class TicketPriority(_CanonicalEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class EscalationLevel(_CanonicalEnum):
    """Ordered support tiers."""

    TIER_1 = "tier 1"
    TIER_2 = "tier 2"
    TIER_3 = "tier 3"

    @property
    def rank(self) -> int:
        return list(EscalationLevel).index(self) + 1


class AuditAction(_CanonicalEnum):
    """Kinds of entries recorded in a ticket's update history."""

    CREATED = "created"
    UPDATED = "updated"
    ASSIGNED = "assigned"
    STATUS_CHANGED = "status_changed"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REOPENED = "reopened"
    COMMENTED = "commented"


class WorkLogKind(_CanonicalEnum):
    WORK_LOG = "work_log"
    NOTE = "note"
    ACTION = "action"


def status_transition(previous: TicketStatus | None, current: TicketStatus | None) -> AuditAction | None:
    """Classify a status move that crosses the open/closed boundary."""

    if current is None or previous == current:
        return None
    if current is TicketStatus.RESOLVED:
        return AuditAction.RESOLVED
    if current is TicketStatus.CLOSED:
        return AuditAction.CLOSED
    if previous is not None and previous.is_closed and current.is_open:
        return AuditAction.REOPENED
    return None
