from __future__ import annotations

import dataclasses
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from .catalog import (
    UNKNOWN_USER_NAME,
    CategoryCatalog,
    UserCatalog,
    resolve_sub_category_name,
    resolve_user_name,
)
from .models import AuditEntry, Contact
from .state import AuditAction, TicketStatus, status_transition

ASSIGNMENT_FIELDS = frozenset({"assigned_agent_id", "assigned_agents"})

# Fields whose old and new values are echoed verbatim in the description.
_VERBATIM_LABELS = {
    "status": "Status",
    "priority": "Priority",
    "escalation_level": "Escalation level",
    "title": "Title",
    "category": "Category",
}

_TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _render(value: Any) -> str:
    # Missing bounds render as "undefined"; existing histories depend on it.
    if value is None:
        return "undefined"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _stringify(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (list, tuple)):
        return ", ".join(_stringify(item) or "" for item in value)
    if isinstance(value, Contact):
        return value.name or value.email
    if dataclasses.is_dataclass(value):
        parts = (getattr(value, f.name) for f in dataclasses.fields(value))
        return ", ".join(str(part) for part in parts if part)
    return str(value)


def _contact_label(contact: Any) -> str:
    if isinstance(contact, Mapping):
        return str(contact.get("name") or contact.get("email") or "")
    return contact.name or contact.email


class AuditTrailBuilder:
    """Turns detected changes into immutable, human-readable history entries."""

    def __init__(
        self,
        users: UserCatalog,
        categories: CategoryCatalog,
        *,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._users = users
        self._categories = categories
        self._clock = clock
        self._id_factory = id_factory

    @staticmethod
    def classify(field_name: str | None) -> AuditAction:
        if field_name == "status":
            return AuditAction.STATUS_CHANGED
        if field_name in ASSIGNMENT_FIELDS:
            return AuditAction.ASSIGNED
        return AuditAction.UPDATED

    def next_timestamp(self, history: Sequence[AuditEntry]) -> datetime:
        """Clock reading strictly after the last entry already in ``history``."""

        now = self._clock()
        if history and now <= history[-1].timestamp:
            return history[-1].timestamp + _TICK
        return now

    def _agent_names(self, agent_ids: Sequence[str] | None) -> list[str]:
        return [resolve_user_name(self._users, agent_id) for agent_id in agent_ids or ()]

    def describe_change(
        self,
        action: AuditAction,
        field_name: str | None,
        old_value: Any,
        new_value: Any,
        *,
        old_category: str | None = None,
        new_category: str | None = None,
    ) -> str:
        if field_name is None:
            if action is AuditAction.CREATED:
                return "Ticket created"
            if action is AuditAction.COMMENTED:
                return "Comment added"
            return f"Ticket {action.value.replace('_', ' ')}"

        if field_name in _VERBATIM_LABELS:
            label = _VERBATIM_LABELS[field_name]
            return f'{label} changed from "{_render(old_value)}" to "{_render(new_value)}"'
        if field_name == "assigned_agent_id":
            old_name = resolve_user_name(self._users, old_value) or "unassigned"
            new_name = resolve_user_name(self._users, new_value) or "unassigned"
            return f'Assigned agent changed from "{old_name}" to "{new_name}"'
        if field_name == "assigned_agents":
            old_names = ", ".join(self._agent_names(old_value)) or "none"
            new_names = ", ".join(self._agent_names(new_value)) or "none"
            return f'Assigned agents changed from "{old_names}" to "{new_names}"'
        if field_name == "description":
            return "Description updated"
        if field_name == "sub_category_id":
            old_name = resolve_sub_category_name(self._categories, old_category, old_value)
            new_name = resolve_sub_category_name(self._categories, new_category or old_category, new_value)
            return f'Sub-category changed from "{old_name}" to "{new_name}"'
        if field_name == "additional_contacts":
            old_names = ", ".join(_contact_label(contact) for contact in old_value or ())
            new_names = ", ".join(_contact_label(contact) for contact in new_value or ())
            return f'Additional contacts changed from "{old_names}" to "{new_names}"'
        return f"{field_name} updated"

    def build_entry(
        self,
        ticket_id: str,
        actor_id: str,
        action: AuditAction,
        field_name: str | None = None,
        old_value: Any = None,
        new_value: Any = None,
        description: str | None = None,
        metadata: Mapping[str, Any] | None = None,
        *,
        timestamp: datetime | None = None,
    ) -> AuditEntry:
        actor = self._users.find_user_by_id(actor_id)
        return AuditEntry(
            id=self._id_factory(),
            ticket_id=ticket_id,
            actor_id=actor_id,
            actor_name=actor.full_name if actor is not None else UNKNOWN_USER_NAME,
            actor_email=actor.email if actor is not None else "",
            action=action,
            description=description or self.describe_change(action, field_name, old_value, new_value),
            timestamp=timestamp or self._clock(),
            field=field_name,
            old_value=_stringify(old_value),
            new_value=_stringify(new_value),
            metadata=dict(metadata or {}),
        )

    def created_entry(self, ticket_id: str, actor_id: str, *, timestamp: datetime | None = None) -> AuditEntry:
        return self.build_entry(ticket_id, actor_id, AuditAction.CREATED, timestamp=timestamp)

    def entry_for_change(
        self,
        ticket_id: str,
        actor_id: str,
        field_name: str,
        old_value: Any,
        new_value: Any,
        *,
        old_category: str | None = None,
        new_category: str | None = None,
        timestamp: datetime | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> AuditEntry | None:
        """Entry for one meaningful change, or None when it must be suppressed."""

        if field_name == "assigned_agents" and set(old_value or ()) == set(new_value or ()):
            return None

        action = self.classify(field_name)
        description = self.describe_change(
            action,
            field_name,
            old_value,
            new_value,
            old_category=old_category,
            new_category=new_category,
        )
        extra: dict[str, Any] = dict(metadata or {})
        shown_old, shown_new = old_value, new_value

        if field_name == "assigned_agent_id":
            extra.update(oldAgentId=old_value, newAgentId=new_value)
            shown_old = resolve_user_name(self._users, old_value)
            shown_new = resolve_user_name(self._users, new_value)
        elif field_name == "assigned_agents":
            extra.update(oldAgentIds=list(old_value or ()), newAgentIds=list(new_value or ()))
            shown_old = self._agent_names(old_value)
            shown_new = self._agent_names(new_value)
        elif field_name == "sub_category_id":
            extra.update(oldSubCategoryId=old_value, newSubCategoryId=new_value)
            shown_old = resolve_sub_category_name(self._categories, old_category, old_value)
            shown_new = resolve_sub_category_name(self._categories, new_category or old_category, new_value)
        elif field_name == "status":
            transition = status_transition(
                TicketStatus.parse(old_value) if old_value else None,
                TicketStatus.parse(new_value) if new_value else None,
            )
            if transition is not None:
                extra["transition"] = transition.value

        return self.build_entry(
            ticket_id,
            actor_id,
            action,
            field_name,
            shown_old,
            shown_new,
            description=description,
            metadata=extra,
            timestamp=timestamp,
        )
