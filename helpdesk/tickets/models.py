from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Mapping

from .state import AuditAction, EscalationLevel, TicketPriority, TicketStatus, WorkLogKind


@dataclass(frozen=True, slots=True)
class Contact:
    """Additional person kept in the loop on a ticket."""

    name: str
    email: str
    role: str = ""
    phone: str | None = None


@dataclass(frozen=True, slots=True)
class TicketLocation:
    """Where the reported issue is happening."""

    building: str | None = None
    floor: str | None = None
    room: str | None = None
    desk: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    ticket_id: str
    user_id: str
    content: str
    created_at: datetime
    is_internal: bool = False


@dataclass(frozen=True, slots=True)
class Attachment:
    id: str
    ticket_id: str
    file_name: str
    file_size: int
    mime_type: str
    uploaded_by: str
    uploaded_at: datetime
    url: str


@dataclass(frozen=True, slots=True)
class WorkLogEntry:
    """Agent note appended by explicit action, outside field diffing."""

    id: str
    ticket_id: str
    user_id: str
    user_name: str
    user_email: str
    content: str
    timestamp: datetime
    kind: WorkLogKind = WorkLogKind.WORK_LOG


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """History entry describing one detected change to a ticket.

    Actor name and e-mail are captured when the entry is written and are
    never re-resolved.
    """

    id: str
    ticket_id: str
    actor_id: str
    actor_name: str
    actor_email: str
    action: AuditAction
    description: str
    timestamp: datetime
    field: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    metadata: Mapping[str, Any] = dataclasses.field(default_factory=dict)


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a help-desk ticket."""

    ticket_id: str
    title: str
    description: str
    category: str
    priority: TicketPriority
    status: TicketStatus
    escalation_level: EscalationLevel
    created_at: datetime
    updated_at: datetime

    requester_id: str
    requester_name: str = ""
    requester_email: str = ""
    requester_phone: str = ""
    requester_department: str = ""
    requester_job_title: str = ""
    requester_manager: str | None = None
    requester_location: str = ""

    sub_category_id: str | None = None
    sub_category: str | None = None
    additional_contacts: list[Contact] = field(default_factory=list)

    assigned_agent_id: str | None = None
    assigned_agent: str | None = None
    assigned_agents: list[str] = field(default_factory=list)
    assigned_agent_names: list[str] = field(default_factory=list)

    ticket_location: TicketLocation | None = None

    chat_thread: list[Message] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    work_log: list[WorkLogEntry] = field(default_factory=list)

    resolution: str | None = None
    resolution_steps: list[str] = field(default_factory=list)
    resolved_at: datetime | None = None
    closed_at: datetime | None = None

    update_history: list[AuditEntry] = field(default_factory=list)

    @property
    def is_unassigned(self) -> bool:
        return not self.assigned_agent_id

    @property
    def assignee_ids(self) -> list[str]:
        ids = [self.assigned_agent_id] if self.assigned_agent_id else []
        ids.extend(agent for agent in self.assigned_agents if agent and agent not in ids)
        return ids


TICKET_FIELDS = frozenset(f.name for f in fields(Ticket))
