"""Conversion between :class:`Ticket` aggregates and store documents.

Documents are plain JSON-compatible dictionaries with camelCase keys and
ISO-8601 timestamps. Enum-valued fields are canonicalized here, so the rest
of the engine only ever sees enum members.
"""

from __future__ import annotations

import re
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from .models import AuditEntry, Attachment, Contact, Message, Ticket, TicketLocation, WorkLogEntry
from .state import AuditAction, EscalationLevel, TicketPriority, TicketStatus, WorkLogKind

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def to_camel(name: str) -> str:
    head, *tail = name.split("_")
    return head + "".join(part.title() for part in tail)


def to_snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name).lower()


def ensure_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_datetime(datetime.fromisoformat(text))


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _required_text(value: Any) -> str:
    if value is None:
        raise ValueError("value must not be null")
    return str(value)


def _optional_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    return ensure_datetime(value)


def _iso(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def _location_keys() -> tuple[str, ...]:
    return tuple(f.name for f in fields(TicketLocation))


def contact_from_value(value: Any) -> Contact:
    if isinstance(value, Contact):
        return value
    return Contact(
        name=str(value.get("name") or ""),
        email=str(value.get("email") or ""),
        role=str(value.get("role") or ""),
        phone=value.get("phone"),
    )


def location_from_value(value: Any) -> TicketLocation | None:
    if value is None or isinstance(value, TicketLocation):
        return value
    return TicketLocation(**{key: value.get(to_camel(key), value.get(key)) for key in _location_keys()})


def _contact_to_document(contact: Contact) -> dict[str, Any]:
    document: dict[str, Any] = {"name": contact.name, "email": contact.email, "role": contact.role}
    if contact.phone is not None:
        document["phone"] = contact.phone
    return document


def _location_to_document(location: TicketLocation | None) -> dict[str, Any] | None:
    if location is None:
        return None
    return {to_camel(key): getattr(location, key) for key in _location_keys() if getattr(location, key) is not None}


def _message_to_document(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "ticketId": message.ticket_id,
        "userId": message.user_id,
        "content": message.content,
        "isInternal": message.is_internal,
        "createdAt": _iso(message.created_at),
    }


def _message_from_document(data: Mapping[str, Any]) -> Message:
    return Message(
        id=str(data["id"]),
        ticket_id=str(data["ticketId"]),
        user_id=str(data.get("userId", "")),
        content=str(data.get("content", "")),
        is_internal=bool(data.get("isInternal", False)),
        created_at=ensure_datetime(data.get("createdAt") or data.get("timestamp")),
    )


def _attachment_to_document(attachment: Attachment) -> dict[str, Any]:
    return {
        "id": attachment.id,
        "ticketId": attachment.ticket_id,
        "fileName": attachment.file_name,
        "fileSize": attachment.file_size,
        "mimeType": attachment.mime_type,
        "uploadedBy": attachment.uploaded_by,
        "uploadedAt": _iso(attachment.uploaded_at),
        "url": attachment.url,
    }


def _attachment_from_document(data: Mapping[str, Any]) -> Attachment:
    return Attachment(
        id=str(data["id"]),
        ticket_id=str(data["ticketId"]),
        file_name=str(data["fileName"]),
        file_size=int(data.get("fileSize", 0)),
        mime_type=str(data.get("mimeType", "application/octet-stream")),
        uploaded_by=str(data.get("uploadedBy", "")),
        uploaded_at=ensure_datetime(data["uploadedAt"]),
        url=str(data.get("url", "")),
    )


def _work_log_to_document(entry: WorkLogEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "ticketId": entry.ticket_id,
        "userId": entry.user_id,
        "userName": entry.user_name,
        "userEmail": entry.user_email,
        "content": entry.content,
        "timestamp": _iso(entry.timestamp),
        "type": entry.kind.value,
    }


def _work_log_from_document(data: Mapping[str, Any]) -> WorkLogEntry:
    return WorkLogEntry(
        id=str(data["id"]),
        ticket_id=str(data["ticketId"]),
        user_id=str(data.get("userId", "")),
        user_name=str(data.get("userName", "")),
        user_email=str(data.get("userEmail", "")),
        content=str(data.get("content", "")),
        timestamp=ensure_datetime(data["timestamp"]),
        kind=WorkLogKind.parse(data.get("type") or WorkLogKind.WORK_LOG),
    )


def audit_entry_to_document(entry: AuditEntry) -> dict[str, Any]:
    document: dict[str, Any] = {
        "id": entry.id,
        "ticketId": entry.ticket_id,
        "updatedBy": entry.actor_id,
        "updatedByName": entry.actor_name,
        "updatedByEmail": entry.actor_email,
        "action": entry.action.value,
        "description": entry.description,
        "timestamp": _iso(entry.timestamp),
    }
    if entry.field is not None:
        document["field"] = entry.field
    if entry.old_value is not None:
        document["oldValue"] = entry.old_value
    if entry.new_value is not None:
        document["newValue"] = entry.new_value
    if entry.metadata:
        document["metadata"] = dict(entry.metadata)
    return document


def audit_entry_from_document(data: Mapping[str, Any]) -> AuditEntry:
    return AuditEntry(
        id=str(data["id"]),
        ticket_id=str(data["ticketId"]),
        actor_id=str(data.get("updatedBy", "")),
        actor_name=str(data.get("updatedByName", "")),
        actor_email=str(data.get("updatedByEmail", "")),
        action=AuditAction.parse(data["action"]),
        description=_text(data.get("description")),
        timestamp=ensure_datetime(data["timestamp"]),
        field=data.get("field"),
        old_value=data.get("oldValue"),
        new_value=data.get("newValue"),
        metadata=dict(data.get("metadata") or {}),
    )


def ticket_to_document(ticket: Ticket) -> dict[str, Any]:
    return {
        "ticketId": ticket.ticket_id,
        "title": ticket.title,
        "description": ticket.description,
        "category": ticket.category,
        "subCategoryId": ticket.sub_category_id,
        "subCategory": ticket.sub_category,
        "priority": ticket.priority.value,
        "status": ticket.status.value,
        "requesterId": ticket.requester_id,
        "requesterName": ticket.requester_name,
        "requesterEmail": ticket.requester_email,
        "requesterPhone": ticket.requester_phone,
        "requesterDepartment": ticket.requester_department,
        "requesterJobTitle": ticket.requester_job_title,
        "requesterManager": ticket.requester_manager,
        "requesterLocation": ticket.requester_location,
        "additionalContacts": [_contact_to_document(contact) for contact in ticket.additional_contacts],
        "assignedAgent": ticket.assigned_agent,
        "assignedAgentId": ticket.assigned_agent_id,
        "assignedAgents": list(ticket.assigned_agents),
        "assignedAgentNames": list(ticket.assigned_agent_names),
        "escalationLevel": ticket.escalation_level.value,
        "ticketLocation": _location_to_document(ticket.ticket_location),
        "chatThread": [_message_to_document(message) for message in ticket.chat_thread],
        "attachments": [_attachment_to_document(attachment) for attachment in ticket.attachments],
        "workLog": [_work_log_to_document(entry) for entry in ticket.work_log],
        "resolution": ticket.resolution,
        "resolutionSteps": list(ticket.resolution_steps),
        "createdAt": _iso(ticket.created_at),
        "updatedAt": _iso(ticket.updated_at),
        "resolvedAt": _iso(ticket.resolved_at),
        "closedAt": _iso(ticket.closed_at),
        "updateHistory": [audit_entry_to_document(entry) for entry in ticket.update_history],
    }


def ticket_from_document(data: Mapping[str, Any]) -> Ticket:
    return Ticket(
        ticket_id=str(data["ticketId"]),
        title=_text(data.get("title")),
        description=_text(data.get("description")),
        category=_text(data.get("category")),
        sub_category_id=data.get("subCategoryId"),
        sub_category=data.get("subCategory"),
        priority=TicketPriority.parse(data.get("priority") or TicketPriority.MEDIUM),
        status=TicketStatus.parse(data.get("status") or TicketStatus.NEW),
        requester_id=_text(data.get("requesterId")),
        requester_name=_text(data.get("requesterName")),
        requester_email=_text(data.get("requesterEmail")),
        requester_phone=_text(data.get("requesterPhone")),
        requester_department=_text(data.get("requesterDepartment")),
        requester_job_title=_text(data.get("requesterJobTitle")),
        requester_manager=data.get("requesterManager"),
        requester_location=_text(data.get("requesterLocation")),
        additional_contacts=[contact_from_value(item) for item in data.get("additionalContacts") or ()],
        assigned_agent=data.get("assignedAgent"),
        assigned_agent_id=data.get("assignedAgentId") or None,
        assigned_agents=[str(agent) for agent in data.get("assignedAgents") or ()],
        assigned_agent_names=[str(name) for name in data.get("assignedAgentNames") or ()],
        escalation_level=EscalationLevel.parse(data.get("escalationLevel") or EscalationLevel.TIER_1),
        ticket_location=location_from_value(data.get("ticketLocation")),
        chat_thread=[_message_from_document(item) for item in data.get("chatThread") or ()],
        attachments=[_attachment_from_document(item) for item in data.get("attachments") or ()],
        work_log=[_work_log_from_document(item) for item in data.get("workLog") or ()],
        resolution=data.get("resolution"),
        resolution_steps=[str(step) for step in data.get("resolutionSteps") or ()],
        created_at=ensure_datetime(data["createdAt"]),
        updated_at=ensure_datetime(data.get("updatedAt") or data["createdAt"]),
        resolved_at=_optional_datetime(data.get("resolvedAt")),
        closed_at=_optional_datetime(data.get("closedAt")),
        update_history=[audit_entry_from_document(item) for item in data.get("updateHistory") or ()],
    )


def _string_list(value: Any) -> list[str]:
    return [str(item) for item in value or ()]


def _list_of(model: type, parse: Callable[[Mapping[str, Any]], Any]) -> Callable[[Any], list[Any]]:
    def coerce(value: Any) -> list[Any]:
        return [item if isinstance(item, model) else parse(item) for item in value or ()]

    return coerce


_UPDATE_COERCERS: dict[str, Callable[[Any], Any]] = {
    "title": _required_text,
    "description": _required_text,
    "category": _required_text,
    "requester_name": _text,
    "requester_email": _text,
    "requester_phone": _text,
    "requester_department": _text,
    "requester_job_title": _text,
    "requester_location": _text,
    "status": TicketStatus.parse,
    "priority": TicketPriority.parse,
    "escalation_level": EscalationLevel.parse,
    "additional_contacts": lambda value: [contact_from_value(item) for item in value or ()],
    "ticket_location": location_from_value,
    "assigned_agents": _string_list,
    "assigned_agent_names": _string_list,
    "resolution_steps": _string_list,
    "chat_thread": _list_of(Message, _message_from_document),
    "attachments": _list_of(Attachment, _attachment_from_document),
    "work_log": _list_of(WorkLogEntry, _work_log_from_document),
    "resolved_at": _optional_datetime,
    "closed_at": _optional_datetime,
    "assigned_agent_id": lambda value: value or None,
}


def coerce_update_value(field_name: str, value: Any) -> Any:
    """Normalize a caller-supplied value for ``field_name`` to its model type."""

    coercer = _UPDATE_COERCERS.get(field_name)
    if coercer is None:
        return value
    return coercer(value)
