from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Mapping

from opentelemetry import trace

from .audit import ASSIGNMENT_FIELDS, AuditTrailBuilder, utcnow
from .catalog import UNKNOWN_USER_NAME, CategoryCatalog, User, UserCatalog
from .changes import ChangeDetector
from .codec import coerce_update_value, to_snake
from .errors import InvalidTicketUpdateError, TicketNotFoundError, TicketServiceError
from .models import TICKET_FIELDS, Attachment, AuditEntry, Message, Ticket, WorkLogEntry
from .query import TicketFilters, TicketPage, TicketQueryEngine
from .repository import TicketRepository
from .rules import apply_assignment_status_rule, apply_resolution_timestamps, sync_display_fields
from .state import AuditAction, EscalationLevel, TicketPriority, TicketStatus, WorkLogKind

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

__all__ = [
    "InvalidTicketUpdateError",
    "TicketNotFoundError",
    "TicketService",
    "TicketServiceError",
]

# Never taken from caller payloads; the service owns these.
PROTECTED_FIELDS = frozenset({"ticket_id", "created_at", "updated_at", "update_history"})

REQUIRED_CREATE_FIELDS = ("title", "description", "category")


class TicketService:
    """High level orchestration for ticket mutation, audit trail and queries."""

    def __init__(
        self,
        repository: TicketRepository,
        *,
        users: UserCatalog,
        categories: CategoryCatalog,
        detector: ChangeDetector | None = None,
        audit: AuditTrailBuilder | None = None,
        query_engine: TicketQueryEngine | None = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._repository = repository
        self._users = users
        self._categories = categories
        self._clock = clock
        self._id_factory = id_factory
        self._detector = detector or ChangeDetector()
        self._audit = audit or AuditTrailBuilder(users, categories, clock=clock, id_factory=id_factory)
        self._query_engine = query_engine or TicketQueryEngine(repository, users)

    def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    def get_history(self, ticket_id: str) -> list[AuditEntry]:
        return list(self.get_ticket(ticket_id).update_history)

    def query_tickets(self, filters: TicketFilters | Mapping[str, Any] | None = None) -> TicketPage:
        with tracer.start_as_current_span("tickets.query"):
            return self._query_engine.query_tickets(filters)

    def create_ticket(self, data: Mapping[str, Any], actor_id: str) -> Ticket:
        with tracer.start_as_current_span("tickets.create") as span:
            values = self._normalize_payload(data)
            missing = [name for name in REQUIRED_CREATE_FIELDS if not values.get(name)]
            if missing:
                raise InvalidTicketUpdateError(f"Missing required ticket fields: {', '.join(missing)}")

            requester_id = values.pop("requester_id", None) or actor_id
            fields: dict[str, Any] = {
                "priority": TicketPriority.MEDIUM,
                "status": TicketStatus.NEW,
                "escalation_level": EscalationLevel.TIER_1,
            }
            fields.update(self._requester_snapshot(requester_id))
            fields.update(values)

            ticket_id = self._repository.next_ticket_id()
            now = self._clock()
            entry = self._audit.created_entry(ticket_id, actor_id, timestamp=now)
            ticket = Ticket(
                ticket_id=ticket_id,
                requester_id=requester_id,
                created_at=now,
                updated_at=now,
                update_history=[entry],
                **fields,
            )
            ticket = sync_display_fields(
                ticket,
                ("assigned_agent_id", "assigned_agents", "sub_category_id"),
                users=self._users,
                categories=self._categories,
            )
            self._repository.save_ticket(ticket)
            span.set_attribute("ticket.id", ticket_id)
            logger.info("Ticket %s created by %s", ticket_id, actor_id)
            return ticket

    def apply_update(self, ticket_id: str, partial_update: Mapping[str, Any], actor_id: str) -> Ticket:
        """Merge ``partial_update`` into the ticket and log every meaningful change.

        Field diffs are logged first, in payload order. Display fields are then
        re-derived and the assignment rule may force In Progress; that forced
        status is diffed against the status before the update. The result is
        persisted with a single write.
        """

        with tracer.start_as_current_span("tickets.apply_update") as span:
            span.set_attribute("ticket.id", ticket_id)
            current = self.get_ticket(ticket_id)
            changes = self._normalize_payload(partial_update)
            candidate = replace(current, **changes)
            history = list(current.update_history)
            assignment_changed = False

            for field_name, new_value in changes.items():
                old_value = getattr(current, field_name)
                if not self._detector.is_meaningful_change(field_name, old_value, new_value):
                    continue
                entry = self._audit.entry_for_change(
                    ticket_id,
                    actor_id,
                    field_name,
                    old_value,
                    new_value,
                    old_category=current.category,
                    new_category=candidate.category,
                    timestamp=self._audit.next_timestamp(history),
                )
                if entry is None:
                    continue
                history.append(entry)
                if field_name in ASSIGNMENT_FIELDS:
                    assignment_changed = True

            candidate = sync_display_fields(candidate, changes, users=self._users, categories=self._categories)
            result = apply_assignment_status_rule(candidate, assignment_changed=assignment_changed)
            if result.status is not candidate.status and self._detector.is_meaningful_change(
                "status", current.status, result.status
            ):
                entry = self._audit.entry_for_change(
                    ticket_id,
                    actor_id,
                    "status",
                    current.status,
                    result.status,
                    timestamp=self._audit.next_timestamp(history),
                    metadata={"automatic": True, "rule": "assignment"},
                )
                if entry is not None:
                    history.append(entry)

            result = self._persist(current, result, history)
            appended = len(history) - len(current.update_history)
            span.set_attribute("ticket.history_appended", appended)
            if appended:
                logger.info("Ticket %s updated by %s (%d history entries)", ticket_id, actor_id, appended)
            else:
                logger.debug("Ticket %s update by %s changed nothing meaningful", ticket_id, actor_id)
            return result

    def add_message(self, ticket_id: str, *, content: str, actor_id: str, is_internal: bool = False) -> Ticket:
        current = self.get_ticket(ticket_id)
        history = list(current.update_history)
        timestamp = self._audit.next_timestamp(history)
        message = Message(
            id=self._id_factory(),
            ticket_id=ticket_id,
            user_id=actor_id,
            content=content,
            is_internal=is_internal,
            created_at=timestamp,
        )
        history.append(
            self._audit.build_entry(
                ticket_id,
                actor_id,
                AuditAction.COMMENTED,
                metadata={"messageId": message.id, "internal": is_internal},
                timestamp=timestamp,
            )
        )
        updated = replace(current, chat_thread=[*current.chat_thread, message])
        return self._persist(current, updated, history)

    def add_work_log(
        self,
        ticket_id: str,
        *,
        content: str,
        actor_id: str,
        kind: WorkLogKind | str = WorkLogKind.WORK_LOG,
    ) -> Ticket:
        current = self.get_ticket(ticket_id)
        author = self._users.find_user_by_id(actor_id)
        if author is None:
            logger.warning("Work log author %s not found in catalog", actor_id)
        try:
            entry_kind = WorkLogKind.parse(kind)
        except ValueError as exc:
            raise InvalidTicketUpdateError(str(exc)) from exc
        entry = WorkLogEntry(
            id=self._id_factory(),
            ticket_id=ticket_id,
            user_id=actor_id,
            user_name=_user_name(author),
            user_email=author.email if author is not None else "",
            content=content,
            timestamp=self._clock(),
            kind=entry_kind,
        )
        updated = replace(current, work_log=[*current.work_log, entry])
        return self._persist(current, updated, list(current.update_history))

    def add_attachment(
        self,
        ticket_id: str,
        *,
        file_name: str,
        file_size: int,
        mime_type: str,
        url: str,
        actor_id: str,
    ) -> Ticket:
        current = self.get_ticket(ticket_id)
        history = list(current.update_history)
        timestamp = self._audit.next_timestamp(history)
        attachment = Attachment(
            id=self._id_factory(),
            ticket_id=ticket_id,
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
            uploaded_by=actor_id,
            uploaded_at=timestamp,
            url=url,
        )
        history.append(
            self._audit.build_entry(
                ticket_id,
                actor_id,
                AuditAction.UPDATED,
                "attachments",
                new_value=file_name,
                description=f"Attachment {file_name} added",
                metadata={"attachmentId": attachment.id},
                timestamp=timestamp,
            )
        )
        updated = replace(current, attachments=[*current.attachments, attachment])
        return self._persist(current, updated, history)

    def _persist(self, current: Ticket, updated: Ticket, history: list[AuditEntry]) -> Ticket:
        now = self._clock()
        if history and history[-1].timestamp > now:
            now = history[-1].timestamp
        updated = apply_resolution_timestamps(current, updated, now=now)
        updated = replace(updated, updated_at=now, update_history=history)
        self._repository.save_ticket(updated)
        return updated

    def _normalize_payload(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        normalized: dict[str, Any] = {}
        for key, value in payload.items():
            field_name = to_snake(key)
            if field_name not in TICKET_FIELDS:
                raise InvalidTicketUpdateError(f"Unknown ticket field {key!r}")
            if field_name in PROTECTED_FIELDS:
                logger.debug("Ignoring protected field %s in ticket payload", field_name)
                continue
            try:
                normalized[field_name] = coerce_update_value(field_name, value)
            except (TypeError, ValueError, AttributeError) as exc:
                raise InvalidTicketUpdateError(f"Invalid value for {key!r}: {exc}") from exc
        return normalized

    def _requester_snapshot(self, requester_id: str) -> dict[str, Any]:
        requester = self._users.find_user_by_id(requester_id)
        if requester is None:
            logger.warning("Requester %s not found in catalog", requester_id)
            return {"requester_name": _user_name(None)}
        return {
            "requester_name": requester.full_name,
            "requester_email": requester.email,
            "requester_phone": requester.phone_number,
            "requester_department": requester.department,
            "requester_job_title": requester.job_title,
            "requester_manager": requester.manager,
            "requester_location": requester.default_location,
        }


def _user_name(user: User | None) -> str:
    return user.full_name if user is not None else UNKNOWN_USER_NAME
