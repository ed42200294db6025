from __future__ import annotations

import pytest

from helpdesk.tickets.codec import ticket_to_document
from helpdesk.tickets.errors import InvalidTicketUpdateError, TicketNotFoundError
from helpdesk.tickets.models import Contact
from helpdesk.tickets.state import AuditAction, EscalationLevel, TicketPriority, TicketStatus


def _create(service, **overrides):
    data = {
        "title": "Cannot login to my account",
        "description": "Password is rejected",
        "category": "Technical Support",
        "requesterId": "user-4",
    }
    data.update(overrides)
    return service.create_ticket(data, "user-4")


def test_create_ticket_records_single_created_entry(service, repository):
    ticket = _create(service, assignedAgentId="agent-7", subCategoryId="1-5", priority="URGENT")

    stored = repository.get_ticket(ticket.ticket_id)
    assert stored is not None
    assert [entry.action for entry in stored.update_history] == [AuditAction.CREATED]
    assert stored.update_history[0].description == "Ticket created"
    assert stored.ticket_id == "TKT-001"
    assert stored.status is TicketStatus.NEW
    assert stored.priority is TicketPriority.URGENT
    assert stored.escalation_level is EscalationLevel.TIER_1
    assert stored.assigned_agent == "Sarah Johnson"
    assert stored.sub_category == "Password Reset"


def test_create_ticket_snapshots_requester(service):
    ticket = _create(service)

    assert ticket.requester_name == "John Doe"
    assert ticket.requester_email == "user@example.com"
    assert ticket.requester_department == "Marketing"
    assert ticket.requester_location == "Remote"


def test_create_ticket_numbers_sequentially(service):
    first = _create(service)
    second = _create(service, title="Second")

    assert (first.ticket_id, second.ticket_id) == ("TKT-001", "TKT-002")


def test_create_ticket_requires_core_fields(service):
    with pytest.raises(InvalidTicketUpdateError):
        service.create_ticket({"title": "Only a title"}, "user-4")


def test_apply_update_unknown_ticket_raises(service):
    with pytest.raises(TicketNotFoundError):
        service.apply_update("TKT-404", {"title": "x"}, "actor-1")


def test_apply_update_rejects_unknown_field(service):
    ticket = _create(service)
    with pytest.raises(InvalidTicketUpdateError):
        service.apply_update(ticket.ticket_id, {"colour": "red"}, "actor-1")


def test_apply_update_rejects_unknown_status(service):
    ticket = _create(service)
    with pytest.raises(InvalidTicketUpdateError):
        service.apply_update(ticket.ticket_id, {"status": "Exploded"}, "actor-1")


def test_restating_current_values_appends_nothing(service):
    ticket = _create(service, additionalContacts=[{"name": "Emma Wilson", "email": "emma@example.com"}])
    document = ticket_to_document(ticket)

    updated = service.apply_update(ticket.ticket_id, document, "actor-1")

    assert len(updated.update_history) == len(ticket.update_history)
    assert updated.updated_at >= updated.update_history[-1].timestamp


def test_assignment_moves_new_ticket_to_in_progress(service):
    ticket = _create(service)

    updated = service.apply_update(ticket.ticket_id, {"assignedAgentId": "agent-7"}, "actor-1")

    assert updated.status is TicketStatus.IN_PROGRESS
    assert updated.assigned_agent_id == "agent-7"
    assert updated.assigned_agent == "Sarah Johnson"
    appended = updated.update_history[len(ticket.update_history) :]
    assert [entry.action for entry in appended] == [AuditAction.ASSIGNED, AuditAction.STATUS_CHANGED]
    assert appended[1].description == 'Status changed from "New" to "In Progress"'
    assert appended[1].metadata["automatic"] is True
    assert appended[0].actor_name == "Admin User"


def test_reassignment_while_in_progress_logs_only_assignment(service):
    ticket = _create(service, assignedAgentId="agent-7", status="In Progress")

    updated = service.apply_update(ticket.ticket_id, {"assigned_agent_id": "agent-8"}, "actor-1")

    appended = updated.update_history[len(ticket.update_history) :]
    assert [entry.action for entry in appended] == [AuditAction.ASSIGNED]
    assert updated.status is TicketStatus.IN_PROGRESS
    assert updated.assigned_agent == "Mike Chen"


@pytest.mark.parametrize("status", ["Waiting for Customer", "Resolved", "Closed"])
def test_assignment_leaves_waiting_and_closed_tickets_alone(service, status):
    ticket = _create(service, status=status)

    updated = service.apply_update(ticket.ticket_id, {"assignedAgentId": "agent-7"}, "actor-1")

    assert updated.status.value == status
    assert [entry.action for entry in updated.update_history[1:]] == [AuditAction.ASSIGNED]


def test_reordered_co_assignees_append_nothing(service):
    ticket = _create(service, assignedAgents=["agent-7", "agent-8"])

    updated = service.apply_update(ticket.ticket_id, {"assignedAgents": ["agent-8", "agent-7"]}, "actor-1")

    assert len(updated.update_history) == 1
    assert updated.status is TicketStatus.NEW


def test_adding_co_assignee_triggers_transition(service):
    ticket = _create(service)

    updated = service.apply_update(ticket.ticket_id, {"assignedAgents": ["agent-8"]}, "actor-1")

    assert updated.status is TicketStatus.IN_PROGRESS
    assert updated.assigned_agent_names == ["Mike Chen"]
    assert updated.update_history[1].description == 'Assigned agents changed from "none" to "Mike Chen"'


def test_explicit_status_is_diffed_before_auto_transition(service):
    ticket = _create(service, assignedAgentId="agent-7", status="In Progress")

    updated = service.apply_update(
        ticket.ticket_id,
        {"status": "New", "assignedAgentId": "agent-8"},
        "actor-1",
    )

    appended = updated.update_history[1:]
    assert [entry.action for entry in appended] == [AuditAction.STATUS_CHANGED, AuditAction.ASSIGNED]
    assert appended[0].new_value == "New"
    # Rule forces In Progress again, equal to the pre-update status: no second entry.
    assert updated.status is TicketStatus.IN_PROGRESS


def test_explicit_waiting_status_wins_over_assignment(service):
    ticket = _create(service)

    updated = service.apply_update(
        ticket.ticket_id,
        {"assignedAgentId": "agent-7", "status": "waiting for customer"},
        "actor-1",
    )

    assert updated.status is TicketStatus.WAITING
    actions = [entry.action for entry in updated.update_history[1:]]
    assert actions == [AuditAction.ASSIGNED, AuditAction.STATUS_CHANGED]


def test_history_is_append_only_and_strictly_ordered(service):
    ticket = _create(service)
    first = service.apply_update(ticket.ticket_id, {"title": "New title", "priority": "low"}, "actor-1")
    second = service.apply_update(ticket.ticket_id, {"description": "More detail"}, "agent-7")

    assert second.update_history[: len(first.update_history)] == first.update_history
    stamps = [entry.timestamp for entry in second.update_history]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)
    assert second.update_history[-1].description == "Description updated"


def test_blank_to_none_is_not_logged(service):
    ticket = _create(service)

    updated = service.apply_update(ticket.ticket_id, {"resolution": ""}, "actor-1")

    assert len(updated.update_history) == 1


def test_contacts_update_is_described_by_name(service):
    ticket = _create(service)

    updated = service.apply_update(
        ticket.ticket_id,
        {"additional_contacts": [Contact(name="Emma Wilson", email="emma@example.com")]},
        "actor-1",
    )

    assert updated.update_history[-1].description == 'Additional contacts changed from "" to "Emma Wilson"'


def test_sub_category_update_refreshes_display_name(service):
    ticket = _create(service, subCategoryId="1-3")

    updated = service.apply_update(ticket.ticket_id, {"subCategoryId": "1-5"}, "actor-1")

    assert updated.sub_category == "Password Reset"
    entry = updated.update_history[-1]
    assert entry.description == 'Sub-category changed from "Network Problems" to "Password Reset"'
    assert entry.metadata == {"oldSubCategoryId": "1-3", "newSubCategoryId": "1-5"}


def test_resolution_timestamps_follow_status(service):
    ticket = _create(service)

    resolved = service.apply_update(ticket.ticket_id, {"status": "resolved"}, "agent-7")
    assert resolved.resolved_at is not None
    assert resolved.update_history[-1].metadata["transition"] == "resolved"

    reopened = service.apply_update(ticket.ticket_id, {"status": "New"}, "agent-7")
    assert reopened.resolved_at is None
    assert reopened.update_history[-1].metadata["transition"] == "reopened"


def test_unknown_actor_does_not_block_mutation(service):
    ticket = _create(service)

    updated = service.apply_update(ticket.ticket_id, {"title": "Changed"}, "ghost")

    assert updated.update_history[-1].actor_name == "Unknown User"


def test_add_message_appends_commented_entry(service):
    ticket = _create(service)

    updated = service.add_message(ticket.ticket_id, content="Any update?", actor_id="user-4")

    assert updated.chat_thread[-1].content == "Any update?"
    assert updated.update_history[-1].action is AuditAction.COMMENTED
    assert updated.update_history[-1].description == "Comment added"


def test_add_work_log_does_not_touch_history(service):
    ticket = _create(service)

    updated = service.add_work_log(ticket.ticket_id, content="Reset password", actor_id="agent-7", kind="note")

    assert len(updated.update_history) == 1
    assert updated.work_log[-1].user_name == "Sarah Johnson"
    assert updated.work_log[-1].kind.value == "note"
    assert updated.updated_at > ticket.updated_at


def test_add_attachment_is_logged(service):
    ticket = _create(service)

    updated = service.add_attachment(
        ticket.ticket_id,
        file_name="screenshot.png",
        file_size=2048,
        mime_type="image/png",
        url="/files/screenshot.png",
        actor_id="user-4",
    )

    assert updated.attachments[-1].file_name == "screenshot.png"
    assert updated.update_history[-1].description == "Attachment screenshot.png added"


def test_get_history_returns_persisted_entries(service):
    ticket = _create(service)
    service.apply_update(ticket.ticket_id, {"priority": "urgent"}, "actor-1")

    history = service.get_history(ticket.ticket_id)

    assert [entry.action for entry in history] == [AuditAction.CREATED, AuditAction.UPDATED]
    assert history[-1].description == 'Priority changed from "medium" to "urgent"'


def test_null_clears_optional_text_fields(service):
    ticket = _create(service)

    updated = service.apply_update(ticket.ticket_id, {"requesterPhone": None, "requesterLocation": None}, "actor-1")
    stored = service.get_ticket(ticket.ticket_id)

    assert updated.requester_phone == stored.requester_phone == ""
    assert updated.requester_location == stored.requester_location == ""
    assert service.query_tickets({"search": "none"}).pagination.total_items == 0


@pytest.mark.parametrize("field_name", ["title", "description", "category"])
def test_null_required_text_field_is_rejected(service, field_name):
    ticket = _create(service)

    with pytest.raises(InvalidTicketUpdateError):
        service.apply_update(ticket.ticket_id, {field_name: None}, "actor-1")

    assert service.get_ticket(ticket.ticket_id).description == "Password is rejected"
