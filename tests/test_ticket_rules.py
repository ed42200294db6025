from datetime import datetime, timezone

import pytest

from helpdesk.tickets.rules import apply_assignment_status_rule, apply_resolution_timestamps, sync_display_fields
from helpdesk.tickets.state import TicketStatus

_NOW = datetime(2025, 1, 2, 9, 30, tzinfo=timezone.utc)


def test_assignment_rule_moves_new_ticket(make_ticket):
    ticket = make_ticket(assigned_agent_id="agent-7")

    assert apply_assignment_status_rule(ticket, assignment_changed=True).status is TicketStatus.IN_PROGRESS


def test_assignment_rule_needs_a_change(make_ticket):
    ticket = make_ticket(assigned_agent_id="agent-7")

    assert apply_assignment_status_rule(ticket, assignment_changed=False) is ticket


def test_assignment_rule_ignores_unassignment(make_ticket):
    ticket = make_ticket(assigned_agent_id=None)

    assert apply_assignment_status_rule(ticket, assignment_changed=True).status is TicketStatus.NEW


@pytest.mark.parametrize("status", [TicketStatus.WAITING, TicketStatus.RESOLVED, TicketStatus.CLOSED])
def test_assignment_rule_keeps_other_statuses(make_ticket, status):
    ticket = make_ticket(status=status, assigned_agents=["agent-8"])

    assert apply_assignment_status_rule(ticket, assignment_changed=True).status is status


def test_sync_display_fields_only_touches_changed_ids(make_ticket, users, categories):
    ticket = make_ticket(
        assigned_agent_id="agent-8",
        assigned_agent="stale",
        assigned_agents=["agent-7", "ghost"],
        sub_category_id="1-3",
        sub_category="stale",
    )

    synced = sync_display_fields(ticket, {"assigned_agents"}, users=users, categories=categories)

    assert synced.assigned_agent_names == ["Sarah Johnson", "Unknown User"]
    assert synced.assigned_agent == "stale"
    assert synced.sub_category == "stale"

    synced = sync_display_fields(
        ticket, ("assigned_agent_id", "category"), users=users, categories=categories
    )
    assert synced.assigned_agent == "Mike Chen"
    assert synced.sub_category == "Network Problems"


def test_sync_display_fields_clears_unassigned_agent(make_ticket, users, categories):
    ticket = make_ticket(assigned_agent_id=None, assigned_agent="Sarah Johnson")

    synced = sync_display_fields(ticket, {"assigned_agent_id"}, users=users, categories=categories)

    assert synced.assigned_agent is None


def test_resolution_timestamps_stamp_and_clear(make_ticket):
    before = make_ticket(status=TicketStatus.IN_PROGRESS)

    closed = apply_resolution_timestamps(before, make_ticket(status=TicketStatus.CLOSED), now=_NOW)
    assert closed.resolved_at == _NOW
    assert closed.closed_at == _NOW

    reopened = apply_resolution_timestamps(closed, make_ticket(status=TicketStatus.NEW, resolved_at=_NOW), now=_NOW)
    assert reopened.resolved_at is None
    assert reopened.closed_at is None


def test_resolution_timestamps_untouched_without_status_change(make_ticket):
    before = make_ticket(status=TicketStatus.RESOLVED, resolved_at=_NOW)
    after = make_ticket(status=TicketStatus.RESOLVED, resolved_at=_NOW, title="Edited")

    assert apply_resolution_timestamps(before, after, now=datetime(2030, 1, 1, tzinfo=timezone.utc)) is after
