"""Post-diff rules the orchestrator applies after field changes are logged.

Each rule takes a ticket and returns either the same object or a modified
copy; none of them write history or touch the store.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Collection

from .catalog import CategoryCatalog, UserCatalog, resolve_sub_category_name, resolve_user_name
from .models import Ticket
from .state import ASSIGNABLE_STATUSES, TicketStatus


def apply_assignment_status_rule(ticket: Ticket, *, assignment_changed: bool) -> Ticket:
    """Move a freshly assigned, not yet started ticket to In Progress.

    Only fires while the ticket is New or In Progress and somebody is
    assigned after the change; Waiting, Resolved and Closed tickets keep
    their status.
    """

    if not assignment_changed or not ticket.assignee_ids:
        return ticket
    if ticket.status not in ASSIGNABLE_STATUSES or ticket.status is TicketStatus.IN_PROGRESS:
        return ticket
    return replace(ticket, status=TicketStatus.IN_PROGRESS)


def sync_display_fields(
    ticket: Ticket,
    changed_fields: Collection[str],
    *,
    users: UserCatalog,
    categories: CategoryCatalog,
) -> Ticket:
    """Recompute denormalized display names for the id fields in ``changed_fields``."""

    updates: dict[str, object] = {}
    if "assigned_agent_id" in changed_fields:
        updates["assigned_agent"] = resolve_user_name(users, ticket.assigned_agent_id) or None
    if "assigned_agents" in changed_fields:
        updates["assigned_agent_names"] = [resolve_user_name(users, agent) for agent in ticket.assigned_agents]
    if "sub_category_id" in changed_fields or "category" in changed_fields:
        updates["sub_category"] = (
            resolve_sub_category_name(categories, ticket.category, ticket.sub_category_id) or None
        )
    if not updates:
        return ticket
    return replace(ticket, **updates)


def apply_resolution_timestamps(before: Ticket, after: Ticket, *, now: datetime) -> Ticket:
    """Stamp or clear resolved/closed times when the status crosses the closed boundary."""

    if before.status is after.status:
        return after
    if after.status is TicketStatus.RESOLVED:
        return replace(after, resolved_at=after.resolved_at or now)
    if after.status is TicketStatus.CLOSED:
        return replace(after, resolved_at=after.resolved_at or now, closed_at=after.closed_at or now)
    if before.status.is_closed and after.status.is_open:
        return replace(after, resolved_at=None, closed_at=None)
    return after
