from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from helpdesk.tickets.audit import AuditTrailBuilder
from helpdesk.tickets.catalog import Category, InMemoryCategoryCatalog, InMemoryUserCatalog, SubCategory, User
from helpdesk.tickets.models import Ticket
from helpdesk.tickets.repository import TicketRepository
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.state import EscalationLevel, TicketPriority, TicketStatus
from helpdesk.tickets.store import InMemoryDocumentStore

BASE_TIME = datetime(2024, 12, 15, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current


@pytest.fixture
def users() -> InMemoryUserCatalog:
    return InMemoryUserCatalog(
        [
            User(id="actor-1", first_name="Admin", last_name="User", email="admin@helpdesk.com", display_name="Admin User"),
            User(
                id="agent-7",
                first_name="Sarah",
                last_name="Johnson",
                email="sarah.johnson@example.com",
                display_name="Sarah Johnson",
                roles=("agent",),
            ),
            User(id="agent-8", first_name="Mike", last_name="Chen", email="mike.chen@example.com", roles=("agent",)),
            User(
                id="user-4",
                first_name="John",
                last_name="Doe",
                email="user@example.com",
                display_name="John Doe",
                phone_number="+1-555-0401",
                department="Marketing",
                job_title="Marketing Specialist",
                manager="Emma Wilson",
                default_location="Remote",
            ),
        ]
    )


@pytest.fixture
def categories() -> InMemoryCategoryCatalog:
    return InMemoryCategoryCatalog(
        [
            Category(
                id="1",
                name="Technical Support",
                sub_categories=(
                    SubCategory(id="1-3", name="Network Problems", category_id="1"),
                    SubCategory(id="1-5", name="Password Reset", category_id="1"),
                ),
            ),
            Category(
                id="2",
                name="Account & Billing",
                sub_categories=(SubCategory(id="2-1", name="Invoices", category_id="2"),),
            ),
        ]
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def id_factory() -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def repository(store) -> TicketRepository:
    return TicketRepository(store)


@pytest.fixture
def audit_builder(users, categories, clock, id_factory) -> AuditTrailBuilder:
    return AuditTrailBuilder(users, categories, clock=clock, id_factory=id_factory)


@pytest.fixture
def service(repository, users, categories, clock, id_factory) -> TicketService:
    return TicketService(repository, users=users, categories=categories, clock=clock, id_factory=id_factory)


@pytest.fixture
def make_ticket() -> Callable[..., Ticket]:
    def factory(ticket_id: str = "TKT-001", **overrides: Any) -> Ticket:
        values: dict[str, Any] = {
            "ticket_id": ticket_id,
            "title": "Cannot login to my account",
            "description": "Password is rejected",
            "category": "Technical Support",
            "priority": TicketPriority.HIGH,
            "status": TicketStatus.NEW,
            "escalation_level": EscalationLevel.TIER_1,
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME,
            "requester_id": "user-4",
            "requester_name": "John Doe",
        }
        values.update(overrides)
        return Ticket(**values)

    return factory


@pytest.fixture
def seeded_tickets(repository, make_ticket) -> list[Ticket]:
    """23 tickets: 8 resolved/closed, 15 open, spread over 23 days."""

    statuses = [TicketStatus.RESOLVED] * 5 + [TicketStatus.CLOSED] * 3
    statuses += [TicketStatus.NEW] * 7 + [TicketStatus.IN_PROGRESS] * 5 + [TicketStatus.WAITING] * 3
    tickets = []
    for index, status in enumerate(statuses, start=1):
        created = BASE_TIME + timedelta(days=index)
        ticket = make_ticket(
            f"TKT-{index:03d}",
            title=f"Issue number {index}",
            description="VPN drops every hour" if index % 4 == 0 else "Printer is jammed",
            category="Technical Support" if index % 2 else "Account & Billing",
            priority=TicketPriority.URGENT if index % 5 == 0 else TicketPriority.LOW,
            status=status,
            assigned_agent_id=None if index % 3 == 0 else ("agent-7" if index % 2 else "agent-8"),
            requester_id="user-4" if index <= 10 else "actor-1",
            created_at=created,
            updated_at=created + timedelta(hours=index),
        )
        repository.save_ticket(ticket)
        tickets.append(ticket)
    return tickets
