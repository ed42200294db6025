from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Iterable, Mapping, Sequence

from .catalog import UserCatalog
from .codec import ensure_datetime, to_snake
from .errors import InvalidTicketQueryError
from .models import Ticket
from .repository import TicketRepository
from .state import CLOSED_STATUSES, OPEN_STATUSES, TicketPriority, TicketStatus

logger = logging.getLogger(__name__)

DateBound = date | datetime | str


@dataclass(slots=True)
class TicketFilters:
    """Declarative, conjunctive filter set for :meth:`TicketQueryEngine.query_tickets`.

    ``status``, ``category`` and ``priority`` accept a comma-separated string
    or a sequence; values inside one field are OR-ed.
    """

    search: str | None = None
    status: str | Sequence[str] | None = None
    category: str | Sequence[str] | None = None
    priority: str | Sequence[str] | None = None
    assigned_agent_id: str | None = None
    requester_id: str | None = None
    assignee_name: str | None = None
    created_from: DateBound | None = None
    created_to: DateBound | None = None
    open_only: bool = False
    closed_only: bool = False
    unassigned_only: bool = False
    page: int = 1
    limit: int = 10

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TicketFilters":
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = to_snake(key)
            if name not in known:
                raise InvalidTicketQueryError(f"Unknown ticket filter {key!r}")
            if value is not None:
                values[name] = value
        return cls(**values)


@dataclass(slots=True)
class Pagination:
    current_page: int
    total_pages: int
    total_items: int
    page_size: int


@dataclass(slots=True)
class TicketPage:
    items: list[Ticket]
    pagination: Pagination


def _tokens(value: str | Sequence[str] | None) -> list[str]:
    if value is None:
        return []
    raw: Iterable[Any] = value.split(",") if isinstance(value, str) else value
    return [str(token).strip() for token in raw if str(token).strip()]


def _canonical(tokens: Iterable[str], parser: Callable[[Any], Any]) -> set[str]:
    canonical: set[str] = set()
    for token in tokens:
        try:
            canonical.add(parser(token).value.casefold())
        except ValueError:
            canonical.add(token.casefold())
    return canonical


def _day(bound: DateBound, label: str) -> date:
    if isinstance(bound, datetime):
        return ensure_datetime(bound).astimezone(timezone.utc).date()
    if isinstance(bound, date):
        return bound
    text = str(bound).strip()
    try:
        if len(text) <= 10:
            return date.fromisoformat(text)
        return ensure_datetime(text).astimezone(timezone.utc).date()
    except ValueError as exc:
        raise InvalidTicketQueryError(f"Invalid {label} date {bound!r}") from exc


def _positive_int(value: Any, label: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidTicketQueryError(f"{label} must be a positive integer") from exc
    if number < 1:
        raise InvalidTicketQueryError(f"{label} must be a positive integer")
    return number


_TRUE_FLAGS = frozenset({"true", "1", "yes", "on"})
_FALSE_FLAGS = frozenset({"false", "0", "no", "off", ""})


def _flag(value: Any, label: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().casefold()
    if text in _TRUE_FLAGS:
        return True
    if text in _FALSE_FLAGS:
        return False
    raise InvalidTicketQueryError(f"{label} must be a boolean")


class TicketQueryEngine:
    """Filters, orders and paginates the full ticket collection in memory."""

    def __init__(self, repository: TicketRepository, users: UserCatalog, *, max_page_size: int = 100) -> None:
        self._repository = repository
        self._users = users
        self._max_page_size = max_page_size

    def query_tickets(self, filters: TicketFilters | Mapping[str, Any] | None = None) -> TicketPage:
        if filters is None:
            filters = TicketFilters()
        elif not isinstance(filters, TicketFilters):
            filters = TicketFilters.from_mapping(filters)

        page = _positive_int(filters.page, "page")
        limit = _positive_int(filters.limit, "limit")
        if limit > self._max_page_size:
            raise InvalidTicketQueryError(f"limit must not exceed {self._max_page_size}")

        predicates = self._predicates(filters)
        matched = [
            ticket
            for ticket in self._repository.list_tickets()
            if all(predicate(ticket) for predicate in predicates)
        ]
        matched.sort(key=lambda ticket: ticket.updated_at, reverse=True)

        total_items = len(matched)
        total_pages = math.ceil(total_items / limit)
        start = (page - 1) * limit
        items = matched[start : start + limit]
        logger.debug("Ticket query matched %d items, returning page %d/%d", total_items, page, total_pages)
        return TicketPage(
            items=items,
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_items=total_items,
                page_size=limit,
            ),
        )

    def _predicates(self, filters: TicketFilters) -> list[Callable[[Ticket], bool]]:
        predicates: list[Callable[[Ticket], bool]] = []

        if filters.search:
            needle = filters.search.casefold()
            predicates.append(
                lambda ticket: needle in ticket.title.casefold() or needle in ticket.description.casefold()
            )

        statuses = _canonical(_tokens(filters.status), TicketStatus.parse)
        if statuses:
            predicates.append(lambda ticket: ticket.status.value.casefold() in statuses)

        categories = {token.casefold() for token in _tokens(filters.category)}
        if categories:
            predicates.append(lambda ticket: ticket.category.casefold() in categories)

        priorities = _canonical(_tokens(filters.priority), TicketPriority.parse)
        if priorities:
            predicates.append(lambda ticket: ticket.priority.value.casefold() in priorities)

        if filters.assigned_agent_id:
            agent_id = filters.assigned_agent_id
            predicates.append(lambda ticket: agent_id in ticket.assignee_ids)

        if filters.requester_id:
            requester_id = filters.requester_id
            predicates.append(lambda ticket: ticket.requester_id == requester_id)

        if filters.assignee_name:
            agent_ids = self._agents_matching(filters.assignee_name)
            predicates.append(lambda ticket: any(agent in agent_ids for agent in ticket.assignee_ids))

        if filters.created_from is not None:
            lower = datetime.combine(_day(filters.created_from, "created_from"), time.min, tzinfo=timezone.utc)
            predicates.append(lambda ticket: ticket.created_at >= lower)

        if filters.created_to is not None:
            upper = datetime.combine(_day(filters.created_to, "created_to"), time.max, tzinfo=timezone.utc)
            predicates.append(lambda ticket: ticket.created_at <= upper)

        if _flag(filters.open_only, "open_only"):
            predicates.append(lambda ticket: ticket.status in OPEN_STATUSES)
        if _flag(filters.closed_only, "closed_only"):
            predicates.append(lambda ticket: ticket.status in CLOSED_STATUSES)
        if _flag(filters.unassigned_only, "unassigned_only"):
            predicates.append(lambda ticket: ticket.is_unassigned)

        return predicates

    def _agents_matching(self, name: str) -> set[str]:
        needle = name.casefold()
        return {user.id for user in self._users.list_users() if needle in user.full_name.casefold()}
