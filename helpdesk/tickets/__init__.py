"""Ticket mutation, audit trail and query engine."""

from .audit import AuditTrailBuilder
from .catalog import Category, InMemoryCategoryCatalog, InMemoryUserCatalog, SubCategory, User
from .changes import ChangeDetector
from .errors import InvalidTicketQueryError, InvalidTicketUpdateError, TicketNotFoundError, TicketServiceError
from .models import AuditEntry, Contact, Ticket, TicketLocation, WorkLogEntry
from .query import Pagination, TicketFilters, TicketPage, TicketQueryEngine
from .repository import TicketRepository
from .service import TicketService
from .state import AuditAction, EscalationLevel, TicketPriority, TicketStatus, WorkLogKind
from .store import DocumentStore, InMemoryDocumentStore, JsonFileDocumentStore

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditTrailBuilder",
    "Category",
    "ChangeDetector",
    "Contact",
    "DocumentStore",
    "EscalationLevel",
    "InMemoryCategoryCatalog",
    "InMemoryDocumentStore",
    "InMemoryUserCatalog",
    "InvalidTicketQueryError",
    "InvalidTicketUpdateError",
    "JsonFileDocumentStore",
    "Pagination",
    "SubCategory",
    "Ticket",
    "TicketFilters",
    "TicketLocation",
    "TicketNotFoundError",
    "TicketPage",
    "TicketPriority",
    "TicketQueryEngine",
    "TicketRepository",
    "TicketService",
    "TicketServiceError",
    "TicketStatus",
    "User",
    "WorkLogEntry",
    "WorkLogKind",
]
