from __future__ import annotations


class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""


class TicketNotFoundError(TicketServiceError):
    """Raised when an operation targets a non-existent ticket."""


class InvalidTicketUpdateError(TicketServiceError, ValueError):
    """Raised when a create or update payload cannot be applied to a ticket."""


class InvalidTicketQueryError(TicketServiceError, ValueError):
    """Raised when a filter set carries an unusable page, page size or date bound."""
