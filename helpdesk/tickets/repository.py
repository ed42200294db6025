from __future__ import annotations

import re

from .codec import ticket_from_document, ticket_to_document
from .models import Ticket
from .store import DocumentStore


class TicketRepository:
    """Typed access to ticket documents held in a document store."""

    def __init__(self, store: DocumentStore, *, id_prefix: str = "TKT", id_width: int = 3) -> None:
        self._store = store
        self._id_prefix = id_prefix
        self._id_width = id_width
        self._id_re = re.compile(rf"^{re.escape(id_prefix)}-(\d+)$")

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        document = self._store.get(ticket_id)
        if document is None:
            return None
        return ticket_from_document(document)

    def list_tickets(self) -> list[Ticket]:
        return [ticket_from_document(document) for document in self._store.list()]

    def save_ticket(self, ticket: Ticket) -> None:
        self._store.put(ticket_to_document(ticket))

    def next_ticket_id(self) -> str:
        highest = 0
        for document in self._store.list():
            match = self._id_re.match(str(document.get("ticketId", "")))
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{self._id_prefix}-{highest + 1:0{self._id_width}d}"
