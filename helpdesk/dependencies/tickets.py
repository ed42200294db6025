from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from helpdesk.tickets.service import TicketService


async def get_ticket_service(request: Request) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return service


async def get_actor_id(x_actor_id: Annotated[str | None, Header()] = None) -> str:
    """Acting user id, supplied by the authenticating proxy in front of the API."""

    if not x_actor_id:
        raise HTTPException(status_code=401, detail="X-Actor-Id header is required")
    return x_actor_id


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
ActorId = Annotated[str, Depends(get_actor_id)]
