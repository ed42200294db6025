from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field

from helpdesk.dependencies.tickets import ActorId, TicketServiceDep, get_ticket_service
from helpdesk.tickets.errors import InvalidTicketQueryError, InvalidTicketUpdateError, TicketNotFoundError
from helpdesk.tickets.models import AuditEntry, Ticket
from helpdesk.tickets.query import TicketFilters, TicketPage

router = APIRouter(prefix="/tickets", tags=["tickets"])

__all__ = ["router", "get_ticket_service"]


class ContactPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str = ""
    email: str = ""
    role: str = ""
    phone: str | None = None


class LocationPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    building: str | None = None
    floor: str | None = None
    room: str | None = None
    desk: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


class TicketCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    sub_category_id: str | None = None
    # Enum-valued fields stay strings here; the engine parses them case-insensitively.
    priority: str | None = None
    status: str | None = None
    escalation_level: str | None = None
    requester_id: str | None = None
    requester_location: str | None = None
    additional_contacts: list[ContactPayload] | None = None
    assigned_agent_id: str | None = None
    assigned_agents: list[str] | None = None
    ticket_location: LocationPayload | None = None


class TicketUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = None
    sub_category_id: str | None = None
    priority: str | None = None
    status: str | None = None
    escalation_level: str | None = None
    requester_phone: str | None = None
    requester_location: str | None = None
    additional_contacts: list[ContactPayload] | None = None
    assigned_agent_id: str | None = None
    assigned_agents: list[str] | None = None
    ticket_location: LocationPayload | None = None
    resolution: str | None = None
    resolution_steps: list[str] | None = None

    def to_partial_update(self) -> dict[str, Any]:
        payload = self.model_dump(exclude_unset=True)
        if not payload:
            raise HTTPException(status_code=400, detail="No fields provided for update")
        return payload


class MessageRequest(BaseModel):
    content: str = Field(..., min_length=1)
    is_internal: bool = False


class WorkLogRequest(BaseModel):
    content: str = Field(..., min_length=1)
    kind: str = "work_log"


class AttachmentRequest(BaseModel):
    file_name: str = Field(..., min_length=1)
    file_size: int = Field(..., ge=0)
    mime_type: str = "application/octet-stream"
    url: str


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    actor_id: str
    actor_name: str
    actor_email: str
    action: str
    field: str | None
    old_value: str | None
    new_value: str | None
    description: str
    timestamp: datetime
    metadata: dict[str, Any]


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    content: str
    is_internal: bool
    created_at: datetime


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    file_name: str
    file_size: int
    mime_type: str
    uploaded_by: str
    uploaded_at: datetime
    url: str


class WorkLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    user_name: str
    user_email: str
    content: str
    kind: str
    timestamp: datetime


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ticket_id: str
    title: str
    description: str
    category: str
    sub_category_id: str | None
    sub_category: str | None
    priority: str
    status: str
    escalation_level: str
    requester_id: str
    requester_name: str
    requester_email: str
    requester_location: str
    additional_contacts: list[ContactPayload]
    assigned_agent_id: str | None
    assigned_agent: str | None
    assigned_agents: list[str]
    assigned_agent_names: list[str]
    ticket_location: LocationPayload | None
    chat_thread: list[MessageResponse]
    attachments: list[AttachmentResponse]
    work_log: list[WorkLogResponse]
    resolution: str | None
    resolution_steps: list[str]
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None
    closed_at: datetime | None
    update_history: list[AuditEntryResponse]


class PaginationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_page: int
    total_pages: int
    total_items: int
    page_size: int


class TicketPageResponse(BaseModel):
    items: list[TicketResponse]
    pagination: PaginationResponse


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _to_audit_response(entry: AuditEntry) -> AuditEntryResponse:
    return AuditEntryResponse.model_validate(entry)


def _to_page_response(page: TicketPage) -> TicketPageResponse:
    return TicketPageResponse(
        items=[_to_response(ticket) for ticket in page.items],
        pagination=PaginationResponse.model_validate(page.pagination),
    )


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep, actor_id: ActorId) -> TicketResponse:
    try:
        ticket = service.create_ticket(payload.model_dump(exclude_none=True), actor_id)
    except InvalidTicketUpdateError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _to_response(ticket)


@router.get("", response_model=TicketPageResponse)
def list_tickets(
    request: Request,
    service: TicketServiceDep,
    search: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    category: str | None = None,
    priority: str | None = None,
    assigned_agent_id: str | None = None,
    requester_id: str | None = None,
    assignee_name: str | None = None,
    created_from: str | None = None,
    created_to: str | None = None,
    open_only: bool = False,
    closed_only: bool = False,
    unassigned_only: bool = False,
    page: int = 1,
    limit: int | None = None,
) -> TicketPageResponse:
    default_limit = getattr(request.app.state, "default_page_size", 10)
    filters = TicketFilters(
        search=search,
        status=status_filter,
        category=category,
        priority=priority,
        assigned_agent_id=assigned_agent_id,
        requester_id=requester_id,
        assignee_name=assignee_name,
        created_from=created_from,
        created_to=created_to,
        open_only=open_only,
        closed_only=closed_only,
        unassigned_only=unassigned_only,
        page=page,
        limit=limit or default_limit,
    )
    try:
        result = service.query_tickets(filters)
    except InvalidTicketQueryError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _to_page_response(result)


@router.get("/{ticket_id}", response_model=TicketResponse)
def get_ticket(ticket_id: str, service: TicketServiceDep) -> TicketResponse:
    try:
        ticket = service.get_ticket(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _to_response(ticket)


@router.patch("/{ticket_id}", response_model=TicketResponse)
def update_ticket(
    ticket_id: str,
    payload: TicketUpdateRequest,
    service: TicketServiceDep,
    actor_id: ActorId,
) -> TicketResponse:
    try:
        ticket = service.apply_update(ticket_id, payload.to_partial_update(), actor_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTicketUpdateError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _to_response(ticket)


@router.get("/{ticket_id}/history", response_model=list[AuditEntryResponse])
def get_ticket_history(ticket_id: str, service: TicketServiceDep) -> list[AuditEntryResponse]:
    try:
        entries = service.get_history(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [_to_audit_response(entry) for entry in entries]


@router.post("/{ticket_id}/messages", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def add_message(
    ticket_id: str,
    payload: MessageRequest,
    service: TicketServiceDep,
    actor_id: ActorId,
) -> TicketResponse:
    try:
        ticket = service.add_message(
            ticket_id,
            content=payload.content,
            actor_id=actor_id,
            is_internal=payload.is_internal,
        )
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _to_response(ticket)


@router.post("/{ticket_id}/work-log", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def add_work_log(
    ticket_id: str,
    payload: WorkLogRequest,
    service: TicketServiceDep,
    actor_id: ActorId,
) -> TicketResponse:
    try:
        ticket = service.add_work_log(ticket_id, content=payload.content, actor_id=actor_id, kind=payload.kind)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTicketUpdateError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _to_response(ticket)


@router.post("/{ticket_id}/attachments", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def add_attachment(
    ticket_id: str,
    payload: AttachmentRequest,
    service: TicketServiceDep,
    actor_id: ActorId,
) -> TicketResponse:
    try:
        ticket = service.add_attachment(
            ticket_id,
            file_name=payload.file_name,
            file_size=payload.file_size,
            mime_type=payload.mime_type,
            url=payload.url,
            actor_id=actor_id,
        )
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _to_response(ticket)
