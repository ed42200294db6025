from contextlib import asynccontextmanager

from fastapi import FastAPI

from helpdesk.api.routes import ping, tickets
from helpdesk.core.config import Settings, get_settings
from helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from helpdesk.tickets.catalog import InMemoryCategoryCatalog, InMemoryUserCatalog, load_catalogs
from helpdesk.tickets.query import TicketQueryEngine
from helpdesk.tickets.repository import TicketRepository
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.store import DocumentStore, InMemoryDocumentStore, JsonFileDocumentStore


def build_ticket_service(settings: Settings) -> TicketService:
    """Wire store, catalogs and engine components from settings."""

    store: DocumentStore
    if settings.store_path:
        store = JsonFileDocumentStore(settings.store_path)
    else:
        store = InMemoryDocumentStore()

    if settings.catalog_path:
        users, categories = load_catalogs(settings.catalog_path)
    else:
        users, categories = InMemoryUserCatalog(), InMemoryCategoryCatalog()

    repository = TicketRepository(store, id_prefix=settings.ticket_id_prefix, id_width=settings.ticket_id_width)
    query_engine = TicketQueryEngine(repository, users, max_page_size=settings.max_page_size)
    return TicketService(repository, users=users, categories=categories, query_engine=query_engine)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.default_page_size = settings.default_page_size
    app.state.ticket_service = build_ticket_service(settings)
    logger.info("Ticket service ready (store=%s)", settings.store_path or "memory")
    try:
        yield
    finally:
        app.state.ticket_service = None
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    return app


app = create_app()
