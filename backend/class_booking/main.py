import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response

from .config import get_settings
from .database import async_session
from .infrastructure.events import InProcessEventBus
from .infrastructure.notifications import NotificationDispatcher
from .routers import bookings, catalog, sessions
from .utils.request_id import REQUEST_ID_HEADER, resolve_request_id, set_request_id
from .workers.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    bus = InProcessEventBus()
    NotificationDispatcher().register(bus)
    app.state.event_bus = bus

    sweeper = ExpirySweeper(async_session, interval_seconds=settings.expiry_sweep_interval_seconds)
    if settings.expiry_sweep_enabled:
        sweeper.start()
        logger.info("Expiry sweeper started", extra={"interval_seconds": settings.expiry_sweep_interval_seconds})
    try:
        yield
    finally:
        sweeper.shutdown()
        await bus.drain()


def create_app() -> FastAPI:
    app = FastAPI(title="Class Booking API", lifespan=lifespan)
    app.middleware("http")(request_id_middleware)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(bookings.router, prefix=API_PREFIX)
    app.include_router(sessions.router, prefix=API_PREFIX)
    app.include_router(sessions.admin_router, prefix=API_PREFIX)
    app.include_router(catalog.router, prefix=API_PREFIX)
    return app


app = create_app()
