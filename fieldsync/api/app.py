"""FastAPI web application for fieldsync."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from pydantic import BaseModel

from fieldsync import __version__
from fieldsync.api.service import EventCreate, EventService, EventUpdate
from fieldsync.bootstrap import AppContext, build_app_context
from fieldsync.models.event import Event, EventStatus
from fieldsync.models.sync_report import SyncReport

logger = logging.getLogger(__name__)


# Response models
class EventResponse(BaseModel):
    """Response for a single event."""
    event: Event


class EventCreateResponse(BaseModel):
    """Response for event creation."""
    event: Event
    message: str


class EventListResponse(BaseModel):
    """Response for event listing."""
    events: List[Event]
    total: int


class StatusCountsResponse(BaseModel):
    """Response for per-status counts."""
    counts: Dict[str, int]


def _auto_sync_enabled() -> bool:
    return os.getenv("AUTO_SYNC", "True").lower() == "true"


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Create the API application.

    Args:
        context: Prebuilt object graph. If None, one is built from configuration
                 when the application starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.context is None:
            app.state.context = build_app_context(state=app.state.storage_state)
        ctx: AppContext = app.state.context
        if _auto_sync_enabled():
            ctx.auto_sync.start()
        try:
            yield
        finally:
            await ctx.auto_sync.shutdown()

    app = FastAPI(
        title="fieldsync API",
        description="Field event tracking with offline-first sync",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context
    app.state.storage_state = {}

    def get_service(request: Request) -> EventService:
        ctx: Optional[AppContext] = request.app.state.context
        if ctx is None:
            raise HTTPException(status_code=503, detail="Application is not initialized")
        return ctx.service

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    @app.get("/events", response_model=EventListResponse)
    async def list_events(status: Optional[EventStatus] = None, service: EventService = Depends(get_service)):
        """List events, optionally filtered by sync status."""
        events = await service.list_events(status=status)
        return EventListResponse(events=events, total=len(events))

    @app.get("/events/status", response_model=StatusCountsResponse)
    async def status_counts(service: EventService = Depends(get_service)):
        """Number of events per sync status."""
        return StatusCountsResponse(counts=await service.status_counts())

    @app.post("/events/sync", response_model=SyncReport)
    async def sync_events(service: EventService = Depends(get_service)):
        """Reconcile pending and failed events now."""
        return await service.sync_events()

    @app.post("/events", response_model=EventCreateResponse, status_code=201)
    async def create_event(data: EventCreate, service: EventService = Depends(get_service)):
        """Create an event. Offline creation still succeeds; sync is deferred."""
        outcome = await service.create_event(data)
        return EventCreateResponse(event=outcome.event, message=outcome.message)

    @app.get("/events/{event_id}", response_model=EventResponse)
    async def get_event(event_id: str, service: EventService = Depends(get_service)):
        event = await service.get_event(event_id)
        if event is None:
            raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
        return EventResponse(event=event)

    @app.put("/events/{event_id}", response_model=EventResponse)
    async def update_event(event_id: str, changes: EventUpdate, service: EventService = Depends(get_service)):
        event = await service.update_event(event_id, changes)
        if event is None:
            raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
        return EventResponse(event=event)

    @app.delete("/events/{event_id}", status_code=204)
    async def delete_event(event_id: str, service: EventService = Depends(get_service)):
        deleted = await service.delete_event(event_id)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
        return Response(status_code=204)

    @app.post("/events/{event_id}/retry", response_model=EventResponse)
    async def retry_event(event_id: str, service: EventService = Depends(get_service)):
        """Reset a failed event so the next sync picks it up again."""
        event = await service.retry_event(event_id)
        if event is None:
            raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
        return EventResponse(event=event)

    return app


app = create_app()
