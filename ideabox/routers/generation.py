"""Generation session endpoints for the IdeaBox FastAPI backend."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from ..errors import BackendUnavailable, PersistenceError, SessionStateError
from ..fields import ContextSnapshot, describe_schema
from ..schemas import (
    BackendPreference,
    BackendStatusResponse,
    CommitResponse,
    DownloadResponse,
    EventType,
    FieldEdits,
    SchemaDefinition,
    SessionRequest,
    SessionSnapshot,
    UseCase,
)
from ..services import Services, get_services
from ..session import GenerationSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ideabox", tags=["generation"])

_TERMINAL_EVENTS = (EventType.COMPLETED, EventType.ERROR)


@router.get("/health")
async def healthcheck() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}


@router.get("/schemas", response_model=list[SchemaDefinition])
async def list_schemas() -> list[SchemaDefinition]:
    """Expose the ordered field schemas to the UI."""

    return [describe_schema(use_case) for use_case in UseCase]


@router.get("/schemas/{use_case}", response_model=SchemaDefinition)
async def fetch_schema(use_case: UseCase) -> SchemaDefinition:
    return describe_schema(use_case)


@router.get("/backends", response_model=BackendStatusResponse)
async def backend_status(
    preference: BackendPreference = BackendPreference.AUTO,
    services: Services = Depends(get_services),
) -> BackendStatusResponse:
    """Report readiness of both backends and which one a new session would use."""

    resolver = services.resolver
    resolution = resolver.resolve(preference)
    return BackendStatusResponse(
        managed=resolver.managed_availability(),
        local=resolver.local_status().to_model(),
        resolution=resolution.to_model(),
    )


@router.post("/backends/local/download", response_model=DownloadResponse)
async def download_local_model(services: Services = Depends(get_services)) -> DownloadResponse:
    """Start pulling the local model; repeated calls while downloading are no-ops."""

    started = services.manager.start_download()
    return DownloadResponse(started=started, local=services.manager.readiness().to_model())


def _unavailable(exc: BackendUnavailable) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=exc.resolution.to_model().model_dump(mode="json"),
    )


def _context_for(payload: SessionRequest, services: Services) -> Optional[ContextSnapshot]:
    if payload.use_case is not UseCase.DUMP_ANALYSIS or not payload.target_box_id:
        return None
    box = services.store.get_box(payload.target_box_id)
    if box is None:
        raise HTTPException(status_code=404, detail=f"Box '{payload.target_box_id}' not found.")
    return box.context_snapshot()


def _new_session(payload: SessionRequest, services: Services) -> GenerationSession:
    context = _context_for(payload, services)
    session = GenerationSession(
        payload.use_case,
        payload.input_text,
        title=payload.title,
        context=context,
        target_box_id=payload.target_box_id,
    )
    return services.sessions.add(session)


def _require_session(session_id: str, services: Services) -> GenerationSession:
    session = services.sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found.")
    return session


@router.post("/sessions", response_model=SessionSnapshot)
async def run_session(payload: SessionRequest, services: Services = Depends(get_services)) -> SessionSnapshot:
    """Generate every field of the requested schema and return the finished session."""

    try:
        backend = services.resolver.require(payload.preference)
    except BackendUnavailable as exc:
        raise _unavailable(exc) from exc

    session = _new_session(payload, services)
    await services.orchestrator.start(session, backend)
    return session.snapshot()


@router.post("/sessions/stream")
async def stream_session(payload: SessionRequest, services: Services = Depends(get_services)) -> StreamingResponse:
    """Same as ``POST /sessions`` but streams every session event as server-sent events.

    Closing the connection cancels the session.
    """

    try:
        backend = services.resolver.require(payload.preference)
    except BackendUnavailable as exc:
        raise _unavailable(exc) from exc

    session = _new_session(payload, services)
    queue = session.subscribe()
    task = services.orchestrator.launch(session, backend)

    async def events() -> AsyncIterator[str]:
        try:
            while True:
                event = await queue.get()
                yield f"event: {event.type.value}\ndata: {event.model_dump_json()}\n\n"
                if event.type in _TERMINAL_EVENTS:
                    break
        finally:
            session.unsubscribe(queue)
            if not task.done():
                logger.info("Client left session %s before it finished", session.id)
                services.orchestrator.cancel(session)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Session-Id": session.id},
    )


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def fetch_session(session_id: str, services: Services = Depends(get_services)) -> SessionSnapshot:
    return _require_session(session_id, services).snapshot()


@router.patch("/sessions/{session_id}/fields", response_model=SessionSnapshot)
async def edit_session_fields(
    session_id: str,
    edits: FieldEdits,
    services: Services = Depends(get_services),
) -> SessionSnapshot:
    """Apply user edits to a completed session before it is committed."""

    session = _require_session(session_id, services)
    try:
        session.edit_fields(edits.field_values)
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except KeyError as exc:
        raise HTTPException(status_code=422, detail=f"Unknown field(s): {exc.args[0]}") from exc
    return session.snapshot()


@router.post(
    "/sessions/{session_id}/commit",
    response_model=CommitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def commit_session(session_id: str, services: Services = Depends(get_services)) -> CommitResponse:
    """Persist the session's current field values. Each call creates a new entity."""

    session = _require_session(session_id, services)
    try:
        entity_id = services.commits.commit_session(session)
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return CommitResponse(entity_id=entity_id, use_case=session.use_case)


@router.delete("/sessions/{session_id}", response_model=SessionSnapshot)
async def discard_session(session_id: str, services: Services = Depends(get_services)) -> SessionSnapshot:
    """Cancel the session if it is still running and forget it."""

    session = _require_session(session_id, services)
    services.orchestrator.cancel(session)
    services.sessions.discard(session_id)
    return session.snapshot()
