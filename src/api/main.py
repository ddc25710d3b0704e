"""
Incident Triage - REST API

FastAPI application for public incident reporting, confirmation,
staff triage and the operations dashboard.

Run with: uvicorn src.api.main:app --reload
"""

import asyncio
import contextlib
from datetime import datetime, timezone
from typing import Optional, List

from fastapi import (
    FastAPI, HTTPException, Query, File, UploadFile, Form, Header, Depends,
    WebSocket, WebSocketDisconnect
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from src.alerts.broadcaster import ConnectionManager, IncidentBroadcaster, LoggingSink
from src.core.config import Settings, settings
from src.core.constants import ANONYMOUS_USERNAME, DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT
from src.core.exceptions import TriageError, UnauthorizedError
from src.core.logging import setup_logging, get_logger
from src.media.image_store import LocalImageStore
from src.triage.models import IncidentQuery, IncidentStatus, IncidentType, parse_enum
from src.triage.service import IncidentService
from src.triage.storage import InMemoryStore, TriageStore

API_VERSION = "1.0.0"

logger = get_logger(__name__)

# FastAPI app
app = FastAPI(
    title="Incident Triage",
    description="Crowd-sourced incident reporting with confidence scoring, duplicate detection and staff triage",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Stored report images
app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")


# ============================================================================
# Pydantic Models
# ============================================================================

class IncidentResponse(BaseModel):
    """Single incident."""
    id: int
    incident_id: str
    type: str
    description: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    gps_accuracy: Optional[float] = Field(default=None, description="GPS accuracy radius in meters")
    image_url: Optional[str] = None
    status: str
    confidence_score: int = Field(ge=0, le=100)
    confidence_level: str
    confirmation_count: int
    reporter_username: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: str
    updated_at: str
    distance_km: Optional[float] = Field(default=None, description="Distance from the query point")


class IncidentCreatedResponse(IncidentResponse):
    """New incident plus recent nearby reports of the same type."""
    potential_duplicates: List[IncidentResponse] = Field(default_factory=list)


class ConfirmationRequest(BaseModel):
    """Request to confirm an incident."""
    incident_id: int
    latitude: float
    longitude: float


class StatusUpdateRequest(BaseModel):
    """Request to change an incident's status."""
    status: str
    notes: Optional[str] = None


class TimelineEntryResponse(BaseModel):
    """One status change."""
    id: Optional[int]
    status: str
    notes: Optional[str]
    updated_by: Optional[str]
    created_at: str


class RecentIncidentResponse(BaseModel):
    """Row of the recent-incidents feed."""
    id: int
    incident_id: str
    type: str
    status: str
    confidence_score: int
    created_at: str


class DashboardStatsResponse(BaseModel):
    """Dashboard rollup."""
    total_incidents: int
    verified_incidents: int
    resolved_incidents: int
    accuracy_rate: float
    average_response_time_hours: float
    recent_incidents: List[RecentIncidentResponse]


class HealthResponse(BaseModel):
    """API health check response."""
    status: str
    version: str
    timestamp: str
    storage: str
    database: Optional[str] = None
    subscribers: int


# ============================================================================
# Service wiring
# ============================================================================

connection_manager = ConnectionManager()

_service: Optional[IncidentService] = None
_image_store: Optional[LocalImageStore] = None


def build_store(config: Settings) -> TriageStore:
    """SQL storage when a database URL is configured, otherwise in-memory."""
    if config.database_url:
        from src.database.repository import SqlStore
        return SqlStore.from_url(config.database_url)
    return InMemoryStore()


def build_service(config: Settings = settings) -> IncidentService:
    """
    Assemble the incident service from settings.

    Args:
        config: Application settings

    Returns:
        IncidentService broadcasting to the log and WebSocket subscribers
    """
    broadcaster = IncidentBroadcaster(
        sinks=[LoggingSink(), connection_manager],
        topic=config.broadcast_topic,
    )
    service = IncidentService.from_settings(build_store(config), config, broadcaster)
    if config.seed_default_users:
        service.seed_default_users()
    return service


def get_service() -> IncidentService:
    """Dependency returning the process-wide incident service."""
    global _service
    if _service is None:
        setup_logging()
        _service = build_service()
        logger.info(f"Incident service ready ({type(_service.store).__name__})")
    return _service


def get_image_store() -> LocalImageStore:
    """Dependency returning the process-wide image store."""
    global _image_store
    if _image_store is None:
        _image_store = LocalImageStore(settings.upload_dir)
    return _image_store


def _http_error(e: TriageError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


# ============================================================================
# System Routes
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
def health_check(service: IncidentService = Depends(get_service)):
    """Check API health status."""
    database = None
    db = getattr(service.store, "db", None)
    if db is not None:
        database = "connected" if db.check_connection() else "unavailable"

    return HealthResponse(
        status="healthy" if database != "unavailable" else "degraded",
        version=API_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        storage=type(service.store).__name__,
        database=database,
        subscribers=connection_manager.subscriber_count,
    )


# ============================================================================
# Public Routes
# ============================================================================

@app.post(
    "/api/incidents/public/report",
    response_model=IncidentCreatedResponse,
    status_code=201,
    tags=["Public"],
)
async def report_incident(
    type: str = Form(..., description="ACCIDENT, MEDICAL, FIRE, INFRASTRUCTURE or CRIME"),
    description: str = Form(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    address: Optional[str] = Form(None),
    gps_accuracy: Optional[float] = Form(None, description="GPS accuracy radius in meters"),
    reporter_username: str = Form(ANONYMOUS_USERNAME),
    image: Optional[UploadFile] = File(None),
    service: IncidentService = Depends(get_service),
    image_store: LocalImageStore = Depends(get_image_store),
):
    """
    Submit an incident report, optionally with a photo.

    The response lists recent nearby reports of the same type as
    `potential_duplicates`; they never block the submission.
    """
    image_url = None
    try:
        if image is not None and image.filename:
            image_url = image_store.store(await image.read(), image.filename)

        result = await asyncio.to_thread(
            service.create_incident,
            incident_type=type,
            description=description,
            latitude=latitude,
            longitude=longitude,
            address=address,
            gps_accuracy=gps_accuracy,
            image_url=image_url,
            reporter_username=reporter_username,
        )
        return result.to_dict()
    except TriageError as e:
        if image_url:
            image_store.delete(image_url)
        raise _http_error(e)


@app.get("/api/incidents/public/query", response_model=List[IncidentResponse], tags=["Public"])
def query_incidents(
    latitude: Optional[float] = Query(None),
    longitude: Optional[float] = Query(None),
    radius_km: Optional[float] = Query(None, description="Search radius in kilometers"),
    type: Optional[str] = Query(None, description="Filter by incident type"),
    status: Optional[str] = Query(None, description="Filter by status"),
    min_confidence_score: Optional[int] = Query(None, ge=0, le=100),
    limit: int = Query(default=DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT),
    offset: int = Query(default=0, ge=0),
    service: IncidentService = Depends(get_service),
):
    """
    Browse incidents.

    With latitude, longitude and radius_km, returns incidents within the
    radius ordered by distance, then newest first.
    """
    try:
        query = IncidentQuery(
            latitude=latitude,
            longitude=longitude,
            radius_km=radius_km,
            type=parse_enum(IncidentType, type, "incident type") if type else None,
            status=parse_enum(IncidentStatus, status, "status") if status else None,
            min_confidence_score=min_confidence_score,
            limit=limit,
            offset=offset,
        )
        results = service.query_incidents(query)
    except TriageError as e:
        raise _http_error(e)

    return [
        dict(incident.to_dict(), distance_km=distance)
        for incident, distance in results
    ]


@app.get("/api/incidents/public/{incident_code}", response_model=IncidentResponse, tags=["Public"])
def get_incident_by_code(incident_code: str, service: IncidentService = Depends(get_service)):
    """Get an incident by its public code."""
    try:
        return service.get_incident_by_code(incident_code).to_dict()
    except TriageError as e:
        raise _http_error(e)


@app.post("/api/incidents/public/confirm", response_model=IncidentResponse, tags=["Public"])
def confirm_incident(
    request: ConfirmationRequest,
    username: str = Query(default=ANONYMOUS_USERNAME),
    service: IncidentService = Depends(get_service),
):
    """Confirm an incident as a witness. Each user may confirm once."""
    try:
        incident = service.confirm_incident(
            request.incident_id, request.latitude, request.longitude, username
        )
        return incident.to_dict()
    except TriageError as e:
        raise _http_error(e)


# ============================================================================
# Admin Routes
# ============================================================================

@app.get("/api/incidents/admin/incidents", response_model=List[IncidentResponse], tags=["Admin"])
def list_incidents(
    status: Optional[str] = Query(None, description="Filter by status"),
    service: IncidentService = Depends(get_service),
):
    """All incidents, highest confidence first."""
    try:
        return [i.to_dict() for i in service.list_for_admin(status)]
    except TriageError as e:
        raise _http_error(e)


@app.get("/api/incidents/admin/prioritized", response_model=List[IncidentResponse], tags=["Admin"])
def prioritized_incidents(
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: int = Query(default=DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT),
    service: IncidentService = Depends(get_service),
):
    """Top incidents by confidence, oldest first among ties."""
    try:
        return [i.to_dict() for i in service.prioritized(status, limit)]
    except TriageError as e:
        raise _http_error(e)


@app.get("/api/incidents/admin/{incident_id}", response_model=IncidentResponse, tags=["Admin"])
def get_incident(incident_id: int, service: IncidentService = Depends(get_service)):
    """Get an incident by storage id."""
    try:
        return service.get_incident(incident_id).to_dict()
    except TriageError as e:
        raise _http_error(e)


@app.get(
    "/api/incidents/admin/{incident_id}/timeline",
    response_model=List[TimelineEntryResponse],
    tags=["Admin"],
)
def get_timeline(incident_id: int, service: IncidentService = Depends(get_service)):
    """Status history of an incident, oldest first."""
    try:
        return [entry.to_dict() for entry in service.get_timeline(incident_id)]
    except TriageError as e:
        raise _http_error(e)


@app.put("/api/incidents/admin/{incident_id}/status", response_model=IncidentResponse, tags=["Admin"])
def update_status(
    incident_id: int,
    request: StatusUpdateRequest,
    x_username: Optional[str] = Header(None, description="Acting staff username"),
    service: IncidentService = Depends(get_service),
):
    """
    Change an incident's status.

    Only ADMIN may set VERIFIED or FALSE. Verifying or rejecting an
    incident updates the reporter's reputation.
    """
    try:
        if not x_username:
            raise UnauthorizedError("X-Username header is required")
        incident = service.update_status(incident_id, request.status, request.notes, x_username)
        return incident.to_dict()
    except TriageError as e:
        raise _http_error(e)


# ============================================================================
# Dashboard Routes
# ============================================================================

@app.get("/api/dashboard/stats", response_model=DashboardStatsResponse, tags=["Dashboard"])
def dashboard_stats(service: IncidentService = Depends(get_service)):
    """Totals, accuracy rate, mean response time and the latest incidents."""
    return service.dashboard_stats().to_dict()


# ============================================================================
# Realtime
# ============================================================================

@app.websocket("/ws")
async def incident_feed(websocket: WebSocket):
    """Push every created or updated incident to the subscriber."""
    queue = await connection_manager.connect(websocket)
    sender = asyncio.create_task(connection_manager.stream(websocket, queue))
    try:
        while True:
            # Keep connection alive; client may send pings
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sender
        connection_manager.disconnect(websocket)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
