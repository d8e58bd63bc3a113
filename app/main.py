import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response, Request, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.auth import require_auth, router as auth_router
from app.config import settings
from app.logging_utils import setup_logging, RequestLoggingMiddleware, get_request_id, log_event_data
from app.metrics import (
    get_metrics,
    get_metrics_content_type,
    record_contact_submission,
    record_page_view,
)
from app.sessions import SessionStore
from app.storage import (
    StoreError,
    check_db_health,
    create_contact,
    delete_contact,
    get_contacts,
    get_content,
    get_db,
    get_page_views,
    init_db,
    mark_contact_read,
    record_page_view as store_page_view,
    update_content,
)
from app.schemas import (
    CONTACT_ERROR_MESSAGES,
    ContactRequest,
    ContactResponse,
    ContentResponse,
    ContentUpdateRequest,
    ErrorResponse,
    HealthResponse,
    PageViewRequest,
    PageViewResponse,
    SuccessResponse,
    parse_json_body,
)


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: create tables, seed admin/content, set up the session table
    - Shutdown: log how many sessions are dropped
    """
    init_db()
    app.state.sessions = SessionStore(ttl_seconds=settings.SESSION_TTL_SECONDS)
    yield
    logger.info(f"Shutting down with {len(app.state.sessions)} live sessions")


app = FastAPI(
    title="Site CMS API",
    description="Contact form, editable site content and page view statistics for the marketing site",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.include_router(auth_router)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """
    Hide store diagnostics from clients; the cause is already logged.
    The request id is returned so a report can be matched to the log line.
    """
    request_id = get_request_id()
    logger.error(f"Store failure during {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "request_id": request_id},
    )


# Largest value a 64-bit INTEGER primary key can hold
MAX_RECORD_ID = 2**63 - 1


def parse_record_id(raw_id: str, invalid_detail: str, not_found_detail: str) -> int:
    """
    Parse a positive integer id from a path segment.

    Raises:
        HTTPException: 400 with invalid_detail if raw_id is not a positive
            integer, 404 with not_found_detail if it is beyond the range any
            stored row can have
    """
    if not (raw_id.isascii() and raw_id.isdigit()) or int(raw_id) < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=invalid_detail)
    record_id = int(raw_id)
    if record_id > MAX_RECORD_ID:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found_detail)
    return record_id


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness check - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness check - returns 200 only if the DB is reachable and every
    table exists, otherwise 503 (Service Unavailable).
    """
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Contact Routes
# =============================================================================

@app.post(
    "/api/contact",
    response_model=ContactResponse,
    responses={400: {"model": ErrorResponse, "description": "Validation error"}},
)
async def submit_contact(
    request: Request,
    db: Session = Depends(get_db),
) -> ContactResponse:
    """
    Public contact form endpoint.

    Validates name, email and message (in that order) and stores the
    message as unread.
    """
    try:
        contact_data = await parse_json_body(
            request,
            ContactRequest,
            default_error="Invalid contact data",
            field_errors=CONTACT_ERROR_MESSAGES,
        )
    except HTTPException:
        record_contact_submission("validation_error")
        log_event_data(request, result="validation_error")
        raise

    contact = create_contact(
        db=db,
        name=contact_data.name,
        email=str(contact_data.email),
        message=contact_data.message,
    )

    record_contact_submission("created")
    log_event_data(request, result="created", contact_id=contact.id)
    return ContactResponse.model_validate(contact)


@app.get(
    "/api/admin/contacts",
    response_model=list[ContactResponse],
    responses={401: {"model": ErrorResponse}},
)
async def list_contacts(
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
) -> list[ContactResponse]:
    """All contact messages, newest first."""
    contacts = get_contacts(db)
    logger.info(f"GET /api/admin/contacts: returned {len(contacts)} messages")
    return [ContactResponse.model_validate(c) for c in contacts]


@app.post(
    "/api/admin/contacts/{contact_id}/read",
    response_model=ContactResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid contact ID"},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse, "description": "Contact not found"},
    },
)
async def mark_read(
    contact_id: str,
    request: Request,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
) -> ContactResponse:
    """Mark a contact message as read. Repeating the call is harmless."""
    record_id = parse_record_id(contact_id, "Invalid contact ID", "Contact not found")
    log_event_data(request, contact_id=record_id)

    contact = mark_contact_read(db, record_id)
    if contact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")

    return ContactResponse.model_validate(contact)


@app.delete(
    "/api/admin/contacts/{contact_id}",
    response_model=SuccessResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid contact ID"},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse, "description": "Contact not found"},
    },
)
async def remove_contact(
    contact_id: str,
    request: Request,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    """Permanently delete a contact message."""
    record_id = parse_record_id(contact_id, "Invalid contact ID", "Contact not found")
    log_event_data(request, contact_id=record_id)

    if not delete_contact(db, record_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")

    return SuccessResponse(success=True)


# =============================================================================
# Content Routes
# =============================================================================

@app.get(
    "/api/admin/content",
    response_model=list[ContentResponse],
    responses={401: {"model": ErrorResponse}},
)
async def list_content(
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
) -> list[ContentResponse]:
    """All editable content entries ordered by section, then key."""
    return [ContentResponse.model_validate(entry) for entry in get_content(db)]


@app.patch(
    "/api/admin/content/{content_id}",
    response_model=ContentResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid content ID or value"},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse, "description": "Content not found"},
    },
)
async def edit_content(
    content_id: str,
    request: Request,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
) -> ContentResponse:
    """Replace the text of one content entry."""
    record_id = parse_record_id(content_id, "Invalid content ID", "Content not found")
    payload = await parse_json_body(request, ContentUpdateRequest, "Invalid value")
    log_event_data(request, content_id=record_id)

    entry = update_content(db, record_id, payload.value)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Content not found")

    return ContentResponse.model_validate(entry)


# =============================================================================
# Page View Routes
# =============================================================================

@app.post(
    "/api/page-view",
    response_model=PageViewResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid path"}},
)
async def page_view(
    request: Request,
    db: Session = Depends(get_db),
) -> PageViewResponse:
    """Count one view of a site path. Public."""
    view = await parse_json_body(request, PageViewRequest, "Invalid path")

    counter = store_page_view(db, view.path)

    record_page_view()
    log_event_data(request, page_path=view.path)
    return PageViewResponse.model_validate(counter)


@app.get(
    "/api/admin/statistics",
    response_model=list[PageViewResponse],
    responses={401: {"model": ErrorResponse}},
)
async def statistics(
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
) -> list[PageViewResponse]:
    """Page view counters, most viewed first."""
    return [PageViewResponse.model_validate(counter) for counter in get_page_views(db)]


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
