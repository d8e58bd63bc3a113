"""
Admin authentication: session cookie handling, the require_auth gate and
the /api/auth routes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from app.config import settings
from app.logging_utils import log_event_data
from app.metrics import record_login_attempt
from app.schemas import (
    AuthStatusResponse,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    SuccessResponse,
    parse_json_body,
)
from app.sessions import SessionStore
from app.storage import get_db, get_user_by_username
from app.utils import burn_password_check, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

UNAUTHORIZED = "Unauthorized"
INVALID_CREDENTIALS = "Invalid credentials"


def get_session_store(request: Request) -> SessionStore:
    """Dependency returning the application's session table."""
    return request.app.state.sessions


def require_auth(
    request: Request,
    sessions: SessionStore = Depends(get_session_store),
) -> int:
    """
    Gate for admin routes.

    Returns:
        The authenticated user id

    Raises:
        HTTPException: 401 if the session cookie is missing, unknown or expired
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    user_id = sessions.resolve(token)
    if user_id is None:
        log_event_data(request, result="unauthorized")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED)
    log_event_data(request, user_id=user_id)
    return user_id


@router.post(
    "/login",
    response_model=SuccessResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Malformed login body"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def login(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
) -> SuccessResponse:
    """
    Exchange admin credentials for a session cookie.

    Unknown usernames and wrong passwords produce the same 401 body.
    """
    try:
        credentials = await parse_json_body(request, LoginRequest, "Invalid login data")
    except HTTPException:
        record_login_attempt("validation_error")
        log_event_data(request, result="validation_error")
        raise

    logger.info(f"Login attempt for user: {credentials.username}")
    user = get_user_by_username(db, credentials.username)

    if user is None:
        burn_password_check(credentials.password)
        authenticated = False
    else:
        authenticated = verify_password(credentials.password, user.password)

    if not authenticated:
        logger.warning(f"Login failed for user: {credentials.username}")
        record_login_attempt("invalid_credentials")
        log_event_data(request, result="invalid_credentials")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    # Logging in again replaces any session the client already holds
    sessions.destroy(request.cookies.get(settings.SESSION_COOKIE_NAME))
    token = sessions.create(user.id)

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
    )

    record_login_attempt("success")
    log_event_data(request, result="success", user_id=user.id)
    return SuccessResponse(success=True)


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}},
)
async def logout(
    request: Request,
    response: Response,
    user_id: int = Depends(require_auth),
    sessions: SessionStore = Depends(get_session_store),
) -> MessageResponse:
    """Destroy the caller's session and clear the cookie."""
    sessions.destroy(request.cookies.get(settings.SESSION_COOKIE_NAME))
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
    )
    logger.info(f"User {user_id} logged out")
    return MessageResponse(message="Logged out successfully")


@router.get(
    "/status",
    response_model=AuthStatusResponse,
    responses={401: {"model": ErrorResponse}},
)
async def auth_status(user_id: int = Depends(require_auth)) -> AuthStatusResponse:
    return AuthStatusResponse(authenticated=True)
