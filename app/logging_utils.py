import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from pythonjsonlogger import jsonlogger

from app.metrics import normalize_path, record_http_request


# Context variable to store request_id for the current request
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_ctx.get()


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter to ensure ISO-8601 timestamps and request_id."""

    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        if not log_record.get('ts'):
            log_record['ts'] = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        log_record['level'] = record.levelname

        if 'request_id' not in log_record:
            req_id = request_id_ctx.get()
            if req_id:
                log_record['request_id'] = req_id


# Library loggers that are chatty below WARNING and carry SQL parameters
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "multipart")


def setup_logging(log_level: str = "INFO"):
    """
    Route the app, uvicorn and library loggers to one JSON stdout handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    root = logging.getLogger()
    root.setLevel(log_level.upper())

    json_handler = logging.StreamHandler(sys.stdout)
    json_handler.setFormatter(CustomJsonFormatter('%(ts)s %(level)s %(name)s %(message)s'))
    root.handlers = [json_handler]

    for name in ("uvicorn", "uvicorn.error"):
        server_logger = logging.getLogger(name)
        server_logger.handlers = [json_handler]
        server_logger.propagate = False

    # RequestLoggingMiddleware writes the access log
    logging.getLogger("uvicorn.access").disabled = True

    # SQL statement logs would echo contact data and password hashes
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


def _log_level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One structured access-log line per request.

    Fields: request_id (also returned as X-Request-ID), method, path, route
    (numeric ids collapsed to :id), status, latency_ms, client_ip and
    authenticated. Admin routes add user_id once the session gate passes;
    handlers add their own fields (login result, contact_id, page_path)
    through log_event_data().

    Query strings are never logged.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        start_time = time.perf_counter()

        try:
            try:
                response = await call_next(request)
            except Exception:
                self._log(request, status_code=500, start_time=start_time, exc_info=True)
                raise

            response.headers["X-Request-ID"] = request_id
            self._log(request, status_code=response.status_code, start_time=start_time)
            return response
        finally:
            request_id_ctx.reset(token)

    def _log(self, request: Request, status_code: int, start_time: float, exc_info: bool = False) -> None:
        latency_seconds = time.perf_counter() - start_time
        path = request.url.path

        if path != "/metrics":
            record_http_request(
                method=request.method,
                path=path,
                status=status_code,
                latency_seconds=latency_seconds,
            )

        event_data = getattr(request.state, "event_log_data", {})
        log_data = {
            "request_id": request.state.request_id,
            "method": request.method,
            "path": path,
            "route": normalize_path(path),
            "status": status_code,
            "latency_ms": round(latency_seconds * 1000, 2),
            "client_ip": request.client.host if request.client else None,
            "authenticated": "user_id" in event_data,
        }
        log_data.update(event_data)

        message = "Request failed" if exc_info else "Request completed"
        logging.getLogger("app.requests").log(
            _log_level_for(status_code), message, extra=log_data, exc_info=exc_info
        )


def log_event_data(request: Request, **fields) -> None:
    """
    Attach operation-specific logging data to the request state.
    This data will be included in the request log by the middleware.

    None values are dropped. Never pass passwords or session tokens.

    Args:
        request: FastAPI request object
        **fields: e.g. result="invalid_credentials", contact_id=3
    """
    event_data = getattr(request.state, "event_log_data", {})
    event_data.update({k: v for k, v in fields.items() if v is not None})
    request.state.event_log_data = event_data
