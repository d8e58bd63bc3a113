"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming JSON bodies
- Response models for API responses (camelCase on the wire)
- parse_json_body(), which turns a raw request body into a request model
  and reports the first invalid field as a 400
"""

import json
import logging
from typing import Mapping, Optional, Type, TypeVar

from fastapi import HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field, StrictStr, ValidationError, field_validator

logger = logging.getLogger(__name__)

RequestModel = TypeVar("RequestModel", bound=BaseModel)


# =============================================================================
# Pydantic Request Models
# =============================================================================

class ContactRequest(BaseModel):
    """
    Public contact form submission.

    Validates, in this order:
    - name: non-empty after trimming
    - email: syntactically valid address
    - message: at least 10 characters
    """
    name: StrictStr
    email: EmailStr
    message: StrictStr = Field(..., min_length=10)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Jane Doe",
                    "email": "jane@example.com",
                    "message": "I would like a quote for a new website."
                }
            ]
        }
    }


CONTACT_ERROR_MESSAGES = {
    "name": "Name is required",
    "email": "Please enter a valid email address",
    "message": "Message must be at least 10 characters",
}


class ContentUpdateRequest(BaseModel):
    value: StrictStr = Field(..., min_length=1, description="New text for the content slot")


class PageViewRequest(BaseModel):
    path: StrictStr = Field(..., min_length=1, description="Site path that was viewed, e.g. /about")


class LoginRequest(BaseModel):
    username: StrictStr = Field(..., min_length=1)
    password: StrictStr = Field(..., min_length=1)


# =============================================================================
# Pydantic Response Models
# =============================================================================

class ContactResponse(BaseModel):
    """A stored contact message."""
    id: int
    name: str
    email: str
    message: str
    is_read: bool = Field(..., serialization_alias="isRead")
    created_at: str = Field(..., serialization_alias="createdAt", description="ISO-8601 UTC")

    model_config = {"from_attributes": True}


class ContentResponse(BaseModel):
    """An editable content slot."""
    id: int
    section: str
    key: str
    value: str
    updated_at: str = Field(..., serialization_alias="updatedAt", description="ISO-8601 UTC")

    model_config = {"from_attributes": True}


class PageViewResponse(BaseModel):
    """View counter for one path."""
    id: int
    path: str
    count: int = Field(..., ge=0)
    updated_at: str = Field(..., serialization_alias="updatedAt", description="ISO-8601 UTC")

    model_config = {"from_attributes": True}


class SuccessResponse(BaseModel):
    success: bool = True


class MessageResponse(BaseModel):
    message: str


class AuthStatusResponse(BaseModel):
    authenticated: bool = True


class ErrorResponse(BaseModel):
    """Response model for error responses."""
    detail: str = Field(..., description="Error description")


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")


# =============================================================================
# Request Body Parsing
# =============================================================================

async def parse_json_body(
    request: Request,
    model: Type[RequestModel],
    default_error: str,
    field_errors: Optional[Mapping[str, str]] = None,
) -> RequestModel:
    """
    Parse and validate a JSON request body.

    Validation errors are reported as 400 with a single human-readable
    message: the message for the first failing field (declaration order)
    from field_errors, or default_error.

    Raises:
        HTTPException: 400 on invalid JSON or failed validation
    """
    raw_body = await request.body()

    try:
        body = json.loads(raw_body) if raw_body else None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Invalid JSON body: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=default_error)

    try:
        return model.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        field = first["loc"][0] if first["loc"] else None
        logger.warning(f"Validation error on {model.__name__}.{field}: {first['msg']}")
        detail = (field_errors or {}).get(field, default_error)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
