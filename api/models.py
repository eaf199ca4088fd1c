"""
API request and response models for Mode REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
The auth actions own their own result shape (auth.actions.ActionResponse);
the models here cover the envelopes the API adds around it.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from auth.models import User


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses outside the auth actions."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    created_at: Optional[str] = None
    last_login: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "MeResponse":
        return cls(
            id=user.id,
            email=user.email,
            created_at=user.created_at,
            last_login=user.last_login,
        )
