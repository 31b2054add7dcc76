"""
API request and response models for UserDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire names are camelCase (expiresAt, createdAt). Fields declare the camelCase
alias and populate_by_name lets handlers build them with snake_case keywords.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from datetime import datetime
from typing import Annotated, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints

from auth.models import AuthSession, TokenClaims, User
from auth.passwords import MAX_PASSWORD_BYTES

# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------


def _valid_email(value: str) -> str:
    """Check the address with email-validator and return it exactly as submitted.

    pydantic's EmailStr would hand back the normalized form (lower-cased
    domain). Emails are stored and matched case-sensitively, so the submitted
    string is kept.
    """
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(f"Invalid email address: {exc}") from exc
    return value


def _within_bcrypt_limit(value: str) -> str:
    """Reject passwords bcrypt would truncate or refuse (> 72 UTF-8 bytes)."""
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


_Email = Annotated[str, Field(max_length=255), AfterValidator(_valid_email)]
_NewPassword = Annotated[str, Field(min_length=6, max_length=MAX_PASSWORD_BYTES), AfterValidator(_within_bcrypt_limit)]
# Passwords are never stripped; only display names are.
_DisplayName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/register and POST /api/create-user."""

    email: _Email
    password: _NewPassword
    name: _DisplayName


class LoginRequest(BaseModel):
    """Request body for POST /api/login.

    No minimum length on password: whatever was submitted is checked against
    the stored hash and fails with the generic credentials error.
    """

    email: _Email
    password: str = Field(min_length=1, max_length=255)


class UpdateUserRequest(BaseModel):
    """Request body for PUT /api/update-user/{id}. Omitted email/password are left unchanged."""

    name: _DisplayName
    email: Optional[_Email] = None
    password: Optional[_NewPassword] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AuthResponse(BaseModel):
    """Response for a successful register or login."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: str
    email: str
    name: str
    expires_at: datetime = Field(alias="expiresAt")

    @classmethod
    def from_session(cls, session: AuthSession) -> "AuthResponse":
        return cls(
            token=session.token,
            email=session.email,
            name=session.name,
            expires_at=session.expires_at,
        )


class UserResponse(BaseModel):
    """Public view of a user record. There is deliberately no hash field."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    email: str
    name: str
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, name=user.name, created_at=user.created_at)


class MeResponse(BaseModel):
    """Identity taken from the verified token, not from the store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    email: str
    name: str
    expires_at: datetime = Field(alias="expiresAt")

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "MeResponse":
        return cls(id=claims.user_id, email=claims.email, name=claims.name, expires_at=claims.expires_at)


class MessageResponse(BaseModel):
    """Single-message body used for errors and simple acknowledgements."""

    model_config = ConfigDict(frozen=True)

    message: str


class ValidationErrorResponse(BaseModel):
    """400 body for malformed requests: field path -> list of problems."""

    model_config = ConfigDict(frozen=True)

    message: str = "Request validation failed."
    errors: dict[str, list[str]]


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    message: str = "Server started"
    status: str = "healthy"
    timestamp: datetime
