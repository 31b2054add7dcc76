"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores, services and
routes do the work; these only own the shape.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A registered account.

    email is unique and compared case-sensitively, exactly as stored.
    password_hash is always bcrypt output; the plaintext never reaches this
    object. id is None until the store assigns one on insert.
    """

    email: str
    name: str
    password_hash: str
    id: int | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class AuthSession:
    """Result of a successful register or login.

    expires_at is the same instant embedded in the token's exp claim; it is
    returned separately so clients can display it without decoding the token.
    """

    token: str
    email: str
    name: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    """Verified identity carried by a bearer token.

    Built only by TokenVerifier after signature, issuer, audience and lifetime
    checks pass. Handlers trust it without a store round trip.
    """

    user_id: int
    email: str
    name: str
    issued_at: datetime
    expires_at: datetime
