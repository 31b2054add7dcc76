"""
auth/tokens.py -- Session token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with JWT_SECRET_KEY and carry
       sub (user id), email, name, iss, aud, iat, exp and a random jti. The jti
       keeps two tokens issued for the same user in the same second distinct.

  Stateless: verification is pure -- signature, issuer, audience and lifetime
       are checked against Settings and nothing else. No store lookup, no
       revocation list. A token is valid until exp.

  Failure reporting: TokenVerifier.verify() returns None on any failure. The
       specific cause is logged for operators; the HTTP layer turns every None
       into the same 401 so callers learn nothing about why.

Layer rule: no imports from api/ or users/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.models import TokenClaims, User
from core.config import Settings

logger = logging.getLogger("userdesk.auth")

_ALGORITHM = "HS256"

# Every claim the verifier depends on must be present; jose rejects tokens
# missing any of these before we look at the payload.
_DECODE_OPTIONS = {
    "require_sub": True,
    "require_iat": True,
    "require_exp": True,
    "require_iss": True,
    "require_aud": True,
}


class TokenIssuer:
    """Builds signed, time-bounded session tokens."""

    def __init__(self, settings: Settings) -> None:
        self._secret = settings.jwt_secret_key
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self._lifetime = timedelta(minutes=settings.jwt_expiration_minutes)

    def issue(self, user: User, now: datetime | None = None) -> tuple[str, datetime]:
        """Encode a token for user and return (token, expires_at).

        Args:
            user: A persisted user (id must be set).
            now:  Issue instant; defaults to the current UTC time. Exposed so
                  callers can mint tokens with a known lifetime window.
        """
        if user.id is None:
            raise ValueError("Cannot issue a token for a user without an id")
        # JWT times are whole seconds; expires_at must equal the exp claim exactly.
        issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        expires_at = issued_at + self._lifetime
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "name": user.name,
            "iss": self._issuer,
            "aud": self._audience,
            "iat": issued_at,
            "exp": expires_at,
            "jti": secrets.token_hex(16),
        }
        token = jwt.encode(payload, self._secret, algorithm=_ALGORITHM)
        return token, expires_at


class TokenVerifier:
    """Validates inbound bearer tokens against the process configuration."""

    def __init__(self, settings: Settings) -> None:
        self._secret = settings.jwt_secret_key
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self._leeway = settings.jwt_leeway_seconds

    def verify(self, token: str) -> TokenClaims | None:
        """Decode and verify token. Returns the claims or None on any failure."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
                options={**_DECODE_OPTIONS, "leeway": self._leeway},
            )
        except ExpiredSignatureError:
            logger.info("Token rejected: expired")
            return None
        except JWTClaimsError as exc:
            logger.info("Token rejected: invalid claims (%s)", exc)
            return None
        except JWTError as exc:
            logger.info("Token rejected: %s", exc)
            return None

        now = datetime.now(timezone.utc).timestamp()
        if int(payload["iat"]) > now + self._leeway:
            logger.info("Token rejected: issued in the future")
            return None

        try:
            return TokenClaims(
                user_id=int(payload["sub"]),
                email=payload["email"],
                name=payload["name"],
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError):
            logger.info("Token rejected: malformed identity claims")
            return None
