"""
auth/service.py -- Registration and login orchestration.

Both flows run: lookup -> hash/verify -> token issue -> session. Either a
session is returned or an AuthError is raised; nothing in between is visible
to the caller.

Anti-enumeration [C1]:
  login() always runs one bcrypt verification, against the dummy hash when
  the email is unknown, and raises the same InvalidCredentialsError for
  "unknown email" and "wrong password". Keep both properties when editing.

Plaintext passwords are passed straight to the hasher and never logged or
stored. Log lines carry user ids only.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from auth.errors import EmailAlreadyExistsError, InvalidCredentialsError
from auth.models import AuthSession, User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("userdesk.auth")


def create_account(store: UserStore, hasher: PasswordHasher, email: str, password: str, name: str) -> User:
    """Hash password and insert a new user. Returns the stored User with its id.

    The get_by_email() check is a fast path only. The UNIQUE(email)
    constraint is what guarantees a single record when two requests race;
    the losing insert's IntegrityError is reported as EmailAlreadyExistsError.
    """
    if store.get_by_email(email) is not None:
        raise EmailAlreadyExistsError()

    user = User(
        email=email,
        name=name,
        password_hash=hasher.hash(password),
        created_at=datetime.now(timezone.utc),
    )
    try:
        user.id = store.create_user(user)
    except IntegrityError as exc:
        raise EmailAlreadyExistsError() from exc
    return user


class AuthService:
    """Issues sessions for new and returning users."""

    def __init__(self, store: UserStore, hasher: PasswordHasher, issuer: TokenIssuer) -> None:
        self._store = store
        self._hasher = hasher
        self._issuer = issuer

    def register(self, email: str, password: str, name: str) -> AuthSession:
        """Create an account and open a session for it.

        Raises EmailAlreadyExistsError if the email is taken. In that case no
        record is created and no token is issued.
        """
        user = create_account(self._store, self._hasher, email, password, name)
        logger.info("User registered (user_id=%d)", user.id)
        return self._open_session(user)

    def login(self, email: str, password: str) -> AuthSession:
        """Verify credentials and open a session.

        Raises InvalidCredentialsError for an unknown email or a wrong
        password -- the two cases are indistinguishable to the caller.
        """
        user = self._store.get_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return early before running bcrypt [C1]
            self._hasher.verify(password, self._hasher.dummy_hash)
            logger.info("Login rejected")
            raise InvalidCredentialsError()
        if not self._hasher.verify(password, user.password_hash):
            logger.info("Login rejected")
            raise InvalidCredentialsError()
        logger.info("User logged in (user_id=%d)", user.id)
        return self._open_session(user)

    def _open_session(self, user: User) -> AuthSession:
        token, expires_at = self._issuer.issue(user)
        return AuthSession(token=token, email=user.email, name=user.name, expires_at=expires_at)
