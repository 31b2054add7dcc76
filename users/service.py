"""
users/service.py -- CRUD operations on user records.

Thin orchestration over UserStore. Password hashing and the email uniqueness
rules are the same ones registration uses: create_user() delegates to
auth.service.create_account(), and update_user() re-checks uniqueness only
when the email actually changes.

Password hashes never leave this layer in a response; routes map User to
UserResponse, which has no hash field.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.errors import EmailAlreadyExistsError
from auth.models import User
from auth.passwords import PasswordHasher
from auth.service import create_account
from auth.store import UserStore

logger = logging.getLogger("userdesk.users")


class UserService:
    def __init__(self, store: UserStore, hasher: PasswordHasher) -> None:
        self._store = store
        self._hasher = hasher

    def list_users(self) -> list[User]:
        return self._store.list_users()

    def get_user(self, user_id: int) -> User | None:
        return self._store.get_by_id(user_id)

    def create_user(self, email: str, password: str, name: str) -> User:
        """Create a user without opening a session. Raises EmailAlreadyExistsError."""
        user = create_account(self._store, self._hasher, email, password, name)
        logger.info("User created (user_id=%d)", user.id)
        return user

    def update_user(
        self,
        user_id: int,
        name: str,
        email: str | None = None,
        password: str | None = None,
    ) -> User | None:
        """Replace name, and optionally email and password.

        Returns the updated User, or None if user_id does not exist.
        Raises EmailAlreadyExistsError if email belongs to another user.
        """
        user = self._store.get_by_id(user_id)
        if user is None:
            return None

        updates: dict = {"name": name}
        if email and email != user.email:
            if self._store.get_by_email(email) is not None:
                raise EmailAlreadyExistsError()
            updates["email"] = email
        if password:
            updates["password_hash"] = self._hasher.hash(password)

        try:
            updated = self._store.update_user(user_id, **updates)
        except IntegrityError as exc:
            raise EmailAlreadyExistsError() from exc
        if not updated:
            # Deleted between the read and the write.
            return None
        logger.info("User updated (user_id=%d, fields=%s)", user_id, ",".join(sorted(updates)))
        return self._store.get_by_id(user_id)

    def delete_user(self, user_id: int) -> bool:
        deleted = self._store.delete_user(user_id)
        if deleted:
            logger.info("User deleted (user_id=%d)", user_id)
        return deleted
