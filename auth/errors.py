"""
auth/errors.py -- Business-rule rejections raised by the auth and user services.

The messages are part of the HTTP contract and deliberately vague:
InvalidCredentialsError covers both "no such email" and "wrong password" so
responses cannot be used to enumerate accounts. Do not split it.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for rejections that map to a fixed client-facing message."""

    message = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class EmailAlreadyExistsError(AuthError):
    message = "Email already exists"


class InvalidCredentialsError(AuthError):
    message = "Invalid email or password"
