"""
auth/gate.py -- Authorization gate: one policy table, one app-wide dependency.

Every routed request passes through the gate before its handler runs. The
matched route's name is looked up in the policy table; protected routes need
a valid "Authorization: Bearer <token>" header or the request ends here with
401. Route names missing from the table are protected (fail closed).

The gate does no store lookups. On success it puts the verified TokenClaims
on request.state.claims, where auth.dependencies.get_current_claims picks
them up.

Every rejection is the same 401 body. Why a token failed is logged by
TokenVerifier, never returned.

FastAPI's own docs routes (/docs, /redoc, /openapi.json) are plain Starlette
routes without dependencies, so the gate never sees them. They only exist
when DEBUG=true.

Layer rule: no imports from api/ or users/. Imports from fastapi are allowed
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from fastapi import HTTPException, Request

from core.config import Settings

logger = logging.getLogger("userdesk.auth")

PUBLIC = False
PROTECTED = True


def build_route_policy(settings: Settings) -> dict[str, bool]:
    """Return the route-name -> requires-auth table for this configuration.

    list_users and create_user default to public. Set PROTECT_LIST_USERS /
    PROTECT_CREATE_USER to put them behind the gate.
    """
    return {
        "health": PUBLIC,
        "register": PUBLIC,
        "login": PUBLIC,
        "me": PROTECTED,
        "list_users": settings.protect_list_users,
        "create_user": settings.protect_create_user,
        "get_user": PROTECTED,
        "update_user": PROTECTED,
        "delete_user": PROTECTED,
    }


def unauthorized_error() -> HTTPException:
    """The single 401 every rejection uses. The body carries no reason."""
    return HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})


def bearer_token(header: str) -> str | None:
    """Extract the token from an Authorization header value, or None."""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


class AuthorizationGate:
    """App-wide dependency enforcing the route policy table.

    Register with FastAPI(dependencies=[Depends(AuthorizationGate(policy))]).
    It runs after routing, so request.scope["route"] is the matched route no
    matter how deeply it was mounted through include_router(). Requests that
    match no route never reach it and the router answers 404/405.

    The TokenVerifier is read from app.state.token_verifier at request time so
    the lifespan (or a test) decides which verifier is live.
    """

    def __init__(self, policy: Mapping[str, bool]) -> None:
        self._policy = dict(policy)

    def requires_auth(self, route_name: str) -> bool:
        return self._policy.get(route_name, PROTECTED)

    async def __call__(self, request: Request) -> None:
        route = request.scope.get("route")
        if not self.requires_auth(getattr(route, "name", None) or ""):
            return

        token = bearer_token(request.headers.get("Authorization", ""))
        if token is None:
            logger.info("Rejected %s %s: no bearer token", request.method, request.url.path)
            raise unauthorized_error()

        claims = request.app.state.token_verifier.verify(token)
        if claims is None:
            logger.info("Rejected %s %s: token failed verification", request.method, request.url.path)
            raise unauthorized_error()

        request.state.claims = claims
