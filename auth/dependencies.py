"""
auth/dependencies.py -- FastAPI Depends() helpers for authenticated handlers.

The AuthorizationGate dependency (auth/gate.py) has already verified the
bearer token by the time a protected handler runs. These helpers only read
what the gate left on request.state; they never decode tokens or touch the
store themselves.

Layer rule: no imports from api/ or users/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.gate import unauthorized_error
from auth.models import TokenClaims


def get_current_claims(request: Request) -> TokenClaims:
    """Return the verified claims for this request. Raises HTTP 401 if absent.

    Absent claims mean the route was not marked protected in the policy
    table, so the gate never ran. Failing closed here keeps a handler that
    needs an identity from silently running anonymously.

    Use as a FastAPI dependency:
        @router.get("/me")
        def route(claims: TokenClaims = Depends(get_current_claims)): ...
    """
    claims = getattr(request.state, "claims", None)
    if claims is None:
        raise unauthorized_error()
    return claims
