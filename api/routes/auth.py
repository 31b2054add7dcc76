"""
api/routes/auth.py -- Registration, login and current-identity endpoints.

Routes:
  POST /api/register   -- create account; returns a session token
  POST /api/login      -- password login; returns a session token
  GET  /api/me         -- identity from the bearer token (requires auth)

Security:
  [C1] AuthService.login() provides timing equalization -- use it, never inline
       get_by_email() + verify().
  [M5] Cache-Control: no-store on every response that carries a token.
  The 401 body for login is identical for an unknown email and a wrong
  password. Do not make it more specific.

register and login are async: the service call (store lookups plus bcrypt)
runs through auth.passwords.run_hashing(), on the hashing limiter's worker
threads rather than the shared threadpool. me does no blocking work.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import AuthResponse, LoginRequest, MeResponse, RegisterRequest
from auth.dependencies import get_current_claims
from auth.errors import EmailAlreadyExistsError, InvalidCredentialsError
from auth.models import TokenClaims
from auth.passwords import run_hashing
from auth.service import AuthService

# Auth policy (enforced by the app-wide auth.gate.AuthorizationGate, keyed on route name):
# - POST /api/register: public
# - POST /api/login:    public
# - GET  /api/me:       requires auth
router = APIRouter()

_NO_STORE = {"Cache-Control": "no-store"}


@router.post("/register", response_model=AuthResponse, name="register")
async def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Create an account and return a session for it.

    400 with "Email already exists" when the email is taken, including when a
    concurrent request registered it first.
    """
    service: AuthService = request.app.state.auth_service
    try:
        session = await run_hashing(
            request.app.state.hash_limiter, service.register, body.email, body.password, body.name
        )
    except EmailAlreadyExistsError as exc:
        raise HTTPException(status_code=400, detail=exc.message, headers=_NO_STORE) from exc
    response.headers.update(_NO_STORE)  # [M5]
    return AuthResponse.from_session(session)


@router.post("/login", response_model=AuthResponse, name="login")
async def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password; return a session token."""
    service: AuthService = request.app.state.auth_service
    try:
        session = await run_hashing(request.app.state.hash_limiter, service.login, body.email, body.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=401, detail=exc.message, headers=_NO_STORE) from exc
    response.headers.update(_NO_STORE)  # [M5]
    return AuthResponse.from_session(session)


@router.get("/me", response_model=MeResponse, name="me")
def me(claims: TokenClaims = Depends(get_current_claims)) -> MeResponse:
    """Return the identity carried by the caller's token. No store lookup."""
    return MeResponse.from_claims(claims)
