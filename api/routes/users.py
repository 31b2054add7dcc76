"""
api/routes/users.py -- User record CRUD endpoints.

Routes:
  GET    /api/get-all-user          -- list users
  GET    /api/get-user/{user_id}    -- one user
  POST   /api/create-user           -- create user (no session issued)
  PUT    /api/update-user/{user_id} -- replace name, optionally email/password
  DELETE /api/delete-user/{user_id} -- delete user

Auth policy (enforced by the app-wide auth.gate.AuthorizationGate, keyed on route name):
  list_users and create_user are public unless PROTECT_LIST_USERS /
  PROTECT_CREATE_USER are set; get_user, update_user and delete_user always
  require a bearer token.

create_user and update_user hash passwords, so they are async and run the
service call through auth.passwords.run_hashing(). The rest are sync def and
use the shared threadpool.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from api.models import MessageResponse, RegisterRequest, UpdateUserRequest, UserResponse
from auth.errors import EmailAlreadyExistsError
from auth.passwords import run_hashing
from users.service import UserService

router = APIRouter()


def _service(request: Request) -> UserService:
    return request.app.state.user_service


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="User not found")


@router.get("/get-all-user", response_model=list[UserResponse], name="list_users")
def list_users(request: Request) -> list[UserResponse]:
    return [UserResponse.from_user(u) for u in _service(request).list_users()]


@router.get("/get-user/{user_id}", response_model=UserResponse, name="get_user")
def get_user(request: Request, user_id: int) -> UserResponse:
    user = _service(request).get_user(user_id)
    if user is None:
        raise _not_found()
    return UserResponse.from_user(user)


@router.post("/create-user", response_model=UserResponse, status_code=201, name="create_user")
async def create_user(request: Request, body: RegisterRequest) -> UserResponse:
    service = _service(request)
    try:
        user = await run_hashing(
            request.app.state.hash_limiter, service.create_user, body.email, body.password, body.name
        )
    except EmailAlreadyExistsError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    return UserResponse.from_user(user)


@router.put("/update-user/{user_id}", response_model=UserResponse, name="update_user")
async def update_user(request: Request, user_id: int, body: UpdateUserRequest) -> UserResponse:
    """Update a user. 404 if missing, 400 if the new email belongs to someone else."""
    service = _service(request)
    try:
        user = await run_hashing(
            request.app.state.hash_limiter, service.update_user, user_id, body.name, body.email, body.password
        )
    except EmailAlreadyExistsError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    if user is None:
        raise _not_found()
    return UserResponse.from_user(user)


@router.delete("/delete-user/{user_id}", response_model=MessageResponse, name="delete_user")
def delete_user(request: Request, user_id: int) -> MessageResponse:
    if not _service(request).delete_user(user_id):
        raise _not_found()
    return MessageResponse(message="User deleted successfully")
