# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter

from portal.api.deps import AdminDep, AuthDep, DirectoryDep
from portal.exceptions import NotFoundError
from portal.schemas.user import UpsertUserRequest, UserListResponse, UserResponse
from portal.services.directory import UserInfo

users_router = APIRouter(prefix="/users", tags=["users"])


def _to_response(user: UserInfo) -> UserResponse:
    return UserResponse(id=user.id, email=user.email, role=user.role, display_name=user.display_name)


@users_router.put("/{user_id}", response_model=UserResponse)
async def upsert_user(
    user_id: uuid.UUID,
    payload: UpsertUserRequest,
    directory: DirectoryDep,
    auth: AdminDep,
) -> UserResponse:
    """Create or update a user in the stub directory (admin only)."""
    user = UserInfo(id=user_id, email=payload.email, role=payload.role, display_name=payload.display_name)
    directory.seed(user)  # ty: ignore[unresolved-attribute]
    return _to_response(user)


@users_router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: uuid.UUID,
    directory: DirectoryDep,
    auth: AuthDep,
) -> UserResponse:
    """Get a user from the directory."""
    user = await directory.resolve(user_id)
    if user is None:
        raise NotFoundError("User not found", context={"user_id": user_id})
    return _to_response(user)


@users_router.get("", response_model=UserListResponse)
async def list_users(
    directory: DirectoryDep,
    auth: AuthDep,
) -> UserListResponse:
    """List directory users, e.g. to build an approval queue."""
    users = await directory.list_users()
    items = [_to_response(u) for u in users]
    return UserListResponse(items=items, total=len(items))
