from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile, status

from app.core.deps import AuthorizationService
from app.core.enum import Action, MediaCategory, Role
from app.core.policy import ensure_allowed
from app.libs.uploads import read_upload
from app.schemas.users import UserCreate, UserUpdate
from app.services.user import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    schema: UserCreate = Body(...),
    user_service: UserService = Depends(UserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await user_service.create_user_async(schema, actor)


@router.get("")
async def list_users(
    role: Optional[Role] = Query(None),
    user_service: UserService = Depends(UserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await user_service.list_users_async(actor, role)


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    user_service: UserService = Depends(UserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await user_service.get_user_async(user_id, actor)


@router.patch("/{user_id}")
async def update_user(
    user_id: int,
    schema: UserUpdate = Body(...),
    user_service: UserService = Depends(UserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await user_service.update_user_async(user_id, schema, actor)


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    user_service: UserService = Depends(UserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await user_service.delete_user_async(user_id, actor)


# ===== AVATAR =====
@router.post("/{user_id}/avatar")
async def upload_avatar(
    user_id: int,
    file: UploadFile = File(...),
    user_service: UserService = Depends(UserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    ensure_allowed(actor, Action.AVATAR_UPDATE, user_id, "You can only change your own avatar")
    upload = await read_upload(file, MediaCategory.IMAGE)
    return await user_service.set_avatar_async(user_id, upload, actor)


@router.get("/{user_id}/avatar")
async def get_avatar(
    user_id: int,
    user_service: UserService = Depends(UserService),
):
    return await user_service.get_avatar_url_async(user_id)
