# app/services/user.py
from typing import Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enum import Action, MediaCategory, MediaVisibility, Role
from app.core.exceptions import ConflictError, NotFoundError
from app.core.policy import Actor, ensure_allowed
from app.core.security import SecurityService
from app.db.models.database import CourseReview, Enrollment, User
from app.db.session import get_session
from app.libs.uploads import UploadPayload
from app.schemas.users import UserCreate, UserUpdate
from app.services.enrollment import EnrollmentService
from app.services.shares.media import MediaReferenceManager
from app.services.shares.presenters import course_summary, enrollment_summary, user_profile


class UserService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        security: SecurityService = Depends(SecurityService),
        media: MediaReferenceManager = Depends(MediaReferenceManager),
        enrollments: EnrollmentService = Depends(EnrollmentService),
    ):
        self.db = db
        self.security = security
        self.media = media
        self.enrollments = enrollments

    async def _ensure_email_free(self, email: str, exclude_id: Optional[int] = None):
        stmt = select(User.id).where(User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if await self.db.scalar(stmt.limit(1)):
            raise ConflictError("Email already registered")

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Email already registered")
        except Exception:
            await self.db.rollback()
            raise

    async def _detail(self, user: User) -> dict:
        data = await user_profile(user, self.media)
        data["enrollments"] = [
            {**enrollment_summary(e), "course": await course_summary(e.course, self.media)}
            for e in user.enrollments
        ]
        return data

    # ======================================================
    # ➕ Create
    # ======================================================
    async def _create(self, schema: UserCreate, role: Role) -> User:
        await self._ensure_email_free(schema.email)
        user = User(
            email=schema.email,
            password=await self.security.hash_password(schema.password),
            first_name=schema.first_name,
            last_name=schema.last_name,
            bio=schema.bio,
            role=role,
        )
        self.db.add(user)
        await self._commit()
        logger.info(f"👤 User {user.id} created with role {role.value}")
        return user

    async def register_async(self, schema: UserCreate) -> dict:
        """Self-service sign-up. The requested role is ignored."""
        user = await self._create(schema, Role.STUDENT)
        return await user_profile(user, self.media)

    async def create_user_async(self, schema: UserCreate, actor: Actor) -> dict:
        ensure_allowed(actor, Action.USER_CREATE, message="Only admins can create users")
        user = await self._create(schema, schema.role or Role.STUDENT)
        return await user_profile(user, self.media)

    # ======================================================
    # 📋 Read
    # ======================================================
    async def list_users_async(self, actor: Actor, role: Optional[Role] = None) -> list[dict]:
        ensure_allowed(actor, Action.USER_LIST, message="Only admins can list users")

        stmt = select(User)
        if role is not None:
            stmt = stmt.where(User.role == role)
        users = await self.db.scalars(stmt.order_by(User.created_at.desc(), User.id.desc()))
        return [await user_profile(u, self.media) for u in users]

    async def get_user_async(self, user_id: int, actor: Actor) -> dict:
        user = await self.db.scalar(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.enrollments).selectinload(Enrollment.course))
            .execution_options(populate_existing=True)
        )
        if not user:
            raise NotFoundError("User not found")
        ensure_allowed(actor, Action.PROFILE_VIEW, user.id, "You can only view your own profile")
        return await self._detail(user)

    # ======================================================
    # ✏️ Update / delete
    # ======================================================
    async def update_user_async(self, user_id: int, schema: UserUpdate, actor: Actor) -> dict:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        ensure_allowed(actor, Action.PROFILE_UPDATE, user.id, "You can only update your own profile")

        changes = schema.model_dump(exclude_none=True)
        if "role" in changes and changes["role"] != user.role:
            ensure_allowed(actor, Action.USER_ROLE_CHANGE, message="Only admins can change roles")
        if "email" in changes and changes["email"] != user.email:
            await self._ensure_email_free(changes["email"], user.id)
        if "password" in changes:
            changes["password"] = await self.security.hash_password(changes["password"])

        for field, value in changes.items():
            setattr(user, field, value)
        await self._commit()

        logger.info(f"✏️ User {user_id} updated")
        return await user_profile(user, self.media)

    async def delete_user_async(self, user_id: int, actor: Actor) -> dict:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        ensure_allowed(actor, Action.PROFILE_DELETE, user.id, "You can only delete your own account")

        avatar = user.avatar
        try:
            # 1️⃣ ledger rows first, then reviews, then the user itself
            removed = await self.enrollments.delete_by_student_async(user.id)
            await self.db.execute(delete(CourseReview).where(CourseReview.student_id == user.id))
            await self.db.execute(delete(User).where(User.id == user.id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"🗑️ User {user_id} deleted with {removed} enrollments")
        # 2️⃣ storage cleanup never blocks the deletion
        await self.media.delete(avatar)
        return {"message": "User deleted successfully", "id": user_id}

    # ======================================================
    # 🖼️ Avatar
    # ======================================================
    async def set_avatar_async(self, user_id: int, upload: UploadPayload, actor: Actor) -> dict:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        ensure_allowed(actor, Action.AVATAR_UPDATE, user.id, "You can only change your own avatar")

        async def swap(new_key: str):
            user.avatar = new_key
            try:
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        await self.media.replace(
            user.avatar,
            upload.content,
            MediaCategory.IMAGE,
            MediaVisibility.PUBLIC,
            swap,
            filename=upload.filename,
            content_type=upload.content_type,
        )
        return await user_profile(user, self.media)

    async def get_avatar_url_async(self, user_id: int) -> dict:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        if not user.avatar:
            raise NotFoundError("User has no avatar")
        return {"user_id": user.id, "url": await self.media.resolve_url(user.avatar)}
