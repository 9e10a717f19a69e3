from fastapi import Depends, Response
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthenticationError
from app.core.security import SecurityService
from app.core.settings import settings
from app.db.models.database import User
from app.db.session import get_session
from app.schemas.users import LoginUser, UserCreate
from app.services.shares.media import MediaReferenceManager
from app.services.shares.presenters import user_profile
from app.services.user import UserService


class AuthService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        security: SecurityService = Depends(SecurityService),
        media: MediaReferenceManager = Depends(MediaReferenceManager),
        users: UserService = Depends(UserService),
    ):
        self.db = db
        self.security = security
        self.media = media
        self.users = users

    async def login_async(self, schema: LoginUser, res: Response) -> dict:
        user: User | None = await self.db.scalar(select(User).where(User.email == schema.email))

        # 1️⃣ same answer for unknown email and wrong password
        if not user or not await self.security.verify_password(schema.password, user.password):
            logger.info(f"🔒 Failed login for {schema.email}")
            raise AuthenticationError("Invalid email or password")

        # 2️⃣ token in the body and in an http-only cookie
        token = await self.security.create_access_token(str(user.id), user.role.value)
        res.set_cookie(
            key="access_token",
            value=token,
            httponly=True,
            secure=False,
            samesite="lax",
            max_age=int(settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60),
            path="/",
        )
        logger.info(f"🔓 User {user.id} logged in")
        return {
            "access_token": token,
            "token_type": "bearer",
            "user": await user_profile(user, self.media),
        }

    async def register_async(self, schema: UserCreate) -> dict:
        return await self.users.register_async(schema)

    async def logout_async(self, res: Response) -> dict:
        res.delete_cookie("access_token", path="/")
        return {"message": "Logged out"}

    async def me_async(self, user: User) -> dict:
        return await user_profile(user, self.media)
