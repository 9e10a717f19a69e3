# app/core/deps.py
from typing import Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import get_request
from app.core.exceptions import AuthenticationError
from app.core.policy import ANONYMOUS, Actor
from app.core.security import SecurityService
from app.db.models.database import User
from app.db.session import get_session


class AuthorizationService:
    """Turns the request's bearer token into an ``Actor`` for the services.

    Credentials are verified here and only here; services receive
    ``(actor.id, actor.role)`` and never look at tokens.
    """

    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        security: SecurityService = Depends(SecurityService),
    ):
        self.db = db
        self.security = security

    @staticmethod
    def _read_token() -> Optional[str]:
        request = get_request()
        header = request.headers.get("authorization")
        if header and header.lower().startswith("bearer "):
            return header.split(" ", 1)[1].strip()
        return request.cookies.get("access_token")

    async def _load_actor(self, token: str) -> Optional[Actor]:
        try:
            payload = await self.security.decode_access_token(token)
        except ValueError as e:
            logger.debug(f"🔒 Rejected token: {e}")
            return None

        sub = payload.get("sub")
        if not sub or not str(sub).isdigit():
            return None

        user = await self.db.get(User, int(sub))
        if not user:
            return None
        return Actor(id=user.id, role=user.role)

    # ==============================
    # 🧩 CORE AUTH CHECKS
    # ==============================

    async def get_current_actor(self) -> Actor:
        token = self._read_token()
        if not token:
            raise AuthenticationError("Token not found")

        actor = await self._load_actor(token)
        if actor is None:
            raise AuthenticationError("Invalid token")
        return actor

    async def get_current_actor_if_any(self) -> Actor:
        """Anonymous callers get a non-admin actor without an id."""
        token = self._read_token()
        if not token:
            return ANONYMOUS
        return await self._load_actor(token) or ANONYMOUS

    async def get_current_user(self) -> User:
        actor = await self.get_current_actor()
        user = await self.db.get(User, actor.id)
        if not user:
            raise AuthenticationError("Invalid token")
        return user
