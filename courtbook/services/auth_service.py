"""
Caller authentication for the booking operations.

Only e-mail addresses listed in AUTHORIZED_USER_EMAILS may book. A caller
authorizes once (POST /auth/authenticate) and the resulting session is kept
for AUTH_SESSION_TTL_SECONDS.
"""

import logging
from datetime import datetime

from pydantic import ValidationError

from courtbook.config import settings
from courtbook.models.schemas import AuthenticatedUser, utcnow
from courtbook.services.database_service import database_service

logger = logging.getLogger(__name__)

SESSION_PREFIX = "auth_session:"


class AuthService:
    def _key(self, user_id: str) -> str:
        return f"{SESSION_PREFIX}{user_id}"

    def is_authorized_email(self, email: str) -> bool:
        return email.strip().lower() in settings.authorized_emails

    async def authorize(
        self, user_id: str, email: str, now: datetime | None = None
    ) -> AuthenticatedUser | None:
        """
        Start an auth session for `user_id` if `email` is authorized.

        Returns None for an e-mail that is not on the authorized list.
        """
        if not self.is_authorized_email(email):
            logger.warning(f"Rejected authentication for unauthorized e-mail {email}")
            return None
        now = now or utcnow()
        user = AuthenticatedUser(id=user_id, email=email.strip().lower(), created_at=now)
        await database_service.put(
            self._key(user_id),
            user.model_dump_json(),
            ttl_seconds=settings.auth_session_ttl_seconds,
            now=now,
        )
        logger.info(f"Authenticated user {user_id} as {user.email}")
        return user

    async def _load(self, key: str, now: datetime) -> AuthenticatedUser | None:
        raw = await database_service.get(key, now=now)
        if raw is None:
            return None
        try:
            user = AuthenticatedUser.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable auth session {key}: {e}")
            return None
        return user if user.verified else None

    async def authenticate(
        self, user_id: str | None = None, now: datetime | None = None
    ) -> AuthenticatedUser | None:
        """
        Return the caller's valid session, or None.

        Without a user id, the most recently started valid session is used, for
        clients that cannot carry an identity.
        """
        now = now or utcnow()
        if user_id:
            return await self._load(self._key(user_id), now)

        for key in await database_service.list_keys(SESSION_PREFIX, now=now):
            user = await self._load(key, now)
            if user is not None:
                return user
        return None


auth_service = AuthService()
