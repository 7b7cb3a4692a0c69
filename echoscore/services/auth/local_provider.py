"""Database-backed session authentication provider."""
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session as DBSession

from echoscore.config import settings
from echoscore.models.user import User
from echoscore.models.session import Session
from echoscore.services.auth.base import AuthProvider


class LocalAuthProvider(AuthProvider):
    """
    Resolves users from session tokens stored in the database.

    Tokens are issued by the login service; this provider only validates
    them against their expiry.
    """

    async def get_user_from_request(self, db: DBSession, request: Request) -> Optional[User]:
        """Extract user from session cookie."""
        token = request.cookies.get(settings.session_cookie_name)
        if not token:
            return None

        now = datetime.now(timezone.utc)
        session = db.query(Session).filter(Session.token == token).first()
        if not session:
            return None

        expires_at = session.expires_at
        if expires_at.tzinfo is None:
            # SQLite hands back naive datetimes
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= now:
            return None

        return session.user


# Singleton instance
local_auth_provider = LocalAuthProvider()
