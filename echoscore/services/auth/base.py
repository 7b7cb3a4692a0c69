"""Abstract base class for authentication providers."""
from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session as DBSession

from echoscore.models.user import User


class AuthProvider(ABC):
    """
    Abstract authentication provider interface.

    Login and registration live outside this service; a provider only has
    to resolve the caller of a request.
    """

    @abstractmethod
    async def get_user_from_request(self, db: DBSession, request: Request) -> Optional[User]:
        """
        Extract and validate user from request (session cookie, token, etc).

        Returns User if a valid session exists, None otherwise.
        """
        pass
