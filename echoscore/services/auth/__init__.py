"""
Authentication service package.

Usage:
    from echoscore.services.auth.dependencies import get_current_user, require_teacher

    @router.post("/protected")
    async def protected_route(user: User = Depends(require_teacher)):
        ...
"""
from echoscore.services.auth.base import AuthProvider
from echoscore.services.auth.local_provider import local_auth_provider


def get_auth_provider() -> AuthProvider:
    """Factory function to get the configured auth provider."""
    return local_auth_provider


__all__ = [
    "AuthProvider",
    "get_auth_provider",
    "local_auth_provider",
]
