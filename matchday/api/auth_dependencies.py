"""
Authentication dependencies for FastAPI routes.
"""

from typing import Optional

from fastapi import Cookie, Depends

from matchday.services import auth_service
from matchday.utils.constants import SESSION_COOKIE_NAME


async def get_current_player(
    token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> dict:
    """
    Dependency to get the authenticated player's identity from the session cookie.

    Args:
        token: Session token from the HTTP-only cookie

    Returns:
        Identity dictionary (player_id, username, name, is_admin)

    Raises:
        Unauthenticated: If no cookie was sent
        InvalidToken: If the token is invalid or expired
    """
    return auth_service.verify(token)


async def require_admin(player: dict = Depends(get_current_player)) -> dict:
    """
    Dependency that only lets admins through.

    Raises:
        Forbidden: If the player is not an admin
    """
    return auth_service.require_admin(player)
