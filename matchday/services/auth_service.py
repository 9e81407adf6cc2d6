"""
Authentication service: password hashing and signed session tokens.

The session token is a JWT carrying the player's identity and admin flag.
There is no server-side session store; the token is the whole session.
"""

import os
import logging
from datetime import timedelta
from typing import Dict, Optional

import bcrypt
import jwt
from dotenv import load_dotenv

from matchday.services.errors import Forbidden, InvalidToken, Unauthenticated
from matchday.utils.constants import SESSION_TOKEN_DAYS
from matchday.utils.datetime_utils import utcnow

load_dotenv()

logger = logging.getLogger(__name__)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRATION_DAYS = SESSION_TOKEN_DAYS


def hash_password(password: str) -> str:
    """
    Hash a password with a per-password salt.

    Args:
        password: Plaintext password

    Returns:
        bcrypt hash as a string
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a plaintext password against a stored bcrypt hash.

    Returns:
        True if the password matches, False otherwise (including malformed hashes)
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT.

    Args:
        data: Claims to embed
        expires_delta: Lifetime of the token (defaults to 30 days)

    Returns:
        Encoded token string
    """
    to_encode = data.copy()
    now = utcnow()
    expire = now + (expires_delta or timedelta(days=ACCESS_TOKEN_EXPIRATION_DAYS))
    to_encode.update({"exp": expire, "iat": now})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict]:
    """
    Decode and validate a JWT.

    Returns:
        Token payload, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug("Session token expired")
        return None
    except jwt.InvalidTokenError:
        return None


def identity_from_player(player: Dict) -> Dict:
    """Build the identity dict carried in tokens from a player dict."""
    return {
        "player_id": player["id"],
        "username": player["username"],
        "name": player["name"],
        "is_admin": bool(player["is_admin"]),
    }


def issue_token(player: Dict) -> str:
    """
    Issue a session token for a player.

    Args:
        player: Player dict (id, username, name, is_admin)

    Returns:
        Signed token valid for 30 days
    """
    return create_access_token(identity_from_player(player))


def verify(token: Optional[str]) -> Dict:
    """
    Turn a session token into an identity.

    Args:
        token: Raw token from the cookie, or None

    Returns:
        Identity dict: player_id, username, name, is_admin

    Raises:
        Unauthenticated: If no token was supplied
        InvalidToken: If the signature, format or expiry check fails
    """
    if not token:
        raise Unauthenticated("Not authenticated")

    payload = verify_token(token)
    if payload is None:
        raise InvalidToken("Invalid or expired session token")

    try:
        return {
            "player_id": int(payload["player_id"]),
            "username": payload["username"],
            "name": payload["name"],
            "is_admin": bool(payload.get("is_admin", False)),
        }
    except (KeyError, TypeError, ValueError):
        raise InvalidToken("Invalid token payload")


def require_admin(identity: Dict) -> Dict:
    """
    Raises:
        Forbidden: If the identity is not an admin
    """
    if not identity.get("is_admin"):
        raise Forbidden("Admin access required")
    return identity
