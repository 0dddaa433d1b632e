"""
JWT authentication utilities for the web API.

Sessions are issued by the main platform; this service only verifies
them. Security measures implemented:
- HS256 signing algorithm with 256-bit secret
- Token expiration (24 hours)
- Read from the HttpOnly "session" cookie
"""

import os
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException, Request, WebSocket

JWT_SECRET = os.environ.get("JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 24
SESSION_COOKIE = "session"


def create_jwt(user_id: int, email: str | None = None) -> str:
    """
    Create a signed JWT token for an authenticated user.

    Args:
        user_id: The user's database id
        email: Optional email, carried for display only

    Returns:
        Signed JWT token string
    """
    if not JWT_SECRET:
        raise ValueError("JWT_SECRET environment variable not set")

    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + timedelta(hours=JWT_EXPIRATION_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_jwt(token: str) -> dict | None:
    """
    Verify and decode a JWT token.

    Returns:
        Decoded payload dict if valid, None if invalid
    """
    if not JWT_SECRET:
        raise ValueError("JWT_SECRET environment variable not set")

    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def _user_id_from_token(token: str | None) -> int | None:
    if not token:
        return None
    payload = verify_jwt(token)
    if not payload:
        return None
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None


async def get_current_user(request: Request) -> int:
    """
    FastAPI dependency returning the authenticated user's id.

    Raises:
        HTTPException: 401 if not authenticated or invalid token
    """
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user_id = _user_id_from_token(token)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user_id


async def get_websocket_user(websocket: WebSocket) -> int | None:
    """Same check for WebSocket handshakes; None means close with 4401."""
    return _user_id_from_token(websocket.cookies.get(SESSION_COOKIE))
