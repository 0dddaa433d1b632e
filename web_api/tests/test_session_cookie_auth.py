# web_api/tests/test_session_cookie_auth.py
"""Tests for session-cookie authentication on HTTP routes and sockets."""

import sys
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import jwt
import pytest
from fastapi.testclient import TestClient

project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from main import app
from web_api.auth import (
    JWT_ALGORITHM,
    JWT_SECRET,
    SESSION_COOKIE,
    _user_id_from_token,
    create_jwt,
    verify_jwt,
)


@asynccontextmanager
async def mock_connection():
    """Mock async context manager for get_connection."""
    yield MagicMock()


class TestTokens:
    def test_round_trip(self):
        token = create_jwt(7, "learner@example.com")

        payload = verify_jwt(token)

        assert payload["sub"] == "7"
        assert payload["email"] == "learner@example.com"
        assert _user_id_from_token(token) == 7

    def test_expired_token_is_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = jwt.encode(
            {"sub": "7", "iat": past - timedelta(hours=1), "exp": past},
            JWT_SECRET,
            algorithm=JWT_ALGORITHM,
        )

        assert verify_jwt(token) is None
        assert _user_id_from_token(token) is None

    def test_non_numeric_subject_is_rejected(self):
        token = jwt.encode({"sub": "someone"}, JWT_SECRET, algorithm=JWT_ALGORITHM)

        assert _user_id_from_token(token) is None

    def test_missing_token(self):
        assert _user_id_from_token(None) is None
        assert _user_id_from_token("") is None


class TestCookieDependency:
    @pytest.fixture
    def client(self):
        app.dependency_overrides.clear()
        return TestClient(app)

    def test_valid_cookie_reaches_route(self, client):
        client.cookies.set(SESSION_COOKIE, create_jwt(7))
        with (
            patch("web_api.routes.conversations.get_connection", mock_connection),
            patch(
                "web_api.routes.conversations.get_conversation",
                AsyncMock(return_value={"conversation_id": 55, "user_id": 7}),
            ),
            patch(
                "web_api.routes.conversations.list_messages",
                AsyncMock(return_value=[]),
            ),
        ):
            response = client.get("/api/conversations/55/messages")

        assert response.status_code == 200
        assert response.json() == []

    def test_tampered_cookie_is_401(self, client):
        client.cookies.set(SESSION_COOKIE, create_jwt(7) + "x")

        response = client.get("/api/conversations/55/messages")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"
