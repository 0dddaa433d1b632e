# web_api/tests/test_conversations_api.py
"""Tests for GET /api/conversations/{conversation_id}/messages."""

import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from main import app
from learning_core.enums import MessageRole
from web_api.auth import get_current_user

CONVERSATION = {"conversation_id": 55, "user_id": 7}

MESSAGES = [
    {
        "message_id": 1,
        "role": MessageRole.assistant,
        "content": "Welcome to lesson 2!",
        "message_type": "general",
        "input_type": "text",
        "created_at": datetime(2026, 5, 4, 10, 0, tzinfo=timezone.utc),
    },
    {
        "message_id": 2,
        "role": MessageRole.user,
        "content": "What is a tensor?",
        "message_type": "general",
        "input_type": "voice",
        "created_at": datetime(2026, 5, 4, 10, 1, tzinfo=timezone.utc),
    },
]


@asynccontextmanager
async def mock_connection():
    """Mock async context manager for get_connection."""
    yield MagicMock()


@pytest.fixture
def client():
    """Create test client with auth override."""
    app.dependency_overrides[get_current_user] = lambda: 7
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestGetConversationMessages:
    def test_returns_history_oldest_first(self, client):
        with (
            patch("web_api.routes.conversations.get_connection", mock_connection),
            patch(
                "web_api.routes.conversations.get_conversation",
                AsyncMock(return_value=CONVERSATION),
            ),
            patch(
                "web_api.routes.conversations.list_messages",
                AsyncMock(return_value=MESSAGES),
            ) as mock_list,
        ):
            response = client.get("/api/conversations/55/messages?limit=50")

        assert response.status_code == 200
        data = response.json()
        assert [m["message_id"] for m in data] == [1, 2]
        assert data[0]["role"] == "assistant"
        assert data[1]["input_type"] == "voice"
        assert mock_list.call_args.kwargs == {"conversation_id": 55, "limit": 50}

    def test_someone_elses_conversation_is_404(self, client):
        with (
            patch("web_api.routes.conversations.get_connection", mock_connection),
            patch(
                "web_api.routes.conversations.get_conversation",
                AsyncMock(return_value={"conversation_id": 55, "user_id": 8}),
            ),
            patch("web_api.routes.conversations.list_messages", AsyncMock()) as mock_list,
        ):
            response = client.get("/api/conversations/55/messages")

        assert response.status_code == 404
        mock_list.assert_not_called()

    def test_missing_conversation_is_404(self, client):
        with (
            patch("web_api.routes.conversations.get_connection", mock_connection),
            patch(
                "web_api.routes.conversations.get_conversation",
                AsyncMock(return_value=None),
            ),
        ):
            response = client.get("/api/conversations/999/messages")

        assert response.status_code == 404
