# web_api/tests/test_progress_api.py
"""Tests for POST /api/progress/lesson."""

import sys
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from main import app
from learning_core.enums import LessonStatus
from web_api.auth import get_current_user

LESSON_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")


@asynccontextmanager
async def mock_transaction():
    """Mock async context manager for get_transaction."""
    yield MagicMock()


@pytest.fixture
def client():
    """Create test client with auth override."""
    app.dependency_overrides[get_current_user] = lambda: 7
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSaveLessonProgress:
    def test_saves_and_returns_row(self, client):
        completed_at = datetime(2026, 5, 4, tzinfo=timezone.utc)
        row = {
            "lesson_id": LESSON_ID,
            "status": LessonStatus.completed,
            "last_position_s": 600,
            "completion_percentage": 100,
            "completed_at": completed_at,
        }
        with (
            patch("web_api.routes.progress.get_transaction", mock_transaction),
            patch(
                "web_api.routes.progress.update_lesson_progress",
                AsyncMock(return_value=row),
            ) as mock_update,
        ):
            response = client.post(
                "/api/progress/lesson",
                json={
                    "lesson_id": str(LESSON_ID),
                    "last_position_s": 600,
                    "completion_percentage": 100,
                    "video_ended": True,
                },
            )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["completion_percentage"] == 100
        kwargs = mock_update.call_args.kwargs
        assert kwargs["user_id"] == 7
        assert kwargs["lesson_id"] == LESSON_ID
        assert kwargs["video_ended"] is True

    @pytest.mark.parametrize(
        "body",
        [
            {"lesson_id": str(LESSON_ID), "last_position_s": 10, "completion_percentage": 120},
            {"lesson_id": str(LESSON_ID), "last_position_s": -1, "completion_percentage": 5},
            {"lesson_id": "not-a-uuid", "last_position_s": 1, "completion_percentage": 5},
        ],
    )
    def test_rejects_invalid_body(self, client, body):
        with patch("web_api.routes.progress.update_lesson_progress", AsyncMock()) as mock_update:
            response = client.post("/api/progress/lesson", json=body)

        assert response.status_code == 422
        mock_update.assert_not_called()

    def test_requires_authentication(self):
        app.dependency_overrides.clear()

        response = TestClient(app).post(
            "/api/progress/lesson",
            json={"lesson_id": str(LESSON_ID), "last_position_s": 1, "completion_percentage": 1},
        )

        assert response.status_code == 401
