"""
Pytest Configuration and Fixtures

Provides reusable fixtures for testing the tracker and the progress store.
"""

from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DataNotFound, TrackerError
from app.schemas.progress import (
    AvailableExam,
    StreamEnrollment,
    TopicProgress,
    UpdateTopicProgressData,
    UpdateTopicProgressResponse,
)


COURSE_ID = "64f1c0ffee0000000000abcd"


# ==================== Database Fixtures ====================

@pytest.fixture
def mock_async_session() -> AsyncMock:
    """
    Create a mock async database session.

    Returns:
        AsyncMock configured to behave like AsyncSession.
    """
    session = AsyncMock(spec=AsyncSession)
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.execute = AsyncMock()
    session.add = MagicMock()
    return session


# ==================== HTTP Client Fixtures ====================

@pytest.fixture
def mock_httpx_response():
    """
    Factory fixture to create mock httpx responses.

    Usage:
        response = mock_httpx_response(status_code=200, json_data={"key": "value"})
    """
    def _create_response(status_code: int = 200, json_data: dict = None, text: str = ""):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = json_data if json_data is not None else {}
        response.text = text
        return response
    return _create_response


# ==================== Enrollment Fixtures ====================

@pytest.fixture
def sample_enrollment_data() -> dict:
    """
    Stream enrollment as returned by /enrollments/my-enrollments.

    One course, two topics: Intro (10 min = 600 s), Variables (5 min = 300 s).
    """
    return {
        "_id": "enr-1",
        "stream": "Tech",
        "totalWatchedPercentage": 0,
        "totalCourseDuration": 900,
        "isExamCompleted": False,
        "courses": [
            {
                "_id": COURSE_ID,
                "courseCode": "TECH101",
                "courseName": "Python Basics",
                "stream": "Tech",
                "totalDuration": 15,
                "topics": [
                    {"name": "Intro", "link": "https://www.youtube.com/watch?v=dQw4w9WgXcQ", "duration": 10},
                    {"name": "Variables", "link": "https://youtu.be/abcdefghijk", "duration": 5},
                ],
            }
        ],
        "topicProgress": [],
    }


@pytest.fixture
def sample_enrollment(sample_enrollment_data) -> StreamEnrollment:
    return StreamEnrollment.model_validate(sample_enrollment_data)


# ==================== Fake Collaborators ====================

class FakePlayer:
    """In-memory stand-in for an embedded video player."""

    def __init__(self, current_time: float = 0.0):
        self.current_time = current_time
        self.seeks: List[float] = []
        self.destroyed = False

    def get_current_time(self) -> float:
        return self.current_time

    def seek_to(self, seconds: float) -> None:
        self.seeks.append(seconds)
        self.current_time = seconds

    def destroy(self) -> None:
        self.destroyed = True


class FakeStore:
    """
    Progress store double with the ProgressClient interface.

    Stores exactly what it is sent (no server-side max), so any
    monotonicity observed comes from the client.
    """

    def __init__(self, enrollment: StreamEnrollment):
        self.enrollment = enrollment
        self.updates: List[UpdateTopicProgressData] = []
        self.history: List[int] = []
        self.exams: List[AvailableExam] = []
        self.update_error: Optional[TrackerError] = None
        self.refetch_error: Optional[TrackerError] = None
        self.exam_calls = 0

    async def update_topic_progress(self, token, payload: UpdateTopicProgressData):
        if self.update_error is not None:
            raise self.update_error
        self.updates.append(payload)
        rows = {
            (row.course_id, row.topic_name): row for row in self.enrollment.topic_progress
        }
        rows[(payload.course_id, payload.topic_name)] = TopicProgress(
            course_id=payload.course_id,
            topic_name=payload.topic_name,
            watched_duration=payload.watched_duration,
        )
        self.enrollment = self.enrollment.model_copy(
            update={
                "topic_progress": list(rows.values()),
                "total_watched_percentage": payload.total_watched_percentage or 0,
            }
        )
        self.history.append(payload.watched_duration)
        return UpdateTopicProgressResponse(success=True, watched_duration=payload.watched_duration)

    async def get_my_enrollments(self, token) -> List[StreamEnrollment]:
        if self.refetch_error is not None:
            raise self.refetch_error
        return [self.enrollment.model_copy(deep=True)]

    async def find_enrollment(self, token, stream: str) -> StreamEnrollment:
        for enrollment in await self.get_my_enrollments(token):
            if enrollment.stream.lower() == stream.lower():
                return enrollment
        raise DataNotFound(f"No enrollment found for stream {stream!r}")

    async def get_available_exams(self, token) -> List[AvailableExam]:
        self.exam_calls += 1
        return list(self.exams)


@pytest.fixture
def fake_player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture
def fake_store(sample_enrollment) -> FakeStore:
    return FakeStore(sample_enrollment)


@pytest.fixture
def progress_queue(tmp_path):
    from app.services.progress_queue import ProgressQueue

    queue = ProgressQueue(path=str(tmp_path / "queue.json"))
    queue.load()
    return queue


@pytest.fixture
def make_player():
    """Factory for extra players in multi-session tests."""
    return FakePlayer
