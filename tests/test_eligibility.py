"""
Eligibility Monitor Unit Tests

Tests for exam unlock announcements.
"""

import pytest


COURSE_ID = "64f1c0ffee0000000000abcd"


def _monitor(store, percentage, completed=False, notify=None):
    from app.core.cache import ProgressCache
    from app.services.eligibility_service import EligibilityMonitor

    enrollment = store.enrollment.model_copy(
        update={"total_watched_percentage": percentage, "is_exam_completed": completed}
    )
    return EligibilityMonitor(ProgressCache(enrollment), store, notify=notify)


def _exam(stream="Tech"):
    from app.schemas.progress import AvailableExam

    return AvailableExam(enrollment_id="enr-1", stream=stream, total_watched_percentage=85)


class TestEligibilityMonitor:
    """Tests for EligibilityMonitor.evaluate."""

    @pytest.mark.asyncio
    async def test_below_threshold_makes_no_call(self, fake_store):
        monitor = _monitor(fake_store, 79)

        assert await monitor.evaluate("token") == []
        assert fake_store.exam_calls == 0

    @pytest.mark.asyncio
    async def test_announces_once(self, fake_store):
        """Verify a stream is announced a single time."""
        fake_store.exams = [_exam(), _exam("Arts")]
        announced = []
        monitor = _monitor(fake_store, 85, notify=announced.append)

        first = await monitor.evaluate("token")
        second = await monitor.evaluate("token")

        assert [exam.stream for exam in first] == ["Tech"]
        assert second == []
        assert len(announced) == 1
        assert monitor.is_announced("TECH") is True

    @pytest.mark.asyncio
    async def test_completed_exam_not_announced(self, fake_store):
        fake_store.exams = [_exam()]
        monitor = _monitor(fake_store, 100, completed=True)

        assert await monitor.evaluate("token") == []
        assert fake_store.exam_calls == 0

    @pytest.mark.asyncio
    async def test_fetch_failure_retried_later(self, fake_store):
        """Verify a failed exams fetch does not mark the stream announced."""
        from unittest.mock import AsyncMock

        from app.core.exceptions import NetworkFailure

        fake_store.exams = [_exam()]
        monitor = _monitor(fake_store, 90)
        fake_store.get_available_exams = AsyncMock(side_effect=NetworkFailure("down"))

        assert await monitor.evaluate("token") == []
        assert monitor.is_announced("Tech") is False

        fake_store.get_available_exams = AsyncMock(return_value=[_exam()])
        assert len(await monitor.evaluate("token")) == 1
