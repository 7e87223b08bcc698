"""
Eligibility Service

Announces exam eligibility once a stream's watched percentage crosses the
threshold.
"""

import logging
from typing import Callable, List, Optional, Set

from app.core.cache import ProgressCache
from app.core.exceptions import TrackerError
from app.schemas.progress import AvailableExam
from app.services.progress_client import ProgressClient


logger = logging.getLogger(__name__)

ExamNotifier = Callable[[List[AvailableExam]], None]


class EligibilityMonitor:
    """
    Re-evaluated by the reconciler after every successful merge.

    Each stream is announced at most once per monitor; a failed
    /exams/available fetch is retried on the next evaluation.
    """

    def __init__(
        self,
        cache: ProgressCache,
        client: ProgressClient,
        notify: Optional[ExamNotifier] = None,
    ):
        self.cache = cache
        self.client = client
        self.notify = notify
        self._announced: Set[str] = set()

    def is_announced(self, stream: str) -> bool:
        return stream.lower() in self._announced

    async def evaluate(self, token: str) -> List[AvailableExam]:
        """
        Check eligibility and announce newly unlocked exams.

        Args:
            token: Bearer token for /exams/available.

        Returns:
            Exams announced by this call (empty if nothing changed).
        """
        enrollment = self.cache.enrollment
        if enrollment is None or not self.cache.is_exam_eligible():
            return []

        stream = enrollment.stream
        if self.is_announced(stream) or enrollment.is_exam_completed:
            return []

        try:
            exams = await self.client.get_available_exams(token)
        except TrackerError as e:
            logger.warning(f"Could not fetch available exams for {stream!r}: {e.message}")
            return []

        unlocked = [exam for exam in exams if exam.stream.lower() == stream.lower()]
        if not unlocked:
            return []

        self._announced.add(stream.lower())
        logger.info(
            f"Exam unlocked for stream {stream!r} at {enrollment.total_watched_percentage}% watched"
        )
        if self.notify is not None:
            self.notify(unlocked)
        return unlocked
