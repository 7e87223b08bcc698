"""
Reconciler

Pushes locally observed playback progress to the progress store and merges
the authoritative answer back into the local cache.

Merge rule: the duration sent for a topic is
max(acknowledged, min(observed, topic duration)), so late or reordered
observations can never lower stored progress.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from app.core.cache import ProgressCache
from app.core.exceptions import AuthRequired, DataNotFound, TrackerError
from app.schemas.progress import StreamEnrollment, UpdateTopicProgressData
from app.services.eligibility_service import EligibilityMonitor
from app.services.progress_client import ProgressClient
from app.services.progress_queue import ProgressQueue


logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation."""
    success: bool
    enrollment: Optional[StreamEnrollment] = None
    watched_duration: int = 0
    resynced: bool = False       # cache replaced by a full re-fetch
    skipped: bool = False        # nothing new to send
    error: Optional[TrackerError] = None


class Reconciler:
    """
    The only writer of the ProgressCache.

    Network failures are logged and returned, never retried here; the next
    save tick or pause/end event re-attempts with an equal or larger value.
    """

    def __init__(
        self,
        cache: ProgressCache,
        client: ProgressClient,
        token_provider: TokenProvider,
        queue: Optional[ProgressQueue] = None,
        eligibility: Optional[EligibilityMonitor] = None,
    ):
        self.cache = cache
        self.client = client
        self.token_provider = token_provider
        self.queue = queue
        self.eligibility = eligibility

    async def reconcile(self, course_id: str, topic_name: str, observed_seconds: float) -> ReconcileResult:
        """
        Send one topic's observed progress and merge the store's answer.

        Args:
            course_id: Canonical course ID (a course code is resolved).
            topic_name: Topic name within the course.
            observed_seconds: Player position in seconds, >= 0.

        Returns:
            ReconcileResult; failures carry the error instead of raising.

        Raises:
            ValueError: If observed_seconds is negative.
        """
        if observed_seconds < 0:
            raise ValueError(f"observed_seconds must be >= 0, got {observed_seconds}")

        canonical_id = self.cache.resolve_course_id(course_id)
        topic_seconds = (
            self.cache.get_topic_duration(canonical_id, topic_name) if canonical_id else None
        )
        if canonical_id is None or topic_seconds is None:
            error = DataNotFound(f"Topic {topic_name!r} not found in course {course_id!r}")
            logger.warning(f"Reconcile skipped: {error.message}")
            return ReconcileResult(success=False, error=error)

        if topic_seconds <= 0:
            logger.debug(f"Topic {topic_name!r} has no duration, nothing to reconcile")
            return ReconcileResult(
                success=True,
                enrollment=self.cache.enrollment,
                watched_duration=self.cache.get_previous_watched(canonical_id, topic_name),
                skipped=True,
            )

        capped = int(min(observed_seconds, topic_seconds))
        previous = self.cache.get_previous_watched(canonical_id, topic_name)
        to_send = max(previous, capped)

        if to_send == previous and self.cache.get_topic_progress(canonical_id, topic_name) is not None:
            return ReconcileResult(
                success=True,
                enrollment=self.cache.enrollment,
                watched_duration=previous,
                skipped=True,
            )

        payload = UpdateTopicProgressData(
            course_id=canonical_id,
            topic_name=topic_name,
            watched_duration=to_send,
            total_course_duration=self.cache.total_course_duration,
            total_watched_percentage=self.cache.compute_total_watched_percentage(
                {(canonical_id, topic_name): to_send}
            ),
        )

        token = self.token_provider()
        try:
            if not token:
                raise AuthRequired("No token available for progress update")
            await self.client.update_topic_progress(token, payload)
        except TrackerError as e:
            logger.warning(
                f"Progress update for {canonical_id}/{topic_name} at {to_send}s failed: {e.message}"
            )
            if self.queue is not None and not isinstance(e, DataNotFound):
                self.queue.enqueue(payload)
            return ReconcileResult(success=False, watched_duration=to_send, error=e)

        resynced = await self._refresh(token)
        if not resynced:
            self.cache.patch_topic(canonical_id, topic_name, to_send)

        if self.eligibility is not None:
            await self.eligibility.evaluate(token)

        return ReconcileResult(
            success=True,
            enrollment=self.cache.enrollment,
            watched_duration=self.cache.get_previous_watched(canonical_id, topic_name),
            resynced=resynced,
        )

    async def resync(self) -> bool:
        """
        Replace the cache with the store's current enrollment.

        Returns:
            True if the cache was replaced.
        """
        token = self.token_provider()
        if not token:
            return False
        return await self._refresh(token)

    async def flush_queue(self) -> int:
        """
        Re-send queued updates through the merge rule.

        Returns:
            Number of queued updates delivered.
        """
        if self.queue is None:
            return 0

        delivered = 0
        for item in self.queue.items():
            self.queue.remove(item.course_id, item.topic_name)
            result = await self.reconcile(item.course_id, item.topic_name, item.watched_duration)
            if result.success:
                delivered += 1
            elif isinstance(result.error, DataNotFound):
                logger.warning(f"Dropping queued update for unknown topic {item.topic_name!r}")
        return delivered

    async def _refresh(self, token: str) -> bool:
        current = self.cache.enrollment
        if current is None:
            return False

        try:
            enrollments = await self.client.get_my_enrollments(token)
        except TrackerError as e:
            logger.warning(f"Enrollment re-fetch failed, keeping local patch: {e.message}")
            return False

        for enrollment in enrollments:
            if enrollment.id == current.id or enrollment.stream.lower() == current.stream.lower():
                self.cache.replace(enrollment)
                logger.debug(
                    f"Resynced enrollment {enrollment.id} ({enrollment.total_watched_percentage}%)"
                )
                return True

        logger.warning(f"Enrollment {current.id} missing from re-fetch, keeping local patch")
        return False
