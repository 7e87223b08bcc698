"""
Progress Tracker

Wires the cache, reconciler, eligibility monitor, progress queue and
playback observer together for one stream enrollment.
"""

import asyncio
import logging
from typing import Optional

from app.core.cache import ProgressCache
from app.core.config import settings
from app.core.exceptions import AuthRequired
from app.models.enums import PlayerState
from app.schemas.progress import StreamEnrollment, Topic
from app.services.eligibility_service import EligibilityMonitor, ExamNotifier
from app.services.playback_observer import PlaybackObserver, PlaybackSession, ProgressListener, VideoPlayer
from app.services.progress_client import ProgressClient
from app.services.progress_queue import ProgressQueue
from app.services.reconciler import Reconciler, ReconcileResult, TokenProvider


logger = logging.getLogger(__name__)


class ProgressTracker:
    """
    Watch-progress tracking for one stream.

    Usage:
        tracker = ProgressTracker("Tech", token_provider=lambda: token)
        await tracker.start()
        tracker.open_topic(course_id, "Intro", player)
        await tracker.handle_player_state(PlayerState.PLAYING)
        ...
        await tracker.stop()
    """

    def __init__(
        self,
        stream: str,
        token_provider: TokenProvider,
        client: Optional[ProgressClient] = None,
        queue: Optional[ProgressQueue] = None,
        on_progress: Optional[ProgressListener] = None,
        on_exam_unlocked: Optional[ExamNotifier] = None,
        refresh_seconds: Optional[float] = None,
        ui_tick_seconds: Optional[float] = None,
        save_tick_seconds: Optional[float] = None,
    ):
        self.stream = stream
        self.token_provider = token_provider
        self.client = client or ProgressClient()
        self.queue = queue if queue is not None else ProgressQueue()
        self.refresh_seconds = refresh_seconds or settings.ENROLLMENT_REFRESH_SECONDS

        self.cache = ProgressCache()
        self.eligibility = EligibilityMonitor(self.cache, self.client, notify=on_exam_unlocked)
        self.reconciler = Reconciler(
            self.cache,
            self.client,
            token_provider,
            queue=self.queue,
            eligibility=self.eligibility,
        )
        self.observer = PlaybackObserver(
            self.cache,
            self.reconciler,
            ui_tick_seconds=ui_tick_seconds,
            save_tick_seconds=save_tick_seconds,
            on_progress=on_progress,
        )
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def enrollment(self) -> Optional[StreamEnrollment]:
        return self.cache.enrollment

    async def start(self) -> StreamEnrollment:
        """
        Load the stream enrollment and deliver queued progress.

        Raises:
            AuthRequired: If there is no token or the store rejects it.
            DataNotFound: If the user is not enrolled in the stream.
            NetworkFailure: If the store cannot be reached.
        """
        token = self.token_provider()
        if not token:
            raise AuthRequired("Please login to access this course")

        self.queue.load()
        enrollment = await self.client.find_enrollment(token, self.stream)
        self.cache.replace(enrollment)

        if len(self.queue):
            delivered = await self.reconciler.flush_queue()
            logger.info(f"Delivered {delivered} queued progress update(s) for {self.stream!r}")

        self._refresh_task = asyncio.create_task(self._refresh_loop())
        return self.cache.enrollment

    async def stop(self) -> None:
        """Close any open session and stop the refresh loop."""
        self.close_topic()
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None

    # ============== Playback ==============

    def open_topic(self, course_id: str, topic_name: str, player: VideoPlayer) -> PlaybackSession:
        return self.observer.open_session(course_id, topic_name, player)

    def close_topic(self) -> None:
        self.observer.close_session()

    async def handle_player_state(self, state: PlayerState) -> Optional[ReconcileResult]:
        return await self.observer.handle_state_change(state)

    async def mark_topic_complete(self) -> Optional[ReconcileResult]:
        return await self.observer.mark_complete()

    def next_topic(self, course_id: str, topic_name: str) -> Optional[Topic]:
        """Topic following topic_name in its course, None after the last one."""
        canonical_id = self.cache.resolve_course_id(course_id)
        course = self.cache.get_course(canonical_id) if canonical_id else None
        if course is None:
            return None
        names = [topic.name for topic in course.topics]
        if topic_name not in names:
            return None
        index = names.index(topic_name)
        return course.topics[index + 1] if index + 1 < len(course.topics) else None

    # ============== Internals ==============

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_seconds)
            await self.reconciler.resync()
