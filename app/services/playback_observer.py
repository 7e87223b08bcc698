"""
Playback Observer

Bridges an embedded video player's clock to the tracker.

Per session: UNSTARTED -> PLAYING <-> PAUSED -> ENDED.
While PLAYING two independent timers run:
- UI tick (1 s): samples the player and updates the topic percentage
- Save tick (5 s): spawns a reconciliation when the player is past the
  last reconciled offset
Pause and end cancel both timers and reconcile once. Closing a session
cancels timers without sending; in-flight sends are left to finish.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Set

from app.core.cache import ProgressCache
from app.core.config import settings
from app.core.exceptions import DataNotFound
from app.models.enums import PlayerState
from app.schemas.progress import Topic
from app.services.reconciler import Reconciler, ReconcileResult
from app.utils.progress import clamp_seconds
from app.utils.video import require_video_id


logger = logging.getLogger(__name__)

ProgressListener = Callable[[float], None]


class VideoPlayer(Protocol):
    """Handle to an embedded player (e.g. a YouTube IFrame player)."""

    def get_current_time(self) -> float: ...

    def seek_to(self, seconds: float) -> None: ...

    def destroy(self) -> None: ...


@dataclass
class PlaybackSession:
    """One topic being viewed. Never outlives that viewing."""
    course_id: str
    topic: Topic
    player: VideoPlayer
    video_id: str
    current_observed_seconds: float = 0.0
    last_reconciled_seconds: float = 0.0
    is_playing: bool = False
    state: PlayerState = PlayerState.UNSTARTED
    video_progress: float = 0.0  # percent shown in the UI

    @property
    def topic_duration_seconds(self) -> int:
        return self.topic.duration_seconds


class PlaybackObserver:
    """
    Drives reconciliation from player state changes.

    Reconciliation failures are logged and swallowed: progress is only
    delayed until the next successful tick.
    """

    def __init__(
        self,
        cache: ProgressCache,
        reconciler: Reconciler,
        ui_tick_seconds: Optional[float] = None,
        save_tick_seconds: Optional[float] = None,
        on_progress: Optional[ProgressListener] = None,
    ):
        self.cache = cache
        self.reconciler = reconciler
        self.ui_tick_seconds = ui_tick_seconds or settings.UI_TICK_SECONDS
        self.save_tick_seconds = save_tick_seconds or settings.SAVE_TICK_SECONDS
        self.on_progress = on_progress

        self.session: Optional[PlaybackSession] = None
        self._ui_timer: Optional[asyncio.Task] = None
        self._save_timer: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    # ============== Session lifecycle ==============

    def resume_position(self, course_id: str, topic: Topic) -> float:
        """Acknowledged offset for a topic, clamped into [0, topic duration]."""
        previous = self.cache.get_previous_watched(course_id, topic.name)
        return clamp_seconds(previous, topic.duration_seconds)

    def open_session(self, course_id: str, topic_name: str, player: VideoPlayer) -> PlaybackSession:
        """
        Start viewing a topic and seek to where the learner left off.

        Any previous session is torn down first.

        Raises:
            DataNotFound: If the topic is not part of the loaded course.
            InvalidVideoSource: If the topic link is not a playable video.
        """
        self.close_session()

        canonical_id = self.cache.resolve_course_id(course_id)
        topic = self.cache.get_topic(canonical_id, topic_name) if canonical_id else None
        if topic is None:
            raise DataNotFound(f"Topic {topic_name!r} not found in course {course_id!r}")

        video_id = require_video_id(topic.link)
        resume_at = self.resume_position(canonical_id, topic)

        session = PlaybackSession(
            course_id=canonical_id,
            topic=topic,
            player=player,
            video_id=video_id,
            current_observed_seconds=resume_at,
            last_reconciled_seconds=resume_at,
        )
        session.video_progress = self._percent(session, resume_at)
        self.session = session

        if resume_at > 0:
            player.seek_to(resume_at)
        return session

    def close_session(self) -> None:
        """Cancel timers and destroy the player. Does not send progress."""
        self._cancel_timers()
        session, self.session = self.session, None
        if session is None:
            return
        try:
            session.player.destroy()
        except Exception as e:
            logger.warning(f"Player cleanup failed for {session.video_id}: {e}")

    # ============== State changes ==============

    async def handle_state_change(self, state: PlayerState) -> Optional[ReconcileResult]:
        """
        Apply a player state change.

        Returns:
            The reconciliation result for PAUSED/ENDED, otherwise None.
        """
        session = self.session
        if session is None:
            return None

        state = PlayerState(state)
        if state == PlayerState.PLAYING:
            session.state = state
            session.is_playing = True
            self._start_timers()
            return None

        if state == PlayerState.PAUSED:
            session.state = state
            session.is_playing = False
            self._cancel_timers()
            self._sample(session)
            return await self._send(session, session.current_observed_seconds)

        if state == PlayerState.ENDED:
            return await self.mark_complete()

        # BUFFERING / CUED / UNSTARTED leave timers as they are
        return None

    async def mark_complete(self) -> Optional[ReconcileResult]:
        """Treat the topic as fully watched (player ended or manual complete)."""
        session = self.session
        if session is None:
            return None

        session.state = PlayerState.ENDED
        session.is_playing = False
        self._cancel_timers()
        session.current_observed_seconds = float(session.topic_duration_seconds)
        session.video_progress = 100.0 if session.topic_duration_seconds > 0 else 0.0
        self._notify(session)
        return await self._send(session, session.current_observed_seconds)

    async def wait_for_inflight(self) -> None:
        """Wait for spawned reconciliations to settle."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ============== Timers ==============

    def _start_timers(self) -> None:
        self._cancel_timers()
        self._ui_timer = asyncio.create_task(self._ui_tick_loop())
        self._save_timer = asyncio.create_task(self._save_tick_loop())

    def _cancel_timers(self) -> None:
        for timer in (self._ui_timer, self._save_timer):
            if timer is not None and not timer.done():
                timer.cancel()
        self._ui_timer = None
        self._save_timer = None

    async def _ui_tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.ui_tick_seconds)
            session = self.session
            if session is None:
                return
            self._sample(session)

    async def _save_tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.save_tick_seconds)
            session = self.session
            if session is None:
                return
            self._sample(session)
            if session.current_observed_seconds > session.last_reconciled_seconds:
                task = asyncio.create_task(self._send(session, session.current_observed_seconds))
                self._inflight.add(task)
                task.add_done_callback(self._on_send_done)

    # ============== Internals ==============

    def _sample(self, session: PlaybackSession) -> None:
        try:
            current = float(session.player.get_current_time() or 0.0)
        except Exception as e:
            logger.warning(f"Could not read player position for {session.video_id}: {e}")
            return
        session.current_observed_seconds = clamp_seconds(current, session.topic_duration_seconds)
        session.video_progress = self._percent(session, session.current_observed_seconds)
        self._notify(session)

    async def _send(self, session: PlaybackSession, observed: float) -> ReconcileResult:
        result = await self.reconciler.reconcile(session.course_id, session.topic.name, observed)
        if result.success:
            session.last_reconciled_seconds = max(
                session.last_reconciled_seconds, float(result.watched_duration)
            )
        else:
            logger.info(
                f"Progress for {session.topic.name!r} not saved yet, will retry on next tick"
            )
        return result

    def _on_send_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Background progress save failed: {error!r}")

    def _notify(self, session: PlaybackSession) -> None:
        if self.on_progress is not None:
            self.on_progress(session.video_progress)

    @staticmethod
    def _percent(session: PlaybackSession, seconds: float) -> float:
        duration = session.topic_duration_seconds
        if duration <= 0:
            return 0.0
        return min(100.0, seconds / duration * 100)
