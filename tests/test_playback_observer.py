"""
Playback Observer Unit Tests

Tests for session lifecycle, timers and player state handling.
"""

import asyncio

import pytest


COURSE_ID = "64f1c0ffee0000000000abcd"


def _make_observer(store, enrollment=None, on_progress=None):
    from app.core.cache import ProgressCache
    from app.services.playback_observer import PlaybackObserver
    from app.services.reconciler import Reconciler

    cache = ProgressCache((enrollment or store.enrollment).model_copy(deep=True))
    reconciler = Reconciler(cache, store, lambda: "token-abc")
    observer = PlaybackObserver(
        cache,
        reconciler,
        ui_tick_seconds=0.01,
        save_tick_seconds=0.02,
        on_progress=on_progress,
    )
    return cache, observer


def _with_row(enrollment, topic_name, seconds):
    from app.schemas.progress import TopicProgress

    return enrollment.model_copy(
        update={
            "topic_progress": [
                TopicProgress(course_id=COURSE_ID, topic_name=topic_name, watched_duration=seconds)
            ]
        }
    )


class TestOpenSession:
    """Tests for starting a topic."""

    def test_fresh_topic_starts_at_zero(self, fake_store, fake_player):
        """Verify no seek happens without previous progress."""
        _, observer = _make_observer(fake_store)

        session = observer.open_session(COURSE_ID, "Intro", fake_player)

        assert session.video_id == "dQw4w9WgXcQ"
        assert session.current_observed_seconds == 0
        assert fake_player.seeks == []

    def test_resumes_at_acknowledged_offset(self, fake_store, fake_player):
        """Verify the player seeks to the stored position."""
        _, observer = _make_observer(fake_store, _with_row(fake_store.enrollment, "Intro", 245))

        session = observer.open_session(COURSE_ID, "Intro", fake_player)

        assert fake_player.seeks == [245]
        assert session.last_reconciled_seconds == 245

    def test_resume_is_clamped_to_topic_duration(self, fake_store, fake_player):
        """Verify an oversized stored value seeks to the topic end."""
        _, observer = _make_observer(fake_store, _with_row(fake_store.enrollment, "Variables", 9999))

        session = observer.open_session(COURSE_ID, "Variables", fake_player)

        assert fake_player.seeks == [300]
        assert session.video_progress == 100

    def test_unknown_topic_raises(self, fake_store, fake_player):
        from app.core.exceptions import DataNotFound

        _, observer = _make_observer(fake_store)

        with pytest.raises(DataNotFound):
            observer.open_session(COURSE_ID, "Missing", fake_player)

    def test_non_youtube_link_raises(self, fake_store, fake_player, sample_enrollment_data):
        """Verify a topic without a playable video is rejected."""
        from app.core.exceptions import InvalidVideoSource
        from app.schemas.progress import StreamEnrollment

        sample_enrollment_data["courses"][0]["topics"][0]["link"] = "https://example.com/intro.mp4"
        enrollment = StreamEnrollment.model_validate(sample_enrollment_data)
        _, observer = _make_observer(fake_store, enrollment)

        with pytest.raises(InvalidVideoSource):
            observer.open_session(COURSE_ID, "Intro", fake_player)

        assert observer.session is None

    def test_opening_new_topic_closes_previous(self, fake_store, make_player):
        """Verify only one session exists at a time."""
        _, observer = _make_observer(fake_store)
        first, second = make_player(), make_player()

        observer.open_session(COURSE_ID, "Intro", first)
        observer.open_session(COURSE_ID, "Variables", second)

        assert first.destroyed is True
        assert observer.session.topic.name == "Variables"


class TestTimers:
    """Tests for the UI and save ticks."""

    @pytest.mark.asyncio
    async def test_save_tick_sends_progress_once(self, fake_store, fake_player):
        """Verify a periodic save while playing, with no repeat for the same offset."""
        progress = []
        _, observer = _make_observer(fake_store, on_progress=progress.append)
        observer.open_session(COURSE_ID, "Intro", fake_player)
        fake_player.current_time = 42.0

        await observer.handle_state_change(1)  # PLAYING
        await asyncio.sleep(0.07)
        await observer.wait_for_inflight()
        observer.close_session()

        assert fake_store.history == [42]
        assert observer.session is None
        assert progress and progress[-1] == pytest.approx(7.0)

    @pytest.mark.asyncio
    async def test_no_send_behind_last_reconciled(self, fake_store, fake_player):
        """Verify rewinding below the stored offset sends nothing."""
        _, observer = _make_observer(fake_store, _with_row(fake_store.enrollment, "Intro", 300))
        observer.open_session(COURSE_ID, "Intro", fake_player)
        fake_player.current_time = 100.0

        await observer.handle_state_change(1)
        await asyncio.sleep(0.05)
        await observer.wait_for_inflight()
        observer.close_session()

        assert fake_store.updates == []

    @pytest.mark.asyncio
    async def test_teardown_cancels_timers_without_sending(self, fake_store, fake_player):
        """Verify closing a playing session stops ticks and sends nothing."""
        _, observer = _make_observer(fake_store)
        observer.open_session(COURSE_ID, "Intro", fake_player)
        fake_player.current_time = 50.0

        await observer.handle_state_change(1)
        observer.close_session()
        await asyncio.sleep(0.05)

        assert fake_store.updates == []
        assert fake_player.destroyed is True

    @pytest.mark.asyncio
    async def test_background_save_error_is_logged(self, fake_store, fake_player, caplog):
        """Verify an unexpected error in a tick-spawned save is logged."""
        import logging

        from app.core.cache import ProgressCache
        from app.services.playback_observer import PlaybackObserver
        from app.services.reconciler import Reconciler

        def broken_token_provider():
            raise RuntimeError("keyring locked")

        cache = ProgressCache(fake_store.enrollment.model_copy(deep=True))
        reconciler = Reconciler(cache, fake_store, broken_token_provider)
        observer = PlaybackObserver(cache, reconciler, ui_tick_seconds=0.01, save_tick_seconds=0.02)
        observer.open_session(COURSE_ID, "Intro", fake_player)
        fake_player.current_time = 42.0

        with caplog.at_level(logging.WARNING, logger="app.services.playback_observer"):
            await observer.handle_state_change(1)
            await asyncio.sleep(0.03)
            await observer.wait_for_inflight()
            observer.close_session()
            await asyncio.sleep(0)

        assert "keyring locked" in caplog.text
        assert fake_store.updates == []

    @pytest.mark.asyncio
    async def test_buffering_keeps_timers(self, fake_store, fake_player):
        """Verify BUFFERING does not stop playback ticks."""
        from app.models.enums import PlayerState

        _, observer = _make_observer(fake_store)
        observer.open_session(COURSE_ID, "Intro", fake_player)
        fake_player.current_time = 30.0

        await observer.handle_state_change(PlayerState.PLAYING)
        result = await observer.handle_state_change(PlayerState.BUFFERING)
        await asyncio.sleep(0.05)
        await observer.wait_for_inflight()
        observer.close_session()

        assert result is None
        assert fake_store.history == [30]


class TestStateChanges:
    """Tests for pause and end events."""

    @pytest.mark.asyncio
    async def test_pause_sends_current_position(self, fake_store, fake_player):
        from app.models.enums import PlayerState

        cache, observer = _make_observer(fake_store)
        session = observer.open_session(COURSE_ID, "Intro", fake_player)

        await observer.handle_state_change(PlayerState.PLAYING)
        fake_player.current_time = 100.0
        result = await observer.handle_state_change(PlayerState.PAUSED)

        assert result.success is True
        assert fake_store.history == [100]
        assert session.is_playing is False
        assert session.last_reconciled_seconds == 100
        assert cache.get_previous_watched(COURSE_ID, "Intro") == 100

    @pytest.mark.asyncio
    async def test_end_marks_topic_complete(self, fake_store, fake_player):
        """Verify ENDED sends the full topic duration."""
        from app.models.enums import PlayerState

        progress = []
        cache, observer = _make_observer(fake_store, on_progress=progress.append)
        observer.open_session(COURSE_ID, "Intro", fake_player)
        fake_player.current_time = 590.0

        await observer.handle_state_change(PlayerState.ENDED)

        assert fake_store.history == [600]
        assert progress[-1] == 100
        assert cache.get_topic_progress(COURSE_ID, "Intro").watched_duration == 600

    @pytest.mark.asyncio
    async def test_send_failure_is_swallowed(self, fake_store, fake_player):
        """Verify a failed pause save keeps the session usable."""
        from app.core.exceptions import NetworkFailure
        from app.models.enums import PlayerState

        _, observer = _make_observer(fake_store)
        session = observer.open_session(COURSE_ID, "Intro", fake_player)
        fake_store.update_error = NetworkFailure("offline")
        fake_player.current_time = 100.0

        result = await observer.handle_state_change(PlayerState.PAUSED)

        assert result.success is False
        assert session.last_reconciled_seconds == 0
        assert observer.session is session

    @pytest.mark.asyncio
    async def test_state_change_without_session(self, fake_store):
        from app.models.enums import PlayerState

        _, observer = _make_observer(fake_store)

        assert await observer.handle_state_change(PlayerState.PAUSED) is None
        assert fake_store.updates == []
