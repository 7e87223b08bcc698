"""
Utility Unit Tests

Tests for progress arithmetic and video link parsing.
"""

import pytest


class TestDurationToSeconds:
    """Tests for minute/second normalisation."""

    @pytest.mark.parametrize(
        "duration, expected",
        [
            (10, 600),
            (4.5, 270),
            (1200, 1200),  # legacy value already in seconds
            (0, 0),
            (None, 0),
            (-3, 0),
        ],
    )
    def test_conversion(self, duration, expected):
        from app.utils.progress import duration_to_seconds

        assert duration_to_seconds(duration) == expected


class TestWatchedPercentage:
    """Tests for aggregate percentage derivation."""

    def test_rounds_half_up(self):
        from app.utils.progress import watched_percentage

        assert watched_percentage(600, 900) == 67
        assert watched_percentage(1, 200) == 1  # 0.5 rounds up

    def test_clamped_to_hundred(self):
        from app.utils.progress import watched_percentage

        assert watched_percentage(1000, 900) == 100

    @pytest.mark.parametrize("total", [0, None, -10])
    def test_unknown_total_is_zero(self, total):
        from app.utils.progress import watched_percentage

        assert watched_percentage(600, total) == 0


class TestIsTopicWatched:
    """Tests for the 80% watched threshold."""

    def test_exact_threshold(self):
        from app.utils.progress import is_topic_watched

        assert is_topic_watched(480, 600, 0.8) is True
        assert is_topic_watched(479, 600, 0.8) is False
        assert is_topic_watched(240, 300, 0.8) is True

    def test_zero_duration_never_watched(self):
        from app.utils.progress import is_topic_watched

        assert is_topic_watched(10, 0, 0.8) is False


class TestYouTubeLinks:
    """Tests for video ID extraction."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
            "https://youtube.com/shorts/dQw4w9WgXcQ",
        ],
    )
    def test_extracts_id(self, url):
        from app.utils.video import extract_youtube_video_id

        assert extract_youtube_video_id(url) == "dQw4w9WgXcQ"

    @pytest.mark.parametrize("url", ["", None, "https://example.com/video.mp4", "not a link"])
    def test_rejects_non_youtube(self, url):
        from app.utils.video import extract_youtube_video_id

        assert extract_youtube_video_id(url) is None

    def test_require_raises_invalid_source(self):
        from app.core.exceptions import InvalidVideoSource
        from app.utils.video import require_video_id

        with pytest.raises(InvalidVideoSource) as exc_info:
            require_video_id("https://example.com/video.mp4")

        assert exc_info.value.link == "https://example.com/video.mp4"
