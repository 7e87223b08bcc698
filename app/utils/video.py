"""
Video Link Helpers

Resolve topic links to YouTube video IDs.
"""

import re
from typing import Optional

from app.core.exceptions import InvalidVideoSource


_YOUTUBE_ID_RE = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?|shorts)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})"
)


def extract_youtube_video_id(url: Optional[str]) -> Optional[str]:
    """
    Extract the 11-character video ID from a YouTube URL.

    Handles watch, embed, shorts, /v/ and youtu.be links.

    Args:
        url: Topic video link.

    Returns:
        Video ID, or None when the link is not a YouTube video URL.
    """
    if not url:
        return None
    match = _YOUTUBE_ID_RE.search(url.strip())
    return match.group(1) if match else None


def require_video_id(url: Optional[str]) -> str:
    """Like extract_youtube_video_id but raises InvalidVideoSource."""
    video_id = extract_youtube_video_id(url)
    if video_id is None:
        raise InvalidVideoSource(url or "")
    return video_id
