"""
Progress Arithmetic

Pure helpers shared by the tracker cache and the progress store.
"""

import math
from typing import Optional, Union

Number = Union[int, float]

# Durations above this are already expressed in seconds (legacy course data)
SECONDS_DURATION_CUTOFF = 1000


def duration_to_seconds(duration: Optional[Number]) -> int:
    """
    Convert a course/topic duration to whole seconds.

    Durations are stored in minutes, except legacy values above
    SECONDS_DURATION_CUTOFF which are already seconds.
    """
    if not duration or duration <= 0:
        return 0
    if duration > SECONDS_DURATION_CUTOFF:
        return int(math.floor(duration))
    return int(math.floor(duration * 60))


def watched_percentage(watched_seconds: Number, total_seconds: Optional[Number]) -> int:
    """
    Percentage of total_seconds covered by watched_seconds.

    Rounded half-up and clamped to [0, 100]. Returns 0 when the total is
    unknown or not positive.

    Example:
        >>> watched_percentage(600, 900)
        67
    """
    if not total_seconds or total_seconds <= 0:
        return 0
    percent = int(math.floor(watched_seconds / total_seconds * 100 + 0.5))
    return max(0, min(100, percent))


def is_topic_watched(watched_seconds: Number, topic_seconds: Number, threshold: float) -> bool:
    """True once watched_seconds reaches threshold x topic_seconds."""
    if topic_seconds <= 0:
        return False
    # round() drops float noise such as 0.8 * 300 == 240.00000000000003
    return watched_seconds >= round(topic_seconds * threshold, 6)


def clamp_seconds(value: Number, upper: Number) -> float:
    """Clamp value into [0, upper]."""
    return max(0.0, min(float(value), float(max(upper, 0))))
