"""
Enums

Player states.
"""

import enum


class PlayerState(int, enum.Enum):
    """Player states, numbered like the YouTube IFrame API."""
    UNSTARTED = -1
    ENDED = 0
    PLAYING = 1
    PAUSED = 2
    BUFFERING = 3
    CUED = 5
