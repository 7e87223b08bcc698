"""
WatchSync - Services Module

Business logic layer: the progress store service and the watch-progress
tracker (client, reconciler, playback observer).
"""

from app.services import progress_service
from app.services import progress_client
from app.services import reconciler
from app.services import playback_observer
from app.services import tracker

__all__ = [
    "progress_service",
    "progress_client",
    "reconciler",
    "playback_observer",
    "tracker",
]
