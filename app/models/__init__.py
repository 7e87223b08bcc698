"""
WatchSync - Models Module

This module exports all SQLAlchemy models of the progress store.
"""

from app.core.database import Base

# Enums
from app.models.enums import PlayerState

# Models
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.topic_progress import TopicProgress

__all__ = [
    # Base
    "Base",
    # Enums
    "PlayerState",
    # Models
    "Course",
    "Enrollment",
    "TopicProgress",
]
