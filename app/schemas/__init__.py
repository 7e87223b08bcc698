"""
WatchSync - Schemas Module

Pydantic models for request/response validation.
"""

from app.schemas.progress import (
    AvailableExam,
    AvailableExamsResponse,
    Course,
    MyEnrollmentsResponse,
    StreamEnrollment,
    Topic,
    TopicProgress,
    UpdateTopicProgressData,
    UpdateTopicProgressResponse,
)

__all__ = [
    # Course content
    "Topic",
    "Course",
    # Progress
    "TopicProgress",
    "StreamEnrollment",
    "UpdateTopicProgressData",
    "UpdateTopicProgressResponse",
    "MyEnrollmentsResponse",
    # Exams
    "AvailableExam",
    "AvailableExamsResponse",
]
