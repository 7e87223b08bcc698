"""
Progress Schemas

Pydantic models for stream enrollments, topic progress and the
progress-store wire format (camelCase JSON).
"""

import math
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.utils.progress import duration_to_seconds


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Topic(CamelModel):
    """A video topic inside a course. Duration is in minutes."""

    name: str
    link: str = ""
    duration: float = 0

    @property
    def duration_seconds(self) -> int:
        return duration_to_seconds(self.duration)


class Course(CamelModel):
    """Course definition as returned with an enrollment."""

    id: str = Field(..., validation_alias=AliasChoices("_id", "id"))
    course_code: Optional[str] = None
    course_name: str = ""
    description: str = ""
    stream: str = ""
    total_duration: float = 0
    topics: List[Topic] = Field(default_factory=list)
    document_link: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value)

    @property
    def total_duration_seconds(self) -> int:
        return duration_to_seconds(self.total_duration)

    def find_topic(self, topic_name: str) -> Optional[Topic]:
        for topic in self.topics:
            if topic.name == topic_name:
                return topic
        return None


class TopicProgress(CamelModel):
    """Acknowledged watch progress for one (course, topic)."""

    course_id: str
    topic_name: str
    watched: bool = False
    watched_duration: int = Field(0, ge=0)
    last_watched_at: Optional[datetime] = None

    @field_validator("course_id", mode="before")
    @classmethod
    def _coerce_course_id(cls, value):
        return str(value)

    @field_validator("watched_duration", mode="before")
    @classmethod
    def _floor_duration(cls, value):
        if value is None:
            return 0
        return int(math.floor(float(value)))


class StreamEnrollment(CamelModel):
    """A learner's enrollment in a stream, with its courses and progress."""

    id: str = Field(..., validation_alias=AliasChoices("_id", "id"))
    stream: str
    total_watched_percentage: int = 0
    total_course_duration: int = 0
    is_exam_completed: bool = False
    exam_score: Optional[int] = None
    total_topics: int = 0
    watched_topics: int = 0
    enrollment_date: Optional[datetime] = None
    courses: List[Course] = Field(default_factory=list)
    topic_progress: List[TopicProgress] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value)

    @field_validator("total_course_duration", mode="before")
    @classmethod
    def _floor_total(cls, value):
        if value is None:
            return 0
        return int(math.floor(float(value)))


class UpdateTopicProgressData(CamelModel):
    """Body of the topic-progress update request."""

    course_id: str = Field(..., description="Canonical course ID from the store")
    topic_name: str
    watched_duration: int = Field(..., ge=0, description="Seconds watched")
    total_course_duration: int = Field(0, ge=0, description="Course duration in seconds")
    total_watched_percentage: Optional[int] = Field(None, ge=0, le=100)


class UpdateTopicProgressResponse(CamelModel):
    """Response to a topic-progress update."""

    success: bool
    message: Optional[str] = None
    watched: Optional[bool] = None
    watched_duration: Optional[int] = None
    total_watched_percentage: Optional[int] = None
    watched_topics: Optional[int] = None
    total_topics: Optional[int] = None


class MyEnrollmentsResponse(CamelModel):
    """Response of GET /enrollments/my-enrollments."""

    success: bool = True
    enrollments: List[StreamEnrollment] = Field(default_factory=list)


class AvailableExam(CamelModel):
    """A stream exam the learner has unlocked."""

    enrollment_id: str
    stream: str
    total_watched_percentage: int


class AvailableExamsResponse(CamelModel):
    """Response of GET /exams/available."""

    success: bool = True
    exams: List[AvailableExam] = Field(default_factory=list)
