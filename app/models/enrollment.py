"""
Enrollment Model

A learner's stream enrollment with aggregate watch progress.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.topic_progress import TopicProgress


class Enrollment(Base):
    """
    Stream enrollment.

    Unique constraint ensures a user can only enroll once per stream.

    Attributes:
        id: Enrollment ID.
        user_id: Token subject of the learner.
        stream: Enrolled stream name.
        total_course_duration: Aggregate course duration in seconds.
        total_watched_percentage: Aggregate watched percentage (0-100).
        is_exam_completed: Whether the stream exam has been taken.
        exam_score: Exam score, if taken.
        enrollment_date: When the learner enrolled.
    """

    __tablename__ = "enrollments"

    __table_args__ = (
        UniqueConstraint("user_id", "stream", name="uq_user_stream"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        String(64),
        index=True,
        nullable=False,
    )
    stream: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    total_course_duration: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    total_watched_percentage: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    is_exam_completed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    exam_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    enrollment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    topic_progress: Mapped[list["TopicProgress"]] = relationship(
        "TopicProgress",
        back_populates="enrollment",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Enrollment(id={self.id}, user_id={self.user_id}, stream={self.stream})>"
