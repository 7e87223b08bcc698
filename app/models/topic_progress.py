"""
Topic Progress Model

Watched duration per (enrollment, course, topic).
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.enrollment import Enrollment


class TopicProgress(Base):
    """
    Topic progress row, created lazily on the first update for a topic.

    Attributes:
        id: Integer primary key.
        enrollment_id: Foreign key to enrollments table.
        course_id: Canonical course ID.
        topic_name: Topic name, unique within the course.
        watched: True once 80% of the topic has been watched.
        watched_duration: Seconds watched, never decreases.
        last_watched_at: Time of the last update.
    """

    __tablename__ = "topic_progress"

    __table_args__ = (
        UniqueConstraint("enrollment_id", "course_id", "topic_name", name="uq_enrollment_topic"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    enrollment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )
    topic_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    watched: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    watched_duration: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    last_watched_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    enrollment: Mapped["Enrollment"] = relationship(
        "Enrollment",
        back_populates="topic_progress",
    )

    def __repr__(self) -> str:
        return f"<TopicProgress(topic={self.topic_name}, watched_duration={self.watched_duration})>"
