"""
Course Model

Course definition inside a stream, with its ordered topic list.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import Float, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.utils.progress import duration_to_seconds


class Course(Base):
    """
    Course model.

    Attributes:
        id: Canonical course ID, the only valid progress key.
        course_code: Human-facing course code (never a progress key).
        course_name: Display name.
        description: Course description.
        stream: Stream the course belongs to.
        total_duration: Duration in minutes.
        topics: JSONB list of {"name", "link", "duration" (minutes)}.
        document_link: Optional course material link.
    """

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    course_code: Mapped[Optional[str]] = mapped_column(
        String(50),
        unique=True,
        nullable=True,
    )
    course_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        Text,
        default="",
        nullable=False,
    )
    stream: Mapped[str] = mapped_column(
        String(100),
        index=True,
        nullable=False,
    )
    total_duration: Mapped[float] = mapped_column(
        Float,
        default=0,
        nullable=False,
    )
    topics: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONB,
        default=list,
        nullable=False,
    )
    document_link: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )

    def find_topic(self, topic_name: str) -> Optional[Dict[str, Any]]:
        for topic in self.topics or []:
            if topic.get("name") == topic_name:
                return topic
        return None

    def topic_duration_seconds(self, topic_name: str) -> Optional[int]:
        topic = self.find_topic(topic_name)
        if topic is None:
            return None
        return duration_to_seconds(topic.get("duration"))

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, stream={self.stream})>"
