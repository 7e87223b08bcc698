"""
Progress Service

Business logic of the progress store: enrollment listing, topic progress
merges and exam availability.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.topic_progress import TopicProgress
from app.schemas.progress import (
    AvailableExam,
    Course as CourseSchema,
    StreamEnrollment,
    TopicProgress as TopicProgressSchema,
    UpdateTopicProgressData,
    UpdateTopicProgressResponse,
)
from app.utils.progress import duration_to_seconds, is_topic_watched, watched_percentage


logger = logging.getLogger(__name__)


async def get_course(
    course_id: str,
    db: AsyncSession,
) -> Course:
    """
    Get a course by its canonical ID.

    Args:
        course_id: Canonical course ID.
        db: Database session.

    Returns:
        Course object.

    Raises:
        HTTPException: 404 if course not found.
    """
    result = await db.execute(
        select(Course).where(Course.id == course_id)
    )
    course = result.scalar_one_or_none()

    if not course:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Course with ID {course_id} not found",
        )

    return course


async def get_stream_courses(
    streams: Sequence[str],
    db: AsyncSession,
) -> List[Course]:
    """Courses belonging to any of the given streams."""
    if not streams:
        return []
    result = await db.execute(
        select(Course).where(Course.stream.in_(list(streams)))
    )
    return list(result.scalars().all())


async def get_enrollment_for_stream(
    user_id: str,
    stream: str,
    db: AsyncSession,
) -> Enrollment:
    """
    Get the user's enrollment for a stream.

    Raises:
        HTTPException: 404 if the user is not enrolled.
    """
    result = await db.execute(
        select(Enrollment).where(
            Enrollment.user_id == user_id,
            Enrollment.stream == stream,
        )
    )
    enrollment = result.scalar_one_or_none()

    if not enrollment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Not enrolled in stream {stream}",
        )

    return enrollment


def build_enrollment_response(
    enrollment: Enrollment,
    courses: Sequence[Course],
) -> StreamEnrollment:
    """
    Convert an enrollment and its stream's courses to the wire schema.

    Args:
        enrollment: Enrollment with topic_progress loaded.
        courses: Courses of the enrollment's stream.

    Returns:
        StreamEnrollment schema.
    """
    stream_courses = [course for course in courses if course.stream == enrollment.stream]
    rows = list(enrollment.topic_progress or [])

    total_duration = enrollment.total_course_duration or sum(
        duration_to_seconds(course.total_duration) for course in stream_courses
    )

    return StreamEnrollment(
        id=enrollment.id,
        stream=enrollment.stream,
        total_watched_percentage=enrollment.total_watched_percentage,
        total_course_duration=total_duration,
        is_exam_completed=enrollment.is_exam_completed,
        exam_score=enrollment.exam_score,
        total_topics=sum(len(course.topics or []) for course in stream_courses),
        watched_topics=sum(1 for row in rows if row.watched),
        enrollment_date=enrollment.enrollment_date,
        courses=[
            CourseSchema(
                id=course.id,
                course_code=course.course_code,
                course_name=course.course_name,
                description=course.description or "",
                stream=course.stream,
                total_duration=course.total_duration,
                topics=course.topics or [],
                document_link=course.document_link,
            )
            for course in stream_courses
        ],
        topic_progress=[
            TopicProgressSchema(
                course_id=row.course_id,
                topic_name=row.topic_name,
                watched=row.watched,
                watched_duration=row.watched_duration,
                last_watched_at=row.last_watched_at,
            )
            for row in rows
        ],
    )


async def get_user_enrollments(
    user_id: str,
    db: AsyncSession,
) -> List[StreamEnrollment]:
    """
    Get all stream enrollments for a user with courses and progress.

    Args:
        user_id: Learner ID from the token.
        db: Database session.

    Returns:
        List of StreamEnrollment schemas, newest first.
    """
    result = await db.execute(
        select(Enrollment)
        .where(Enrollment.user_id == user_id)
        .order_by(Enrollment.enrollment_date.desc())
    )
    enrollments = list(result.scalars().all())

    courses = await get_stream_courses(
        sorted({enrollment.stream for enrollment in enrollments}), db
    )
    return [build_enrollment_response(enrollment, courses) for enrollment in enrollments]


def _find_row(enrollment: Enrollment, course_id: str, topic_name: str) -> Optional[TopicProgress]:
    for row in enrollment.topic_progress or []:
        if row.course_id == course_id and row.topic_name == topic_name:
            return row
    return None


async def update_topic_progress(
    user_id: str,
    data: UpdateTopicProgressData,
    db: AsyncSession,
) -> UpdateTopicProgressResponse:
    """
    Merge a topic's watched duration into the user's enrollment.

    The stored duration never decreases and never exceeds the topic
    duration. The aggregate percentage is taken from the client when
    TRUST_CLIENT_PERCENTAGE is set, otherwise recomputed from stored rows.

    Args:
        user_id: Learner ID from the token.
        data: Update payload.
        db: Database session.

    Returns:
        UpdateTopicProgressResponse.

    Raises:
        HTTPException: 404 if course, enrollment or topic not found.
    """
    course = await get_course(data.course_id, db)
    enrollment = await get_enrollment_for_stream(user_id, course.stream, db)

    topic_seconds = course.topic_duration_seconds(data.topic_name)
    if topic_seconds is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Topic {data.topic_name} not found in course {course.id}",
        )

    row = _find_row(enrollment, course.id, data.topic_name)
    if row is None:
        row = TopicProgress(
            enrollment_id=enrollment.id,
            course_id=course.id,
            topic_name=data.topic_name,
            watched=False,
            watched_duration=0,
        )
        enrollment.topic_progress.append(row)
        db.add(row)

    sent = min(data.watched_duration, topic_seconds)
    row.watched_duration = max(row.watched_duration or 0, sent)
    row.watched = bool(row.watched) or is_topic_watched(
        row.watched_duration, topic_seconds, settings.WATCHED_THRESHOLD
    )
    row.last_watched_at = datetime.now(timezone.utc)

    stream_courses = await get_stream_courses([course.stream], db)
    if data.total_course_duration > 0:
        enrollment.total_course_duration = data.total_course_duration
    elif not enrollment.total_course_duration:
        enrollment.total_course_duration = sum(
            duration_to_seconds(c.total_duration) for c in stream_courses
        )

    rows = list(enrollment.topic_progress)
    if settings.TRUST_CLIENT_PERCENTAGE and data.total_watched_percentage is not None:
        enrollment.total_watched_percentage = data.total_watched_percentage
    else:
        enrollment.total_watched_percentage = watched_percentage(
            sum(r.watched_duration or 0 for r in rows),
            enrollment.total_course_duration,
        )

    await db.commit()

    logger.debug(
        f"Progress {enrollment.id}/{course.id}/{data.topic_name}: "
        f"{row.watched_duration}s, {enrollment.total_watched_percentage}%"
    )

    return UpdateTopicProgressResponse(
        success=True,
        message="Progress updated",
        watched=row.watched,
        watched_duration=row.watched_duration,
        total_watched_percentage=enrollment.total_watched_percentage,
        watched_topics=sum(1 for r in rows if r.watched),
        total_topics=sum(len(c.topics or []) for c in stream_courses),
    )


async def get_available_exams(
    user_id: str,
    db: AsyncSession,
) -> List[AvailableExam]:
    """
    Stream exams the user has unlocked and not yet taken.

    Args:
        user_id: Learner ID from the token.
        db: Database session.

    Returns:
        List of AvailableExam schemas.
    """
    result = await db.execute(
        select(Enrollment).where(
            Enrollment.user_id == user_id,
            Enrollment.is_exam_completed.is_(False),
            Enrollment.total_watched_percentage >= settings.EXAM_ELIGIBILITY_PERCENT,
        )
    )
    return [
        AvailableExam(
            enrollment_id=enrollment.id,
            stream=enrollment.stream,
            total_watched_percentage=enrollment.total_watched_percentage,
        )
        for enrollment in result.scalars().all()
    ]
