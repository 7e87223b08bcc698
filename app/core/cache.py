"""
Local Progress Cache

In-memory snapshot of what the progress store has acknowledged for one
stream enrollment:
- Previously watched seconds per (course, topic)
- Aggregate watched seconds / percentage, optionally with in-flight overrides
- Per-topic and per-course completion percentages
- Exam eligibility

Only the reconciler writes to the cache (replace / patch_topic).
Everything else reads.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from app.core.config import settings
from app.schemas.progress import Course, StreamEnrollment, Topic, TopicProgress
from app.utils.progress import is_topic_watched, watched_percentage


logger = logging.getLogger(__name__)

ProgressKey = Tuple[str, str]


class ProgressCache:
    """
    Acknowledged progress for one loaded stream enrollment.

    Features:
    - O(1) lookups keyed by (course_id, topic_name)
    - Percentages computed before the store confirms them (overrides)
    - Course-code to canonical-id resolution
    """

    def __init__(
        self,
        enrollment: Optional[StreamEnrollment] = None,
        watched_threshold: Optional[float] = None,
        eligibility_percent: Optional[int] = None,
    ):
        """
        Initialize the cache.

        Args:
            enrollment: Initial snapshot, usually from the store.
            watched_threshold: Fraction of a topic that marks it watched.
            eligibility_percent: Aggregate percentage that unlocks the exam.
        """
        self._watched_threshold = (
            watched_threshold if watched_threshold is not None else settings.WATCHED_THRESHOLD
        )
        self._eligibility_percent = (
            eligibility_percent if eligibility_percent is not None else settings.EXAM_ELIGIBILITY_PERCENT
        )
        self._enrollment: Optional[StreamEnrollment] = None
        self._progress: Dict[ProgressKey, TopicProgress] = {}
        self._courses: Dict[str, Course] = {}
        if enrollment is not None:
            self.replace(enrollment)

    # ============== Snapshot ==============

    @property
    def enrollment(self) -> Optional[StreamEnrollment]:
        """Current snapshot, or None before the first load."""
        return self._enrollment

    @property
    def is_loaded(self) -> bool:
        return self._enrollment is not None

    @property
    def total_course_duration(self) -> int:
        """
        Course duration in seconds used as the percentage denominator.

        The store's aggregate wins; the sum of course durations is the
        fallback when the store has none yet.
        """
        if self._enrollment is None:
            return 0
        if self._enrollment.total_course_duration > 0:
            return self._enrollment.total_course_duration
        return sum(course.total_duration_seconds for course in self._enrollment.courses)

    # ============== Reads ==============

    def get_topic_progress(self, course_id: str, topic_name: str) -> Optional[TopicProgress]:
        return self._progress.get((str(course_id), topic_name))

    def get_previous_watched(self, course_id: str, topic_name: str) -> int:
        """
        Last acknowledged watched duration for a topic.

        Returns:
            Seconds watched, 0 if the store has no row for the topic.
        """
        progress = self.get_topic_progress(course_id, topic_name)
        return progress.watched_duration if progress else 0

    def compute_total_watched_seconds(self, overrides: Optional[Dict[ProgressKey, int]] = None) -> int:
        """
        Sum watched seconds across all topics.

        Args:
            overrides: (course_id, topic_name) -> seconds, applied on top of
                the acknowledged rows (a topic may be new).

        Returns:
            Total watched seconds.
        """
        merged = {key: row.watched_duration for key, row in self._progress.items()}
        if overrides:
            for (course_id, topic_name), seconds in overrides.items():
                merged[(str(course_id), topic_name)] = seconds
        return sum(merged.values())

    def compute_total_watched_percentage(self, overrides: Optional[Dict[ProgressKey, int]] = None) -> int:
        """
        Aggregate watched percentage in [0, 100].

        Returns 0 when the total course duration is unknown.
        """
        return watched_percentage(
            self.compute_total_watched_seconds(overrides),
            self.total_course_duration,
        )

    def compute_topic_percentage(
        self,
        course_id: str,
        topic_name: str,
        overrides: Optional[Dict[ProgressKey, int]] = None,
    ) -> int:
        """
        Acknowledged share of one topic in [0, 100].

        Returns 0 for an unknown topic or one without a duration.
        """
        course_id = str(course_id)
        topic_seconds = self.get_topic_duration(course_id, topic_name) or 0
        key = (course_id, topic_name)
        if overrides and key in overrides:
            watched = overrides[key]
        else:
            watched = self.get_previous_watched(course_id, topic_name)
        return watched_percentage(watched, topic_seconds)

    def compute_course_percentage(
        self,
        course_id: str,
        overrides: Optional[Dict[ProgressKey, int]] = None,
    ) -> int:
        """
        Watched share of one course in [0, 100].

        Sums the course's rows (with overrides applied) over the course
        duration; 0 for an unknown course.
        """
        course = self.get_course(course_id)
        if course is None:
            return 0
        merged = {
            key: row.watched_duration
            for key, row in self._progress.items()
            if key[0] == course.id
        }
        if overrides:
            for (override_course, topic_name), seconds in overrides.items():
                if str(override_course) == course.id:
                    merged[(course.id, topic_name)] = seconds
        return watched_percentage(sum(merged.values()), course.total_duration_seconds)

    def get_course(self, course_id: str) -> Optional[Course]:
        return self._courses.get(str(course_id))

    def resolve_course_id(self, course_ref: str) -> Optional[str]:
        """
        Map a course reference to the store's canonical ID.

        Accepts the canonical ID itself or a UI-local course code.
        """
        course_ref = str(course_ref)
        if course_ref in self._courses:
            return course_ref
        for course in self._courses.values():
            if course.course_code and course.course_code == course_ref:
                logger.warning(
                    f"Course code {course_ref!r} used as progress key, resolved to {course.id!r}"
                )
                return course.id
        return None

    def get_topic(self, course_id: str, topic_name: str) -> Optional[Topic]:
        course = self.get_course(course_id)
        return course.find_topic(topic_name) if course else None

    def get_topic_duration(self, course_id: str, topic_name: str) -> Optional[int]:
        """Topic duration in seconds, None for an unknown topic."""
        topic = self.get_topic(course_id, topic_name)
        return topic.duration_seconds if topic else None

    def is_exam_eligible(self) -> bool:
        """Derived eligibility: aggregate percentage at or above the threshold."""
        if self._enrollment is None:
            return False
        return self._enrollment.total_watched_percentage >= self._eligibility_percent

    # ============== Writes (reconciler only) ==============

    def replace(self, enrollment: StreamEnrollment) -> None:
        """Replace the whole snapshot with a freshly fetched enrollment."""
        self._enrollment = enrollment
        self._progress = {
            (row.course_id, row.topic_name): row for row in enrollment.topic_progress
        }
        self._courses = {course.id: course for course in enrollment.courses}

    def patch_topic(self, course_id: str, topic_name: str, watched_duration: int) -> TopicProgress:
        """
        Optimistically update one topic row and the derived aggregates.

        Used when the confirmation re-fetch fails. Never lowers the row.

        Returns:
            The updated row.
        """
        if self._enrollment is None:
            raise RuntimeError("Cannot patch progress before an enrollment is loaded")

        course_id = str(course_id)
        key = (course_id, topic_name)
        existing = self._progress.get(key)
        watched_duration = max(watched_duration, existing.watched_duration if existing else 0)
        topic_seconds = self.get_topic_duration(course_id, topic_name) or 0

        row = TopicProgress(
            course_id=course_id,
            topic_name=topic_name,
            watched_duration=watched_duration,
            watched=(existing.watched if existing else False)
            or is_topic_watched(watched_duration, topic_seconds, self._watched_threshold),
            last_watched_at=datetime.now(timezone.utc),
        )
        self._progress[key] = row

        rows = list(self._progress.values())
        self._enrollment = self._enrollment.model_copy(
            update={
                "topic_progress": rows,
                "total_watched_percentage": self.compute_total_watched_percentage(),
                "watched_topics": sum(1 for r in rows if r.watched),
            }
        )
        return row
