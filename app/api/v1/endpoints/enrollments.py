"""
Enrollment Routes

Stream enrollments and topic progress updates. Called by the watch-progress
tracker on every save tick, pause and video end.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id
from app.core.database import get_db
from app.schemas.progress import (
    MyEnrollmentsResponse,
    UpdateTopicProgressData,
    UpdateTopicProgressResponse,
)
from app.services import progress_service


router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


@router.get(
    "/my-enrollments",
    response_model=MyEnrollmentsResponse,
    summary="Get user enrollments",
)
async def get_my_enrollments(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MyEnrollmentsResponse:
    """
    Get all streams the current user is enrolled in.

    Each enrollment carries its courses (with topic durations) and the
    acknowledged progress of every topic.
    """
    enrollments = await progress_service.get_user_enrollments(
        user_id=user_id,
        db=db,
    )
    return MyEnrollmentsResponse(success=True, enrollments=enrollments)


@router.api_route(
    "/topic-progress",
    methods=["PUT", "POST"],
    response_model=UpdateTopicProgressResponse,
    summary="Update topic watch progress",
)
async def update_topic_progress(
    data: UpdateTopicProgressData,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UpdateTopicProgressResponse:
    """
    Store the watched duration of one topic.

    **Merge rule:** the stored duration is the larger of the stored and the
    sent value, capped at the topic duration. A topic counts as watched at
    80% of its duration.

    **Body:**
    ```json
    {
      "courseId": "8c1f...",
      "topicName": "Introduction",
      "watchedDuration": 245,
      "totalCourseDuration": 5400,
      "totalWatchedPercentage": 12
    }
    ```
    """
    return await progress_service.update_topic_progress(
        user_id=user_id,
        data=data,
        db=db,
    )
