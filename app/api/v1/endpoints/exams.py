"""
Exam Routes

Exam availability, gated on aggregate watched percentage.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id
from app.core.database import get_db
from app.schemas.progress import AvailableExamsResponse
from app.services import progress_service


router = APIRouter(prefix="/exams", tags=["Exams"])


@router.get(
    "/available",
    response_model=AvailableExamsResponse,
    summary="List unlocked exams",
)
async def get_available_exams(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AvailableExamsResponse:
    """Streams whose exam is unlocked (>= 80% watched) and not yet taken."""
    exams = await progress_service.get_available_exams(user_id=user_id, db=db)
    return AvailableExamsResponse(success=True, exams=exams)
