"""
API v1 Router

Routes consumed by the watch-progress tracker.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import enrollments, exams

router = APIRouter()

# Enrollments and topic progress
router.include_router(enrollments.router)

# Exam availability
router.include_router(exams.router)
