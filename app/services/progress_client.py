"""
Progress Client

Typed client for the progress store's REST contracts:
- GET  /enrollments/my-enrollments
- PUT  /enrollments/topic-progress
- GET  /exams/available

Transport and HTTP failures are mapped onto the tracker error taxonomy.
"""

import logging
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from app.core import http_client
from app.core.config import settings
from app.core.exceptions import AuthRequired, DataNotFound, NetworkFailure
from app.schemas.progress import (
    AvailableExam,
    AvailableExamsResponse,
    MyEnrollmentsResponse,
    StreamEnrollment,
    UpdateTopicProgressData,
    UpdateTopicProgressResponse,
)


logger = logging.getLogger(__name__)


class ProgressClient:
    """Bearer-authenticated client for the progress store."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        reconcile_max_retries: Optional[int] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Store API root, defaults to PROGRESS_API_BASE_URL.
            reconcile_max_retries: Transport retries for progress updates.
        """
        self.base_url = (base_url or settings.PROGRESS_API_BASE_URL).rstrip("/")
        self.reconcile_max_retries = (
            reconcile_max_retries
            if reconcile_max_retries is not None
            else settings.RECONCILE_MAX_RETRIES
        )

    async def get_my_enrollments(self, token: str) -> List[StreamEnrollment]:
        """
        Fetch every stream enrollment of the current user.

        Raises:
            AuthRequired, NetworkFailure, DataNotFound.
        """
        data = await self._request("GET", "/enrollments/my-enrollments", token)
        return self._parse(MyEnrollmentsResponse, data).enrollments

    async def find_enrollment(self, token: str, stream: str) -> StreamEnrollment:
        """
        Fetch the enrollment for one stream (case-insensitive match).

        Raises:
            DataNotFound: If the user is not enrolled in the stream.
        """
        for enrollment in await self.get_my_enrollments(token):
            if enrollment.stream.lower() == stream.lower():
                return enrollment
        raise DataNotFound(f"No enrollment found for stream {stream!r}")

    async def update_topic_progress(
        self,
        token: str,
        payload: UpdateTopicProgressData,
    ) -> UpdateTopicProgressResponse:
        """
        Push one topic's watched duration to the store.

        Raises:
            AuthRequired, NetworkFailure, DataNotFound.
        """
        data = await self._request(
            "PUT",
            "/enrollments/topic-progress",
            token,
            json=payload.model_dump(by_alias=True, exclude_none=True),
            max_retries=self.reconcile_max_retries,
        )
        return self._parse(UpdateTopicProgressResponse, data)

    async def get_available_exams(self, token: str) -> List[AvailableExam]:
        """Exams the learner has unlocked."""
        data = await self._request("GET", "/exams/available", token)
        return self._parse(AvailableExamsResponse, data).exams

    # ============== Internals ==============

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        max_retries: int = http_client.MAX_RETRIES,
        **kwargs: Any,
    ) -> dict:
        if not token:
            raise AuthRequired()

        url = f"{self.base_url}{path}"
        try:
            response = await http_client.request_with_retry(
                method,
                url,
                max_retries=max_retries,
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise NetworkFailure(f"{method} {path} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthRequired(f"Store rejected the token ({response.status_code})")
        if response.status_code == 404:
            raise DataNotFound(self._error_detail(response) or f"{path} not found")
        if response.status_code >= 400:
            raise NetworkFailure(
                self._error_detail(response) or f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise NetworkFailure(f"Invalid JSON from {path}", status_code=response.status_code) from e

        if not isinstance(data, dict) or data.get("success") is False:
            message = data.get("message") if isinstance(data, dict) else None
            raise NetworkFailure(message or f"{path} reported failure", status_code=response.status_code)
        return data

    @staticmethod
    def _parse(model, data: dict):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise NetworkFailure(f"Unexpected response shape: {e.error_count()} errors") from e

    @staticmethod
    def _error_detail(response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("message")
            return str(detail) if detail else None
        return None
