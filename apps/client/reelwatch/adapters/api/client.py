"""HTTP client for the video jobs API.

Transport only: every method either returns parsed data or raises
``ApiError``. Network errors and 5xx responses are retried with a linear
delay; 4xx responses are returned to the caller as errors immediately.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from reelwatch.core.logging_safety import describe_scope
from reelwatch.errors import ApiError
from reelwatch.schemas.job import ALL_SCOPE, ApproveJobRequest, Job, JobsPage, MutationAction

logger = logging.getLogger(__name__)

JOBS_PATH = "/api/video-jobs"
PUSH_REGISTER_PATH = "/api/fcm/register"
PUSH_UNREGISTER_PATH = "/api/fcm/unregister"


class JobsApiClient:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay
        self._sleep = sleep
        headers = {"Authorization": f"Bearer {token}"} if token else None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def resolve_url(self, path: str | None) -> str | None:
        if not path:
            return None
        if path.startswith(("http://", "https://")):
            return path
        normalized = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url}{normalized}"

    async def fetch_jobs(self, scope: str) -> JobsPage:
        """GET the job listing for a channel id or ``"all"``."""
        params = None if scope == ALL_SCOPE else {"channelId": scope}
        data = await self._request_json("GET", JOBS_PATH, params=params)
        try:
            page = JobsPage.model_validate(data)
        except ValidationError as exc:
            logger.warning("jobs.fetch_invalid scope=%s errors=%d", describe_scope(scope), exc.error_count())
            raise ApiError(
                status_code=200,
                code="INVALID_RESPONSE",
                message="Unexpected response format",
            ) from exc

        page.jobs = [self._with_resolved_preview(job) for job in page.jobs]
        return page

    async def mutate_job(
        self,
        job_id: str,
        action: MutationAction,
        payload: ApproveJobRequest | None = None,
    ) -> dict[str, Any]:
        if action == "delete":
            return await self._request_json("DELETE", f"{JOBS_PATH}/{job_id}")
        if action == "approve":
            body = (payload or ApproveJobRequest()).model_dump(by_alias=True, exclude_none=True)
            return await self._request_json("POST", f"{JOBS_PATH}/{job_id}/approve", json=body)
        if action == "reject":
            return await self._request_json("POST", f"{JOBS_PATH}/{job_id}/reject")
        raise ValueError(f"unsupported job action: {action}")

    async def register_push_token(self, token: str) -> None:
        await self._request_json("POST", PUSH_REGISTER_PATH, json={"token": token})

    async def unregister_push_token(self, token: str) -> None:
        await self._request_json("POST", PUSH_UNREGISTER_PATH, json={"token": token})

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._send_with_retry(method, path, **kwargs)
        if response.is_error:
            raise self._error_from_response(response)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                status_code=response.status_code,
                code="INVALID_RESPONSE",
                message="Unexpected response format",
            ) from exc

    async def _send_with_retry(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        last_error: httpx.RequestError | None = None
        response: httpx.Response | None = None

        for attempt in range(1, self._max_retries + 1):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.RequestError as exc:
                last_error = exc
                response = None
                logger.info(
                    "api.request_failed method=%s path=%s attempt=%d reason=%s",
                    method,
                    path,
                    attempt,
                    type(exc).__name__,
                )
            else:
                if response.status_code < 500:
                    return response
                logger.info(
                    "api.server_error method=%s path=%s attempt=%d status=%d",
                    method,
                    path,
                    attempt,
                    response.status_code,
                )

            if attempt < self._max_retries:
                await self._sleep(self._retry_delay * attempt)

        if response is not None:
            return response

        logger.warning("api.network_error method=%s path=%s attempts=%d", method, path, self._max_retries)
        raise ApiError(
            status_code=0,
            code="NETWORK_ERROR",
            message="Could not reach the server",
            details={"reason": type(last_error).__name__},
            is_network_error=True,
        ) from last_error

    @staticmethod
    def _error_from_response(response: httpx.Response) -> ApiError:
        body: Any = None
        try:
            if "application/json" in response.headers.get("content-type", ""):
                body = response.json()
            else:
                body = response.text
        except ValueError:
            body = None

        message = f"Request failed with status {response.status_code}"
        if isinstance(body, dict):
            for key in ("error", "message"):
                if body.get(key):
                    message = str(body[key])
                    break

        return ApiError(
            status_code=response.status_code,
            code="HTTP_ERROR",
            message=message,
            details={"body": body} if body else None,
        )

    def _with_resolved_preview(self, job: Job) -> Job:
        if not job.preview_locator:
            return job
        return job.model_copy(update={"preview_locator": self.resolve_url(job.preview_locator)})
