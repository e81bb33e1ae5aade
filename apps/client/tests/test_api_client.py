"""HTTP jobs API client tests."""

from __future__ import annotations

import json
import unittest

import httpx

from reelwatch.adapters.api.client import JobsApiClient
from reelwatch.errors import ApiError
from reelwatch.schemas.job import ApproveJobRequest, VideoJobStatus

BASE_URL = "https://jobs.example.test"

LISTING = {
    "jobs": [
        {
            "id": "a",
            "status": "ready",
            "createdAt": 1,
            "updatedAt": 2,
            "videoTitle": "Sunset",
            "previewUrl": "/api/video-jobs/a/preview",
            "channelId": "c1",
            "isAuto": True,
        },
        {
            "id": "b",
            "status": "downloading",
            "createdAt": 3,
            "updatedAt": 4,
            "prompt": "a cat surfing",
            "previewUrl": "https://cdn.example.test/b.mp4",
        },
    ],
    "activeCount": 1,
    "maxActiveJobs": 3,
}


class JobsApiClientTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response | Exception] = []
        self.sleeps: list[float] = []

    async def asyncTearDown(self) -> None:
        await self.client.aclose()

    def _client(self, **options) -> JobsApiClient:
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
            if isinstance(outcome, Exception):
                raise outcome
            return httpx.Response(outcome.status_code, headers=outcome.headers, content=outcome.content)

        async def record_sleep(delay: float) -> None:
            self.sleeps.append(delay)

        options.setdefault("retry_delay", 1.0)
        self.client = JobsApiClient(
            BASE_URL,
            transport=httpx.MockTransport(handler),
            sleep=record_sleep,
            **options,
        )
        return self.client

    async def test_fetch_jobs_for_channel(self) -> None:
        self.responses = [httpx.Response(200, json=LISTING)]
        client = self._client(token="secret")

        page = await client.fetch_jobs("c1")

        request = self.requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(request.url.path, "/api/video-jobs")
        self.assertEqual(request.url.params.get("channelId"), "c1")
        self.assertEqual(request.headers["Authorization"], "Bearer secret")

        self.assertEqual([job.id for job in page.jobs], ["a", "b"])
        self.assertEqual(page.active_count, 1)
        self.assertEqual(page.active_limit, 3)
        first = page.jobs[0]
        self.assertEqual(first.status, VideoJobStatus.READY)
        self.assertEqual(first.title, "Sunset")
        self.assertTrue(first.is_automated)
        self.assertEqual(first.preview_locator, f"{BASE_URL}/api/video-jobs/a/preview")
        self.assertEqual(page.jobs[1].preview_locator, "https://cdn.example.test/b.mp4")

    async def test_all_scope_omits_channel_filter(self) -> None:
        self.responses = [httpx.Response(200, json={"jobs": []})]
        client = self._client()

        page = await client.fetch_jobs("all")

        self.assertNotIn("channelId", self.requests[0].url.params)
        self.assertIsNone(page.active_limit)
        self.assertNotIn("Authorization", self.requests[0].headers)

    async def test_malformed_listing_is_rejected(self) -> None:
        self.responses = [httpx.Response(200, json={"jobs": "not-a-list"})]
        client = self._client()

        with self.assertLogs("reelwatch.adapters.api.client", level="WARNING"):
            with self.assertRaises(ApiError) as context:
                await client.fetch_jobs("c1")

        self.assertEqual(context.exception.payload.code, "INVALID_RESPONSE")

    async def test_server_error_is_retried(self) -> None:
        self.responses = [httpx.Response(503), httpx.Response(200, json=LISTING)]
        client = self._client()

        page = await client.fetch_jobs("c1")

        self.assertEqual(len(self.requests), 2)
        self.assertEqual(self.sleeps, [1.0])
        self.assertEqual(len(page.jobs), 2)

    async def test_persistent_server_error_surfaces_after_retries(self) -> None:
        self.responses = [httpx.Response(500, json={"error": "Database unavailable"})]
        client = self._client(max_retries=3)

        with self.assertRaises(ApiError) as context:
            await client.fetch_jobs("c1")

        self.assertEqual(len(self.requests), 3)
        self.assertEqual(self.sleeps, [1.0, 2.0])
        self.assertEqual(context.exception.status_code, 500)
        self.assertEqual(context.exception.payload.message, "Database unavailable")

    async def test_client_error_is_not_retried(self) -> None:
        self.responses = [httpx.Response(400, json={"message": "Too many active jobs"})]
        client = self._client()

        with self.assertRaises(ApiError) as context:
            await client.mutate_job("a", "delete")

        self.assertEqual(len(self.requests), 1)
        self.assertEqual(self.sleeps, [])
        error = context.exception
        self.assertEqual(error.status_code, 400)
        self.assertEqual(error.payload.code, "HTTP_ERROR")
        self.assertEqual(error.payload.message, "Too many active jobs")
        self.assertFalse(error.is_network_error)

    async def test_error_without_message_uses_status(self) -> None:
        self.responses = [httpx.Response(404, text="")]
        client = self._client()

        with self.assertRaises(ApiError) as context:
            await client.mutate_job("a", "reject")

        self.assertEqual(context.exception.payload.message, "Request failed with status 404")

    async def test_network_failure_raises_network_error(self) -> None:
        self.responses = [httpx.ConnectError("connection refused")]
        client = self._client(max_retries=3)

        with self.assertLogs("reelwatch.adapters.api.client", level="WARNING"):
            with self.assertRaises(ApiError) as context:
                await client.fetch_jobs("c1")

        error = context.exception
        self.assertTrue(error.is_network_error)
        self.assertEqual(error.status_code, 0)
        self.assertEqual(error.payload.code, "NETWORK_ERROR")
        self.assertEqual(len(self.requests), 3)

    async def test_mutation_routes(self) -> None:
        self.responses = [httpx.Response(200, json={"status": "ok"})]
        client = self._client()

        await client.mutate_job("a", "delete")
        await client.mutate_job("a", "approve", ApproveJobRequest(title="Sunset"))
        await client.mutate_job("a", "approve")
        await client.mutate_job("a", "reject")

        self.assertEqual(
            [(request.method, request.url.path) for request in self.requests],
            [
                ("DELETE", "/api/video-jobs/a"),
                ("POST", "/api/video-jobs/a/approve"),
                ("POST", "/api/video-jobs/a/approve"),
                ("POST", "/api/video-jobs/a/reject"),
            ],
        )
        self.assertEqual(json.loads(self.requests[1].content), {"videoTitle": "Sunset"})
        self.assertEqual(json.loads(self.requests[2].content), {})

    async def test_empty_success_body_returns_empty_dict(self) -> None:
        self.responses = [httpx.Response(204)]
        client = self._client()

        self.assertEqual(await client.mutate_job("a", "delete"), {})

    async def test_push_token_registration(self) -> None:
        self.responses = [httpx.Response(200, json={"success": True})]
        client = self._client()

        await client.register_push_token("device-token-1")
        await client.unregister_push_token("device-token-1")

        self.assertEqual([request.url.path for request in self.requests], ["/api/fcm/register", "/api/fcm/unregister"])
        self.assertEqual(json.loads(self.requests[0].content), {"token": "device-token-1"})


if __name__ == "__main__":
    unittest.main()
