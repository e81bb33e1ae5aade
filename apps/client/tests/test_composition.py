"""Configuration, wiring and push adapter tests."""

from __future__ import annotations

import os
import sys
import types
import unittest
from unittest.mock import patch

import httpx

from fakes import make_job, make_page, settle
from reelwatch.adapters.api.client import JobsApiClient
from reelwatch.adapters.push import FirebaseTopicRegistrar, HttpPushRegistrar, MockPushRegistrar
from reelwatch.core.config import Settings, get_settings
from reelwatch.core.logging_safety import safe_log_identifier
from reelwatch.errors import DeliveryError
from reelwatch.main import _build_registrar, create_tracker
from reelwatch.schemas.job import VideoJobStatus


class SettingsEnvTests(unittest.TestCase):
    _env_keys = ("REELWATCH_POLL_INTERVAL_MS", "REELWATCH_PUSH_PROVIDER", "REELWATCH_API_BASE_URL")

    def setUp(self) -> None:
        self._old_env = {k: os.environ.get(k) for k in self._env_keys}
        os.environ["REELWATCH_POLL_INTERVAL_MS"] = "1500"
        os.environ["REELWATCH_PUSH_PROVIDER"] = "firebase"
        os.environ["REELWATCH_API_BASE_URL"] = "https://jobs.example.test"
        get_settings.cache_clear()

    def tearDown(self) -> None:
        for key, value in self._old_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        get_settings.cache_clear()

    def test_environment_overrides_defaults(self) -> None:
        settings = get_settings()

        self.assertEqual(settings.poll_interval_ms, 1500)
        self.assertEqual(settings.push_provider, "firebase")
        self.assertEqual(settings.api_base_url, "https://jobs.example.test")
        self.assertEqual(settings.sound_cooldown_ms, 2000)
        self.assertIs(get_settings(), settings)

    def test_safe_log_identifier_hides_raw_value(self) -> None:
        token = safe_log_identifier("device-token-1", prefix="ptk")

        self.assertTrue(token.startswith("ptk-"))
        self.assertNotIn("device-token-1", token)
        self.assertEqual(token, safe_log_identifier(" device-token-1 ", prefix="ptk"))
        self.assertEqual(safe_log_identifier(None, prefix="ptk"), "ptk-missing")


class CompositionTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.pages = {"c1": make_page(make_job("a", VideoJobStatus.DOWNLOADING, title="Sunset"))}

        def handler(request: httpx.Request) -> httpx.Response:
            page = self.pages[request.url.params.get("channelId", "all")]
            return httpx.Response(200, json=page.model_dump(mode="json", by_alias=True))

        self.api = JobsApiClient("https://jobs.example.test", transport=httpx.MockTransport(handler))

    async def asyncTearDown(self) -> None:
        await self.api.aclose()

    def test_registrar_follows_push_provider(self) -> None:
        cases = {"mock": MockPushRegistrar, "http": HttpPushRegistrar, "firebase": FirebaseTopicRegistrar}
        for provider, expected in cases.items():
            with self.subTest(provider=provider):
                registrar = _build_registrar(Settings(push_provider=provider), self.api)
                self.assertIsInstance(registrar, expected)

    async def test_mock_profile_tracks_and_notifies_end_to_end(self) -> None:
        settings = Settings(
            channel_provider="mock",
            push_provider="mock",
            poll_interval_ms=60_000,
            pacing_delay_ms=0,
        )
        transitions = []
        tracker = create_tracker(settings, api=self.api, on_transition=lambda *args: transitions.append(args))
        tracker.set_sound_enabled(True)
        try:
            tracker.activate("c1")
            await settle(50)
            self.pages["c1"] = make_page(make_job("a", VideoJobStatus.READY, title="Sunset"))
            self.assertTrue(await tracker.refresh())
            await tracker.dispatcher.drain()
        finally:
            await tracker.aclose()

        self.assertEqual(transitions, [("a", VideoJobStatus.DOWNLOADING, VideoJobStatus.READY)])
        self.assertEqual(tracker.dispatcher.processed_count, 1)
        self.assertEqual(tracker.dispatcher.sound_play_count, 1)


class HttpPushRegistrarTests(unittest.IsolatedAsyncioTestCase):
    async def test_api_failure_becomes_delivery_error(self) -> None:
        api = JobsApiClient(
            "https://jobs.example.test",
            max_retries=1,
            transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "Unauthorized"})),
        )
        try:
            with self.assertRaises(DeliveryError) as context:
                await HttpPushRegistrar(api).register("device-token-1")
        finally:
            await api.aclose()

        self.assertEqual(context.exception.payload.code, "PUSH_REGISTRATION_FAILED")
        self.assertEqual(context.exception.payload.details, {"status_code": 401})


class FirebaseTopicRegistrarTests(unittest.IsolatedAsyncioTestCase):
    @staticmethod
    def _fake_firebase_modules(failures: list[str]) -> tuple[dict[str, types.ModuleType], list[tuple]]:
        fake_admin = types.ModuleType("firebase_admin")
        fake_messaging = types.ModuleType("firebase_admin.messaging")
        calls: list[tuple] = []

        fake_admin._apps = []

        def initialize_app() -> object:
            app_handle = object()
            fake_admin._apps.append(app_handle)
            return app_handle

        def _response(tokens: list[str]) -> types.SimpleNamespace:
            errors = [types.SimpleNamespace(reason=reason) for reason in failures]
            return types.SimpleNamespace(
                success_count=len(tokens) - len(errors),
                failure_count=len(errors),
                errors=errors,
            )

        def subscribe_to_topic(tokens: list[str], topic: str) -> types.SimpleNamespace:
            calls.append(("subscribe", tuple(tokens), topic))
            return _response(tokens)

        def unsubscribe_from_topic(tokens: list[str], topic: str) -> types.SimpleNamespace:
            calls.append(("unsubscribe", tuple(tokens), topic))
            return _response(tokens)

        fake_admin.initialize_app = initialize_app
        fake_admin.messaging = fake_messaging
        fake_messaging.subscribe_to_topic = subscribe_to_topic
        fake_messaging.unsubscribe_from_topic = unsubscribe_from_topic

        return {"firebase_admin": fake_admin, "firebase_admin.messaging": fake_messaging}, calls

    async def test_register_and_unregister_manage_topic(self) -> None:
        fake_modules, calls = self._fake_firebase_modules([])

        with patch.dict(sys.modules, fake_modules):
            registrar = FirebaseTopicRegistrar(topic="video-ready")
            await registrar.register("device-token-1")
            await registrar.unregister("device-token-1")

        self.assertEqual(
            calls,
            [
                ("subscribe", ("device-token-1",), "video-ready"),
                ("unsubscribe", ("device-token-1",), "video-ready"),
            ],
        )

    async def test_rejected_token_raises_delivery_error(self) -> None:
        fake_modules, _ = self._fake_firebase_modules(["invalid-argument"])

        with patch.dict(sys.modules, fake_modules):
            registrar = FirebaseTopicRegistrar(topic="video-ready")
            with self.assertRaises(DeliveryError) as context:
                await registrar.register("device-token-1")

        self.assertEqual(context.exception.payload.code, "PUSH_REGISTRATION_FAILED")
        self.assertEqual(context.exception.payload.details["reasons"], ["invalid-argument"])


if __name__ == "__main__":
    unittest.main()
