"""Engine composition root."""

from __future__ import annotations

import argparse
import asyncio
import logging

from reelwatch.adapters.api.client import JobsApiClient
from reelwatch.adapters.channels import (
    CommandSoundPlayer,
    DesktopNotificationCenter,
    DesktopPermissionGate,
    InMemoryNotificationCenter,
    RecordingSoundPlayer,
    StaticPermissionGate,
    TerminalBellPlayer,
)
from reelwatch.adapters.push import FirebaseTopicRegistrar, HttpPushRegistrar, MockPushRegistrar, PushRegistrar
from reelwatch.core.config import Settings, get_settings
from reelwatch.repositories.json_file import JsonFileKeyValueStore
from reelwatch.repositories.memory import InMemoryKeyValueStore
from reelwatch.schemas.job import ALL_SCOPE
from reelwatch.services.notifications import NotificationDispatcher
from reelwatch.services.preferences import KeyValueStore, NotificationPreferences
from reelwatch.services.tracker import JobTracker, TransitionCallback

logger = logging.getLogger(__name__)


def _build_api(settings: Settings) -> JobsApiClient:
    return JobsApiClient(
        settings.api_base_url,
        token=settings.api_token,
        timeout=settings.http_timeout_seconds,
        max_retries=settings.http_max_retries,
        retry_delay=settings.http_retry_delay_ms / 1000,
    )


def _build_registrar(settings: Settings, api: JobsApiClient) -> PushRegistrar:
    if settings.push_provider == "mock":
        return MockPushRegistrar()
    if settings.push_provider == "firebase":
        return FirebaseTopicRegistrar(topic=settings.push_topic)
    return HttpPushRegistrar(api)


def create_tracker(
    settings: Settings | None = None,
    *,
    storage: KeyValueStore | None = None,
    api: JobsApiClient | None = None,
    on_transition: TransitionCallback | None = None,
) -> JobTracker:
    settings = settings or get_settings()
    api = api or _build_api(settings)

    if settings.channel_provider == "mock":
        permission_gate = StaticPermissionGate(granted=True)
        sound_player = RecordingSoundPlayer()
        fallback_player = None
        notification_center = InMemoryNotificationCenter()
        storage = storage or InMemoryKeyValueStore()
    else:
        permission_gate = DesktopPermissionGate()
        sound_player = CommandSoundPlayer(settings.sound_file)
        fallback_player = TerminalBellPlayer()
        notification_center = DesktopNotificationCenter()
        storage = storage or JsonFileKeyValueStore(settings.settings_path)

    preferences = NotificationPreferences(
        storage,
        permission_gate,
        _build_registrar(settings, api),
        device_token=settings.push_device_token,
    )
    dispatcher = NotificationDispatcher(
        lambda: preferences.settings,
        sound_player,
        notification_center,
        fallback_player=fallback_player,
        sound_cooldown=settings.sound_cooldown_ms / 1000,
        pacing_delay=settings.pacing_delay_ms / 1000,
        dismiss_after=settings.notification_dismiss_ms / 1000,
    )
    return JobTracker(
        api,
        dispatcher,
        preferences,
        poll_interval=settings.poll_interval_ms / 1000,
        on_transition=on_transition,
    )


async def watch(scope: str, settings: Settings | None = None) -> None:
    """Track ``scope`` until cancelled."""
    settings = settings or get_settings()
    api = _build_api(settings)
    tracker = create_tracker(settings, api=api)
    await tracker.start()
    tracker.activate(scope)
    try:
        await asyncio.Event().wait()
    finally:
        await tracker.aclose()
        await api.aclose()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="reelwatch", description="Watch video generation jobs and notify on completion.")
    parser.add_argument("--channel", default=ALL_SCOPE, help="channel id to watch (default: all channels)")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info("reelwatch.starting scope=%s api=%s", args.channel, settings.api_base_url)
    try:
        asyncio.run(watch(args.channel, settings))
    except KeyboardInterrupt:
        logger.info("reelwatch.stopped")


if __name__ == "__main__":
    main()
