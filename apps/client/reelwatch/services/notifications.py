"""Serialized notification delivery.

One worker task drains a FIFO of ``NotificationRequest`` items. Each request
fans out to the sound and OS notification channels according to the
settings at the moment it is dequeued. Sound plays are rate limited
globally; OS notifications are coalesced per job by their tag.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
import logging
import time

from reelwatch.adapters.channels.base import NotificationCenter, NotificationHandle, SoundPlayer
from reelwatch.schemas.notification import NotificationRequest, NotificationSettings

logger = logging.getLogger(__name__)

VIDEO_READY_TITLE = "Video ready"
DEFAULT_SOUND_COOLDOWN = 2.0
DEFAULT_PACING_DELAY = 0.5
DEFAULT_DISMISS_AFTER = 5.0


def dedup_key(job_id: str) -> str:
    """Tag under which the OS coalesces notifications about one job."""
    return f"video-ready-{job_id}"


def build_video_ready_request(job_title: str, job_id: str) -> NotificationRequest:
    return NotificationRequest(
        title=VIDEO_READY_TITLE,
        body=f'Video "{job_title}" has been generated and is ready to view',
        job_id=job_id,
    )


class NotificationDispatcher:
    def __init__(
        self,
        settings_provider: Callable[[], NotificationSettings],
        sound_player: SoundPlayer,
        notification_center: NotificationCenter,
        *,
        fallback_player: SoundPlayer | None = None,
        sound_cooldown: float = DEFAULT_SOUND_COOLDOWN,
        pacing_delay: float = DEFAULT_PACING_DELAY,
        dismiss_after: float = DEFAULT_DISMISS_AFTER,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings_provider = settings_provider
        self._sound_player = sound_player
        self._fallback_player = fallback_player
        self._notification_center = notification_center
        self._sound_cooldown = sound_cooldown
        self._pacing_delay = pacing_delay
        self._dismiss_after = dismiss_after
        self._clock = clock
        self._sleep = sleep

        self._queue: deque[NotificationRequest] = deque()
        self._draining = False
        self._worker: asyncio.Task[None] | None = None
        self._last_sound_at: float | None = None
        self._pending_dismissals: dict[asyncio.Task[None], NotificationHandle] = {}

        self.worker_starts = 0
        self.processed_count = 0
        self.dropped_count = 0
        self.sound_play_count = 0

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def is_draining(self) -> bool:
        return self._draining

    def enqueue(self, request: NotificationRequest) -> None:
        self._queue.append(request)
        logger.debug("notify.enqueued job_id=%s pending=%d", request.job_id, len(self._queue))
        if self._draining:
            return

        self._draining = True
        self.worker_starts += 1
        self._worker = asyncio.create_task(self._drain())

    async def drain(self) -> None:
        """Wait until the current worker has emptied the queue."""
        if self._worker is not None:
            await self._worker

    async def close(self) -> None:
        await self.drain()
        for task, handle in list(self._pending_dismissals.items()):
            task.cancel()
            await self._close_handle(handle)
        self._pending_dismissals.clear()

    async def _drain(self) -> None:
        try:
            while self._queue:
                request = self._queue.popleft()
                if await self._process(request):
                    await self._sleep(self._pacing_delay)
        finally:
            self._draining = False

    async def _process(self, request: NotificationRequest) -> bool:
        settings = self._settings_provider()
        if not settings.sound_enabled and not settings.browser_enabled:
            self.dropped_count += 1
            logger.debug("notify.dropped job_id=%s reason=channels-disabled", request.job_id)
            return False

        if settings.sound_enabled:
            await self._play_sound(request)

        if settings.browser_enabled and settings.permission_granted:
            await self._show_notification(request)

        self.processed_count += 1
        return True

    async def _play_sound(self, request: NotificationRequest) -> None:
        now = self._clock()
        if self._last_sound_at is not None and now - self._last_sound_at < self._sound_cooldown:
            logger.debug("notify.sound_skipped job_id=%s reason=cooldown", request.job_id)
            return
        self._last_sound_at = now

        try:
            await self._sound_player.play()
        except Exception as exc:
            logger.warning("notify.sound_failed job_id=%s reason=%s", request.job_id, type(exc).__name__)
        else:
            self.sound_play_count += 1
            return

        if self._fallback_player is None:
            return
        try:
            await self._fallback_player.play()
        except Exception as exc:
            logger.warning("notify.fallback_sound_failed job_id=%s reason=%s", request.job_id, type(exc).__name__)
        else:
            self.sound_play_count += 1

    async def _show_notification(self, request: NotificationRequest) -> None:
        try:
            handle = await self._notification_center.show(
                request.title,
                request.body,
                tag=dedup_key(request.job_id),
            )
        except Exception as exc:
            logger.warning("notify.show_failed job_id=%s reason=%s", request.job_id, type(exc).__name__)
            return

        task = asyncio.create_task(self._dismiss_later(handle))
        self._pending_dismissals[task] = handle
        task.add_done_callback(lambda done: self._pending_dismissals.pop(done, None))

    async def _dismiss_later(self, handle: NotificationHandle) -> None:
        await self._sleep(self._dismiss_after)
        await self._close_handle(handle)

    @staticmethod
    async def _close_handle(handle: NotificationHandle) -> None:
        try:
            await handle.close()
        except Exception as exc:
            logger.warning("notify.dismiss_failed reason=%s", type(exc).__name__)
