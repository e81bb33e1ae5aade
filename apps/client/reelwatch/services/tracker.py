"""Job tracking engine exposed to the host UI."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from functools import partial
import logging
from typing import Any, Protocol

from reelwatch.core.logging_safety import describe_scope
from reelwatch.domain.status_diff import StatusDiffDetector
from reelwatch.errors import PreconditionFailed
from reelwatch.repositories.memory import SnapshotListener, SnapshotStore
from reelwatch.schemas.job import (
    ApproveJobRequest,
    JobsPage,
    JobsSnapshot,
    JobTransition,
    MutationAction,
    VideoJobStatus,
)
from reelwatch.schemas.notification import NotificationSettings
from reelwatch.services.notifications import NotificationDispatcher, build_video_ready_request
from reelwatch.services.preferences import NotificationPreferences
from reelwatch.services.reconciler import MutationReconciler, MutationRecord
from reelwatch.services.scheduler import PollingScheduler

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 3.0
_FETCH_ERROR_FALLBACK = "Failed to load jobs"

TransitionCallback = Callable[[str, VideoJobStatus, VideoJobStatus], None]


class JobsApi(Protocol):
    async def fetch_jobs(self, scope: str) -> JobsPage: ...

    async def mutate_job(
        self,
        job_id: str,
        action: MutationAction,
        payload: ApproveJobRequest | None = None,
    ) -> Any: ...


class JobTracker:
    """Polls the jobs listing for one scope and turns changes into notifications.

    Scope is a channel id, ``"all"``, or ``None`` when nothing is attached.
    All state changes happen on the event loop thread; a snapshot's diff
    and its store replacement run without an ``await`` in between.
    """

    def __init__(
        self,
        api: JobsApi,
        dispatcher: NotificationDispatcher,
        preferences: NotificationPreferences,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_transition: TransitionCallback | None = None,
        store: SnapshotStore | None = None,
        detector: StatusDiffDetector | None = None,
        scheduler: PollingScheduler | None = None,
    ) -> None:
        self._api = api
        self._dispatcher = dispatcher
        self._preferences = preferences
        self._poll_interval = poll_interval
        self.on_transition = on_transition
        self._store = store or SnapshotStore()
        self._detector = detector or StatusDiffDetector()
        self._scheduler = scheduler or PollingScheduler()
        self._reconciler = MutationReconciler(self._store, api, self.refresh, on_patch=self._fence_fetches)

        self._scope: str | None = None
        self._fetch_seq = 0
        self._applied_seq = 0
        self._active_fetches = 0
        self._polling_generations: set[int] = set()

    @property
    def snapshot(self) -> JobsSnapshot:
        return self._store.view()

    @property
    def scope(self) -> str | None:
        return self._scope

    @property
    def settings(self) -> NotificationSettings:
        return self._preferences.settings

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    @property
    def scheduler(self) -> PollingScheduler:
        return self._scheduler

    @property
    def detector(self) -> StatusDiffDetector:
        return self._detector

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        return self._store.subscribe(listener)

    async def start(self) -> None:
        await self._preferences.restore_push()

    async def aclose(self) -> None:
        self.deactivate()
        await self._scheduler.wait_idle()
        await self._dispatcher.close()

    # Polling

    def activate(self, scope: str | None) -> None:
        if scope is None:
            self.deactivate()
            return
        if scope == self._scope and self._scheduler.running:
            return

        self._scope = scope
        self._store.set_scope(scope)
        generation = self._scheduler.start(self._poll_interval, partial(self._poll, scope=scope))
        logger.info("poll.activated scope=%s generation=%d", scope, generation)

    def deactivate(self) -> None:
        self._scheduler.stop()
        if self._scope is not None:
            logger.info("poll.deactivated scope=%s", self._scope)
        self._scope = None
        self._store.set_scope(None)

    async def refresh(self) -> bool:
        """Fetch now, bypassing the in-flight guard; False when nothing was applied."""
        scope = self._scope
        if scope is None:
            return False
        return await self._fetch_and_apply(self._scheduler.generation, scope)

    async def _poll(self, generation: int, *, scope: str) -> None:
        if generation in self._polling_generations:
            logger.debug("poll.skipped scope=%s generation=%d reason=in-flight", scope, generation)
            return

        self._polling_generations.add(generation)
        try:
            await self._fetch_and_apply(generation, scope)
        finally:
            self._polling_generations.discard(generation)

    async def _fetch_and_apply(self, generation: int, scope: str) -> bool:
        self._fetch_seq += 1
        seq = self._fetch_seq
        self._begin_loading()
        try:
            page = await self._api.fetch_jobs(scope)
        except Exception as exc:
            logger.warning(
                "poll.failed scope=%s generation=%d reason=%s",
                describe_scope(scope),
                generation,
                type(exc).__name__,
            )
            if self._scheduler.is_current(generation):
                payload = getattr(exc, "payload", None)
                self._store.set_error(payload.message if payload is not None else _FETCH_ERROR_FALLBACK)
            return False
        finally:
            self._end_loading()

        if not self._scheduler.is_current(generation):
            logger.info("poll.discarded scope=%s generation=%d reason=stale-generation", scope, generation)
            return False
        if seq < self._applied_seq:
            logger.info("poll.discarded scope=%s seq=%d reason=out-of-order", scope, seq)
            return False

        self._applied_seq = seq
        self._apply(page)
        return True

    def _fence_fetches(self) -> None:
        # Fetches issued before a local patch may still list the patched row.
        self._fetch_seq += 1
        self._applied_seq = self._fetch_seq

    def _apply(self, page: JobsPage) -> None:
        transitions = self._detector.observe(page.jobs)
        self._store.replace(page)
        for transition in transitions:
            if transition.notifies:
                self._dispatcher.enqueue(build_video_ready_request(transition.title, transition.job_id))
            self._emit_transition(transition)

    def _emit_transition(self, transition: JobTransition) -> None:
        logger.info(
            "job.transition job_id=%s from=%s to=%s",
            transition.job_id,
            transition.from_status.value,
            transition.to_status.value,
        )
        if self.on_transition is None:
            return
        try:
            self.on_transition(transition.job_id, transition.from_status, transition.to_status)
        except Exception:
            logger.exception("job.transition_callback_failed job_id=%s", transition.job_id)

    def _begin_loading(self) -> None:
        self._active_fetches += 1
        self._store.set_loading(True)

    def _end_loading(self) -> None:
        self._active_fetches = max(0, self._active_fetches - 1)
        if self._active_fetches == 0:
            self._store.set_loading(False)

    # Mutations

    def remove(self, job_id: str) -> bool:
        """Drop a job from the local snapshot only."""
        return self._store.remove(job_id) is not None

    async def delete(self, job_id: str) -> MutationRecord:
        return await self._mutate(job_id, "delete")

    async def approve(self, job_id: str, title: str | None = None) -> MutationRecord:
        cleaned = title.strip() if title else None
        return await self._mutate(job_id, "approve", ApproveJobRequest(title=cleaned or None))

    async def reject(self, job_id: str) -> MutationRecord:
        return await self._mutate(job_id, "reject")

    def is_mutating(self, job_id: str) -> bool:
        return self._reconciler.is_in_flight(job_id)

    async def _mutate(
        self,
        job_id: str,
        action: MutationAction,
        payload: ApproveJobRequest | None = None,
    ) -> MutationRecord:
        if self._reconciler.is_in_flight(job_id):
            raise PreconditionFailed(
                code="MUTATION_IN_FLIGHT",
                message="Another action on this job is still in progress",
                details={"job_id": job_id, "action": action},
            )
        return await self._reconciler.run(job_id, action, payload)

    # Notifications

    def set_sound_enabled(self, enabled: bool) -> None:
        self._preferences.set_sound_enabled(enabled)

    async def set_browser_enabled(self, enabled: bool) -> bool:
        return await self._preferences.set_browser_enabled(enabled)

    async def set_push_enabled(self, enabled: bool) -> bool:
        return await self._preferences.set_push_enabled(enabled)

    async def request_permission(self) -> bool:
        return await self._preferences.request_permission()

    def handle_push_message(self, message: Mapping[str, Any]) -> bool:
        """Route a push payload received while running into the notification queue."""
        notification = message.get("notification") or {}
        data = message.get("data") or {}
        job_id = data.get("jobId")
        if not notification or not job_id:
            logger.debug("push.message_ignored reason=missing-fields")
            return False

        title = data.get("jobTitle") or notification.get("title") or "Video"
        self._dispatcher.enqueue(build_video_ready_request(str(title), str(job_id)))
        return True
