"""In-memory state owned by a tracker instance."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import logging

from reelwatch.domain.job_fsm import is_active
from reelwatch.schemas.job import Job, JobsPage, JobsSnapshot

logger = logging.getLogger(__name__)

DEFAULT_ACTIVE_LIMIT = 2

SnapshotListener = Callable[[JobsSnapshot], None]


@dataclass(slots=True)
class SnapshotStore:
    """Ordered job listing plus aggregate counters.

    Holds either the last authoritative snapshot or that snapshot with local
    optimistic patches applied on top. Every mutation publishes a fresh
    ``JobsSnapshot`` to subscribers.
    """

    jobs: list[Job] = field(default_factory=list)
    active_count: int = 0
    active_limit: int = DEFAULT_ACTIVE_LIMIT
    loading: bool = False
    error: str = ""
    scope: str | None = None
    write_count: int = 0
    _listeners: list[SnapshotListener] = field(default_factory=list)

    def view(self) -> JobsSnapshot:
        return JobsSnapshot(
            jobs=tuple(self.jobs),
            active_count=self.active_count,
            active_limit=self.active_limit,
            loading=self.loading,
            error=self.error,
            scope=self.scope,
        )

    def get(self, job_id: str) -> Job | None:
        for job in self.jobs:
            if job.id == job_id:
                return job
        return None

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def replace(self, page: JobsPage) -> None:
        """Swap in an authoritative snapshot."""
        self.jobs = list(page.jobs)
        self.active_count = page.active_count
        if page.active_limit is not None:
            self.active_limit = page.active_limit
        self.error = ""
        self.write_count += 1
        self._publish()

    def remove(self, job_id: str) -> Job | None:
        removed = self.get(job_id)
        if removed is None:
            return None

        self.jobs = [job for job in self.jobs if job.id != job_id]
        if is_active(removed.status):
            self.active_count = max(0, self.active_count - 1)
        self.write_count += 1
        self._publish()
        return removed

    def index(self, job_id: str) -> int | None:
        for position, job in enumerate(self.jobs):
            if job.id == job_id:
                return position
        return None

    def restore(self, job: Job, position: int) -> bool:
        """Put back a job removed locally; a no-op when a poll already re-added it."""
        if self.get(job.id) is not None:
            return False

        self.jobs.insert(min(position, len(self.jobs)), job)
        if is_active(job.status):
            self.active_count += 1
        self.write_count += 1
        self._publish()
        return True

    def set_scope(self, scope: str | None) -> None:
        if scope == self.scope:
            return
        self.scope = scope
        self._publish()

    def set_loading(self, loading: bool) -> None:
        if loading == self.loading:
            return
        self.loading = loading
        self._publish()

    def set_error(self, message: str) -> None:
        self.error = message
        self._publish()

    def _publish(self) -> None:
        snapshot = self.view()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("snapshot.listener_failed listener=%r", listener)


@dataclass(slots=True)
class InMemoryKeyValueStore:
    """Volatile string key-value store, used by tests and the mock profile."""

    values: dict[str, str] = field(default_factory=dict)
    write_count: int = 0

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value
        self.write_count += 1
