"""Turn successive job snapshots into status transition events."""

from __future__ import annotations

from collections.abc import Iterable

from reelwatch.domain.job_fsm import is_ready_arrival
from reelwatch.schemas.job import Job, JobTransition, VideoJobStatus


class StatusDiffDetector:
    """Remembers the last seen status per job id.

    ``observe`` is synchronous so the caller can pair it with the store
    replacement without yielding to the event loop in between.
    """

    def __init__(self) -> None:
        self._previous: dict[str, VideoJobStatus] = {}

    @property
    def previous_statuses(self) -> dict[str, VideoJobStatus]:
        return dict(self._previous)

    def previous_status(self, job_id: str) -> VideoJobStatus | None:
        return self._previous.get(job_id)

    def observe(self, jobs: Iterable[Job]) -> list[JobTransition]:
        transitions: list[JobTransition] = []
        for job in jobs:
            previous = self._previous.get(job.id)
            current = job.status
            if previous is not None and previous is not current:
                transitions.append(
                    JobTransition(
                        job_id=job.id,
                        from_status=previous,
                        to_status=current,
                        title=job.display_title(),
                        notifies=is_ready_arrival(previous, current),
                    )
                )
            # Vanished jobs keep their entry; they may come back with another page or scope.
            self._previous[job.id] = current
        return transitions
