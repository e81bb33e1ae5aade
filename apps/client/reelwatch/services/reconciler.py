"""Optimistic job mutations with compensating re-fetch."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Protocol

from reelwatch.domain.job_fsm import ensure_mutation_allowed
from reelwatch.errors import PreconditionFailed
from reelwatch.repositories.memory import SnapshotStore
from reelwatch.schemas.job import ApproveJobRequest, MutationAction

logger = logging.getLogger(__name__)


class JobMutator(Protocol):
    async def mutate_job(
        self,
        job_id: str,
        action: MutationAction,
        payload: ApproveJobRequest | None = None,
    ) -> Any: ...


class MutationState(str, Enum):
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    RECONCILING = "reconciling"
    RESYNCED = "resynced"


@dataclass(slots=True)
class MutationRecord:
    job_id: str
    action: MutationAction
    state: MutationState = MutationState.APPLIED
    error: Exception | None = None


class MutationReconciler:
    """Two-phase user mutations: local apply, then remote commit.

    On a failed commit an authoritative refresh undoes the local patch
    before the error reaches the caller; when no refresh can be applied the
    patch is reverted locally instead. A successful commit is left for the
    next scheduled poll to confirm.

    ``on_patch`` runs right after a local patch so the caller can discard
    fetches issued before it.
    """

    def __init__(
        self,
        store: SnapshotStore,
        api: JobMutator,
        refresh: Callable[[], Awaitable[bool]],
        *,
        on_patch: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self._api = api
        self._refresh = refresh
        self._on_patch = on_patch
        self._in_flight: dict[str, MutationRecord] = {}

    def is_in_flight(self, job_id: str) -> bool:
        return job_id in self._in_flight

    async def run(
        self,
        job_id: str,
        action: MutationAction,
        payload: ApproveJobRequest | None = None,
    ) -> MutationRecord:
        job = self._store.get(job_id)
        if job is None:
            raise PreconditionFailed(
                code="JOB_NOT_FOUND",
                message="Job not found",
                details={"job_id": job_id},
            )
        ensure_mutation_allowed(action, job.status)

        record = MutationRecord(job_id=job_id, action=action)
        self._in_flight[job_id] = record
        # Approve and reject leave the row as is; the next poll carries the new status.
        position = self._store.index(job_id)
        removed = None
        if action == "delete":
            removed = self._store.remove(job_id)
            if self._on_patch is not None:
                self._on_patch()
        logger.info("mutation.applied job_id=%s action=%s status=%s", job_id, action, job.status.value)

        try:
            await self._api.mutate_job(job_id, action, payload)
        except Exception as exc:
            record.state = MutationState.RECONCILING
            record.error = exc
            logger.warning(
                "mutation.failed job_id=%s action=%s reason=%s",
                job_id,
                action,
                type(exc).__name__,
            )
            if await self._refresh():
                record.state = MutationState.RESYNCED
                logger.info("mutation.resynced job_id=%s action=%s", job_id, action)
            elif removed is not None and position is not None:
                self._store.restore(removed, position)
                logger.warning("mutation.reverted_locally job_id=%s action=%s", job_id, action)
            raise
        else:
            record.state = MutationState.CONFIRMED
            logger.info("mutation.confirmed job_id=%s action=%s", job_id, action)
            return record
        finally:
            self._in_flight.pop(job_id, None)
