"""Job lifecycle rules as seen from the client."""

from reelwatch.errors import PreconditionFailed
from reelwatch.schemas.job import MutationAction, VideoJobStatus

# Arrival at READY from one of these fires the "video ready" notification.
READY_NOTIFY_SOURCES: frozenset[VideoJobStatus] = frozenset(
    {
        VideoJobStatus.QUEUED,
        VideoJobStatus.SENDING,
        VideoJobStatus.WAITING_VIDEO,
        VideoJobStatus.DOWNLOADING,
    }
)

ACTIVE_STATUSES: frozenset[VideoJobStatus] = frozenset(
    {
        VideoJobStatus.QUEUED,
        VideoJobStatus.SENDING,
        VideoJobStatus.WAITING_VIDEO,
        VideoJobStatus.DOWNLOADING,
        VideoJobStatus.UPLOADING,
    }
)

_MUTATION_REQUIRED_STATUS: dict[str, VideoJobStatus | None] = {
    "delete": None,
    "approve": VideoJobStatus.READY,
    "reject": VideoJobStatus.READY,
}


def is_active(status: VideoJobStatus) -> bool:
    return status in ACTIVE_STATUSES


def is_ready_arrival(previous: VideoJobStatus | None, current: VideoJobStatus) -> bool:
    """True when a job just finished generating; a first sighting never counts."""
    return current is VideoJobStatus.READY and previous in READY_NOTIFY_SOURCES


def ensure_mutation_allowed(action: MutationAction, status: VideoJobStatus) -> None:
    """Validate a user action against the job's local status."""
    required = _MUTATION_REQUIRED_STATUS[action]
    if required is None or status is required:
        return

    raise PreconditionFailed(
        code="MUTATION_NOT_ALLOWED",
        message=f"Cannot {action} a video in status {status.value}; it must be {required.value}",
        details={
            "action": action,
            "current_status": status.value,
            "required_status": required.value,
        },
    )
