"""Video job schemas."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class VideoJobStatus(str, Enum):
    QUEUED = "queued"
    SENDING = "sending"
    WAITING_VIDEO = "waiting_video"
    DOWNLOADING = "downloading"
    READY = "ready"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    REJECTED = "rejected"
    ERROR = "error"
    TIMEOUT = "syntax_timeout"
    CANCELLED = "cancelled"


MutationAction = Literal["delete", "approve", "reject"]

# Scope key that lists jobs across every channel.
ALL_SCOPE = "all"


class Job(BaseModel):
    """One job record as listed by ``GET /api/video-jobs``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    status: VideoJobStatus
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")
    title: str | None = Field(default=None, alias="videoTitle")
    prompt: str | None = None
    error_message: str | None = Field(default=None, alias="errorMessage")
    preview_locator: str | None = Field(default=None, alias="previewUrl")
    upload_locator: str | None = Field(default=None, alias="webViewLink")
    download_locator: str | None = Field(default=None, alias="webContentLink")
    drive_file_id: str | None = Field(default=None, alias="driveFileId")
    channel_id: str | None = Field(default=None, alias="channelId")
    channel_name: str | None = Field(default=None, alias="channelName")
    is_automated: bool = Field(default=False, alias="isAuto")

    def display_title(self, limit: int = 60) -> str:
        if self.title:
            return self.title
        prompt = self.prompt or ""
        if len(prompt) > limit:
            return prompt[:limit] + "..."
        return prompt or self.id


class JobsPage(BaseModel):
    """One authoritative listing of jobs for a scope."""

    model_config = ConfigDict(populate_by_name=True)

    jobs: list[Job] = Field(default_factory=list)
    active_count: int = Field(default=0, alias="activeCount")
    active_limit: int | None = Field(default=None, alias="maxActiveJobs")


class JobsSnapshot(BaseModel):
    """Read-only view published to subscribers of the tracker."""

    model_config = ConfigDict(frozen=True)

    jobs: tuple[Job, ...] = ()
    active_count: int = 0
    active_limit: int = 2
    loading: bool = False
    error: str = ""
    scope: str | None = None


class JobTransition(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str
    from_status: VideoJobStatus
    to_status: VideoJobStatus
    title: str
    notifies: bool = False


class ApproveJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = Field(default=None, alias="videoTitle")
