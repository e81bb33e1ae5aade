"""Notification schemas."""

from pydantic import BaseModel, ConfigDict


class NotificationSettings(BaseModel):
    """Per-engine channel toggles; persisted through a key-value store."""

    sound_enabled: bool = False
    browser_enabled: bool = False
    permission_granted: bool = False
    push_enabled: bool = False
    push_token_registered: bool = False


class NotificationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    body: str
    job_id: str
