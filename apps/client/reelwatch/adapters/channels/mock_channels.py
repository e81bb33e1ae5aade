"""In-memory channels for local development and tests."""

from __future__ import annotations

from dataclasses import dataclass

from reelwatch.adapters.channels.base import NotificationCenter, NotificationHandle, PermissionGate, SoundPlayer
from reelwatch.errors import DeliveryError


class RecordingSoundPlayer(SoundPlayer):
    """Counts plays; ``fail=True`` makes every play raise."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.play_count = 0

    async def play(self) -> None:
        if self.fail:
            raise DeliveryError(code="SOUND_FAILED", message="Sound playback failed")
        self.play_count += 1


@dataclass(slots=True)
class ShownNotification:
    title: str
    body: str
    tag: str


class _MemoryHandle(NotificationHandle):
    def __init__(self, center: InMemoryNotificationCenter, tag: str) -> None:
        self._center = center
        self._tag = tag

    async def close(self) -> None:
        self._center.dismiss(self._tag)


class InMemoryNotificationCenter(NotificationCenter):
    """Mimics OS coalescing: one visible notification per tag."""

    def __init__(self) -> None:
        self.visible: dict[str, ShownNotification] = {}
        self.history: list[ShownNotification] = []
        self.closed_tags: list[str] = []

    async def show(self, title: str, body: str, *, tag: str) -> NotificationHandle:
        shown = ShownNotification(title=title, body=body, tag=tag)
        self.visible[tag] = shown
        self.history.append(shown)
        return _MemoryHandle(self, tag)

    def dismiss(self, tag: str) -> None:
        if self.visible.pop(tag, None) is not None:
            self.closed_tags.append(tag)


class StaticPermissionGate(PermissionGate):
    def __init__(self, granted: bool = True) -> None:
        self.granted = granted
        self.request_count = 0

    def is_granted(self) -> bool:
        return self.granted

    async def request(self) -> bool:
        self.request_count += 1
        return self.granted


__all__ = ["InMemoryNotificationCenter", "RecordingSoundPlayer", "ShownNotification", "StaticPermissionGate"]
