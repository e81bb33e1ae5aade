"""Notification channel interfaces."""

from abc import ABC, abstractmethod


class SoundPlayer(ABC):
    @abstractmethod
    async def play(self) -> None:
        """Play the notification sound once; raise ``DeliveryError`` on failure."""


class NotificationHandle(ABC):
    @abstractmethod
    async def close(self) -> None:
        """Dismiss the notification; closing twice is a no-op."""


class NotificationCenter(ABC):
    """OS-level notification surface.

    Notifications sharing a ``tag`` replace each other instead of stacking.
    """

    @abstractmethod
    async def show(self, title: str, body: str, *, tag: str) -> NotificationHandle:
        """Display a notification and return a handle to dismiss it."""


class PermissionGate(ABC):
    @abstractmethod
    def is_granted(self) -> bool:
        """Current permission without prompting."""

    @abstractmethod
    async def request(self) -> bool:
        """Ask for permission when still undecided and report the outcome."""


__all__ = ["NotificationCenter", "NotificationHandle", "PermissionGate", "SoundPlayer"]
