"""Notification delivery channel adapters."""

from .base import NotificationCenter, NotificationHandle, PermissionGate, SoundPlayer
from .desktop import CommandSoundPlayer, DesktopNotificationCenter, DesktopPermissionGate, TerminalBellPlayer
from .mock_channels import InMemoryNotificationCenter, RecordingSoundPlayer, StaticPermissionGate

__all__ = [
    "NotificationCenter",
    "NotificationHandle",
    "PermissionGate",
    "SoundPlayer",
    "CommandSoundPlayer",
    "DesktopNotificationCenter",
    "DesktopPermissionGate",
    "TerminalBellPlayer",
    "InMemoryNotificationCenter",
    "RecordingSoundPlayer",
    "StaticPermissionGate",
]
