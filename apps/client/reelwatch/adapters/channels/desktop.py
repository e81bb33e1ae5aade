"""Desktop channels backed by command line tools.

Sound goes through an audio player command (``paplay``, ``afplay``...)
with the terminal bell as the fallback path. OS notifications go through
``notify-send``; dismissal talks to the freedesktop notification service
over ``gdbus``.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys

from reelwatch.adapters.channels.base import NotificationCenter, NotificationHandle, PermissionGate, SoundPlayer
from reelwatch.errors import DeliveryError

logger = logging.getLogger(__name__)

_PLAYER_COMMANDS = ("paplay", "aplay", "afplay")
_CLOSE_COMMAND = (
    "gdbus",
    "call",
    "--session",
    "--dest",
    "org.freedesktop.Notifications",
    "--object-path",
    "/org/freedesktop/Notifications",
    "--method",
    "org.freedesktop.Notifications.CloseNotification",
)


async def _run(*args: str) -> str:
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise DeliveryError(code="COMMAND_UNAVAILABLE", message=f"Cannot run {args[0]}") from exc

    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        raise DeliveryError(
            code="COMMAND_FAILED",
            message=f"{args[0]} exited with code {process.returncode}",
            details={"stderr": stderr.decode("utf-8", "replace").strip()[:200]},
        )
    return stdout.decode("utf-8", "replace").strip()


class CommandSoundPlayer(SoundPlayer):
    def __init__(self, sound_file: str | None, command: str | None = None) -> None:
        self._sound_file = sound_file
        self._command = command or next((name for name in _PLAYER_COMMANDS if shutil.which(name)), None)

    async def play(self) -> None:
        if not self._sound_file or not self._command:
            raise DeliveryError(code="SOUND_UNAVAILABLE", message="No sound file or audio player configured")
        await _run(self._command, self._sound_file)


class TerminalBellPlayer(SoundPlayer):
    async def play(self) -> None:
        try:
            sys.stderr.write("\a")
            sys.stderr.flush()
        except (OSError, ValueError) as exc:
            raise DeliveryError(code="SOUND_FAILED", message="Terminal bell unavailable") from exc


class _DesktopHandle(NotificationHandle):
    def __init__(self, center: DesktopNotificationCenter, tag: str, show: int) -> None:
        self._center = center
        self._tag = tag
        self._show = show

    async def close(self) -> None:
        await self._center.close(self._tag, self._show)


class DesktopNotificationCenter(NotificationCenter):
    """Replaces the notification previously shown under the same tag.

    A replaced notification keeps its daemon id, so handles are keyed by show
    and only the latest show under a tag can close it.
    """

    def __init__(self, app_name: str = "reelwatch") -> None:
        self._app_name = app_name
        self._shows = 0
        self._latest_by_tag: dict[str, tuple[int, int]] = {}

    async def show(self, title: str, body: str, *, tag: str) -> NotificationHandle:
        args = ["notify-send", "--app-name", self._app_name, "--print-id"]
        latest = self._latest_by_tag.get(tag)
        existing_id = latest[1] if latest is not None else None
        if existing_id is not None:
            args += ["--replace-id", str(existing_id)]
        args += [title, body]

        output = await _run(*args)
        try:
            notification_id = int(output.splitlines()[-1])
        except (IndexError, ValueError):
            notification_id = existing_id or 0
        self._shows += 1
        self._latest_by_tag[tag] = (self._shows, notification_id)
        return _DesktopHandle(self, tag, self._shows)

    async def close(self, tag: str, show: int) -> None:
        latest = self._latest_by_tag.get(tag)
        if latest is None or latest[0] != show:
            return
        del self._latest_by_tag[tag]
        notification_id = latest[1]
        if notification_id:
            await _run(*_CLOSE_COMMAND, str(notification_id))


class DesktopPermissionGate(PermissionGate):
    """Granted when a notification daemon client is installed."""

    def is_granted(self) -> bool:
        return shutil.which("notify-send") is not None

    async def request(self) -> bool:
        granted = self.is_granted()
        if not granted:
            logger.warning("notifications.permission_unavailable reason=notify-send-missing")
        return granted


__all__ = [
    "CommandSoundPlayer",
    "DesktopNotificationCenter",
    "DesktopPermissionGate",
    "TerminalBellPlayer",
]
