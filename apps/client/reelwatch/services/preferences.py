"""Notification channel toggles and push enrollment."""

from __future__ import annotations

import logging
from typing import Protocol

from reelwatch.adapters.channels.base import PermissionGate
from reelwatch.adapters.push.base import PushRegistrar
from reelwatch.core.logging_safety import safe_log_identifier
from reelwatch.errors import DeliveryError
from reelwatch.schemas.notification import NotificationSettings

logger = logging.getLogger(__name__)

STORAGE_KEY_SOUND = "notifications_sound_enabled"
STORAGE_KEY_BROWSER = "notifications_browser_enabled"
STORAGE_KEY_PUSH = "notifications_push_enabled"
STORAGE_KEY_PERMISSION_ASKED = "notifications_permission_asked"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


def _as_flag(value: str | None) -> bool:
    return value == "true"


class NotificationPreferences:
    """Owns one engine's ``NotificationSettings``.

    Settings are loaded once from durable storage and change only through
    the explicit toggles below; the polling path only reads them.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        permission_gate: PermissionGate,
        registrar: PushRegistrar | None = None,
        *,
        device_token: str | None = None,
    ) -> None:
        self._storage = storage
        self._permission_gate = permission_gate
        self._registrar = registrar
        self._device_token = device_token
        self._settings = self.load()

    @property
    def settings(self) -> NotificationSettings:
        return self._settings.model_copy()

    def load(self) -> NotificationSettings:
        return NotificationSettings(
            sound_enabled=_as_flag(self._storage.get(STORAGE_KEY_SOUND)),
            browser_enabled=_as_flag(self._storage.get(STORAGE_KEY_BROWSER)),
            permission_granted=self._permission_gate.is_granted(),
            push_enabled=_as_flag(self._storage.get(STORAGE_KEY_PUSH)),
            push_token_registered=False,
        )

    def save(
        self,
        *,
        sound_enabled: bool | None = None,
        browser_enabled: bool | None = None,
        push_enabled: bool | None = None,
    ) -> None:
        updates: dict[str, bool] = {}
        if sound_enabled is not None:
            self._persist(STORAGE_KEY_SOUND, str(sound_enabled).lower())
            updates["sound_enabled"] = sound_enabled
        if browser_enabled is not None:
            self._persist(STORAGE_KEY_BROWSER, str(browser_enabled).lower())
            updates["browser_enabled"] = browser_enabled
        if push_enabled is not None:
            self._persist(STORAGE_KEY_PUSH, str(push_enabled).lower())
            updates["push_enabled"] = push_enabled
        self._settings = self._settings.model_copy(update=updates)

    def _persist(self, key: str, value: str) -> None:
        # A failed write leaves the in-memory toggle applied.
        try:
            self._storage.set(key, value)
        except OSError as exc:
            logger.warning("preferences.persist_failed key=%s reason=%s", key, type(exc).__name__)

    def set_sound_enabled(self, enabled: bool) -> None:
        self.save(sound_enabled=enabled)
        logger.info("preferences.sound enabled=%s", enabled)

    async def request_permission(self) -> bool:
        if self._permission_gate.is_granted():
            self._settings = self._settings.model_copy(update={"permission_granted": True})
            return True

        granted = await self._permission_gate.request()
        self._persist(STORAGE_KEY_PERMISSION_ASKED, "true")
        self._settings = self._settings.model_copy(update={"permission_granted": granted})
        if granted:
            self.save(browser_enabled=True)
        else:
            logger.warning("preferences.permission_denied")
        return granted

    async def set_browser_enabled(self, enabled: bool) -> bool:
        if enabled and not await self.request_permission():
            return False

        self.save(browser_enabled=enabled)
        logger.info("preferences.browser enabled=%s", enabled)
        return True

    async def set_push_enabled(self, enabled: bool) -> bool:
        if not enabled:
            await self._unregister_push()
            self.save(push_enabled=False)
            logger.info("preferences.push enabled=False")
            return True

        if not await self.request_permission():
            return False

        if not await self._register_push():
            # Only the push channel is turned off; sound and browser keep their state.
            self.save(push_enabled=False)
            return False

        self.save(push_enabled=True)
        logger.info("preferences.push enabled=True")
        return True

    async def restore_push(self) -> bool:
        """Re-enroll on startup when push was left enabled."""
        if not self._settings.push_enabled or self._settings.push_token_registered:
            return self._settings.push_token_registered
        return await self._register_push()

    async def _register_push(self) -> bool:
        token = self._device_token
        if self._registrar is None or not token:
            logger.warning("push.register_skipped reason=%s", "no-registrar" if self._registrar is None else "no-token")
            return False

        safe_token = safe_log_identifier(token, prefix="ptk")
        try:
            await self._registrar.register(token)
        except DeliveryError as exc:
            logger.warning("push.register_failed token=%s code=%s", safe_token, exc.payload.code)
            self._settings = self._settings.model_copy(update={"push_token_registered": False})
            return False

        self._settings = self._settings.model_copy(update={"push_token_registered": True})
        logger.info("push.registered token=%s", safe_token)
        return True

    async def _unregister_push(self) -> None:
        token = self._device_token
        if self._registrar is None or not token or not self._settings.push_token_registered:
            return

        safe_token = safe_log_identifier(token, prefix="ptk")
        try:
            await self._registrar.unregister(token)
        except DeliveryError as exc:
            logger.warning("push.unregister_failed token=%s code=%s", safe_token, exc.payload.code)
        else:
            logger.info("push.unregistered token=%s", safe_token)
        self._settings = self._settings.model_copy(update={"push_token_registered": False})
