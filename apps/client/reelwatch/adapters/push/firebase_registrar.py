"""Firebase Cloud Messaging topic enrollment adapter."""

from __future__ import annotations

import asyncio

from reelwatch.adapters.push.base import PushRegistrar
from reelwatch.errors import DeliveryError


class FirebaseTopicRegistrar(PushRegistrar):
    """Subscribes device tokens to an FCM topic the backend publishes to."""

    def __init__(self, topic: str) -> None:
        self._topic = topic

    async def register(self, token: str) -> None:
        await asyncio.to_thread(self._manage, token, subscribe=True)

    async def unregister(self, token: str) -> None:
        await asyncio.to_thread(self._manage, token, subscribe=False)

    def _manage(self, token: str, *, subscribe: bool) -> None:
        code = "PUSH_REGISTRATION_FAILED" if subscribe else "PUSH_UNREGISTRATION_FAILED"
        try:
            import firebase_admin
            from firebase_admin import messaging
        except ImportError as exc:  # pragma: no cover - depends on optional package
            raise DeliveryError(code=code, message="Firebase messaging is unavailable") from exc

        if not firebase_admin._apps:
            firebase_admin.initialize_app()

        try:
            if subscribe:
                response = messaging.subscribe_to_topic([token], self._topic)
            else:
                response = messaging.unsubscribe_from_topic([token], self._topic)
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise DeliveryError(code=code, message="Firebase topic management failed") from exc

        if response.failure_count:
            reasons = [error.reason for error in response.errors]
            raise DeliveryError(
                code=code,
                message="Firebase rejected the device token",
                details={"topic": self._topic, "reasons": reasons},
            )


__all__ = ["FirebaseTopicRegistrar"]
