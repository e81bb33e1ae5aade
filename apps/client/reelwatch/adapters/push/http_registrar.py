"""Push enrollment through the jobs API's token endpoints."""

from __future__ import annotations

from reelwatch.adapters.api.client import JobsApiClient
from reelwatch.adapters.push.base import PushRegistrar
from reelwatch.errors import ApiError, DeliveryError


class HttpPushRegistrar(PushRegistrar):
    """Stores the device token server-side so the backend can address it."""

    def __init__(self, api: JobsApiClient) -> None:
        self._api = api

    async def register(self, token: str) -> None:
        try:
            await self._api.register_push_token(token)
        except ApiError as exc:
            raise DeliveryError(
                code="PUSH_REGISTRATION_FAILED",
                message="Failed to register push notifications",
                details={"status_code": exc.status_code},
            ) from exc

    async def unregister(self, token: str) -> None:
        try:
            await self._api.unregister_push_token(token)
        except ApiError as exc:
            raise DeliveryError(
                code="PUSH_UNREGISTRATION_FAILED",
                message="Failed to unregister push notifications",
                details={"status_code": exc.status_code},
            ) from exc


__all__ = ["HttpPushRegistrar"]
