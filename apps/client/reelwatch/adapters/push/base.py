"""Push enrollment interfaces."""

from abc import ABC, abstractmethod


class PushRegistrar(ABC):
    """Provider-neutral push token enrollment."""

    @abstractmethod
    async def register(self, token: str) -> None:
        """Enroll a device token; raise ``DeliveryError`` on failure."""

    @abstractmethod
    async def unregister(self, token: str) -> None:
        """Withdraw a device token; raise ``DeliveryError`` on failure."""


__all__ = ["PushRegistrar"]
