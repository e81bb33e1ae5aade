"""Mock push registrar for local development and tests."""

from reelwatch.adapters.push.base import PushRegistrar
from reelwatch.errors import DeliveryError


class MockPushRegistrar(PushRegistrar):
    """Keeps enrolled tokens in memory.

    Tokens starting with ``fail:`` are refused, which lets tests exercise
    the registration failure path deterministically.
    """

    def __init__(self) -> None:
        self.tokens: set[str] = set()

    async def register(self, token: str) -> None:
        if token.startswith("fail:"):
            raise DeliveryError(code="PUSH_REGISTRATION_FAILED", message="Push token refused")
        self.tokens.add(token)

    async def unregister(self, token: str) -> None:
        self.tokens.discard(token)


__all__ = ["MockPushRegistrar"]
