"""Push enrollment adapters."""

from .base import PushRegistrar
from .firebase_registrar import FirebaseTopicRegistrar
from .http_registrar import HttpPushRegistrar
from .mock_registrar import MockPushRegistrar

__all__ = [
    "PushRegistrar",
    "FirebaseTopicRegistrar",
    "HttpPushRegistrar",
    "MockPushRegistrar",
]
