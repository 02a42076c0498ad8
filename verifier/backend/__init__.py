"""Access backends: remote HTTP service or in-process mock."""
from __future__ import annotations

from ..config import Settings
from .base import AccessBackend
from .http_client import RemoteAccessBackend
from .mock_backend import MockAccessBackend


def build_access_backend(settings: Settings) -> AccessBackend:
    """Pick the backend strategy named by ``settings.data_mode``."""
    if settings.data_mode == "remote":
        return RemoteAccessBackend(settings)
    return MockAccessBackend(settings)


__all__ = ["AccessBackend", "RemoteAccessBackend", "MockAccessBackend", "build_access_backend"]
