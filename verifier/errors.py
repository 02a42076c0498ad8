"""Error taxonomy shared by the verifier components."""
from __future__ import annotations

from typing import Optional


class VerifierError(RuntimeError):
    """Base error carrying a short operator-facing message."""

    retryable: bool = False

    def __init__(self, user_message: str, *, log_message: Optional[str] = None) -> None:
        super().__init__(log_message or user_message)
        self.user_message = user_message


class ValidationError(VerifierError):
    """Malformed PIN/code/checkpoint; raised before any collaborator call."""


class AuthError(VerifierError):
    """Wrong PIN, unapproved device, or an invalid/expired session."""


class NetworkError(VerifierError):
    """Transport failure or timeout talking to a collaborator."""

    retryable = True


class SessionBusyError(VerifierError):
    """An unlock is already in flight on this session manager."""


class DecodeError(VerifierError):
    """Malformed session token. Never surfaced to the operator."""


__all__ = [
    "VerifierError",
    "ValidationError",
    "AuthError",
    "NetworkError",
    "SessionBusyError",
    "DecodeError",
]
