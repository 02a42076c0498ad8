"""Access decisions for normalized pass codes."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .codes import is_normalized_code
from .errors import AuthError, NetworkError, VerifierError
from .models import (
    REASON_CHECKPOINT_REQUIRED,
    REASON_EXPIRED,
    REASON_INVALID_CODE,
    REASON_NOT_PERMITTED,
    REASON_SESSION_EXPIRED,
    REASON_SESSION_LOCKED,
    REASON_VALID,
    Decision,
    VerificationResult,
)

if TYPE_CHECKING:
    from .backend.base import AccessBackend
    from .session_manager import SessionManager

logger = logging.getLogger(__name__)

_UINT32 = 0xFFFFFFFF
_DENIAL_REASONS = (REASON_EXPIRED, REASON_NOT_PERMITTED, REASON_INVALID_CODE)


def rolling_hash(value: str) -> int:
    """Unsigned 32-bit ``h = h * 31 + b`` over the UTF-8 bytes of ``value``."""
    h = 0
    for b in value.encode("utf-8"):
        h = (h * 31 + b) & _UINT32
    return h


def mock_decision(checkpoint_id: str, code: str) -> VerificationResult:
    """Deterministic decision used by the disconnected backend.

    Even hashes are allowed; odd hashes are denied with a reason picked by
    ``hash % 3``. The same ``(checkpoint_id, code)`` always yields the same result.
    """
    h = rolling_hash(f"{checkpoint_id}:{code}")
    if h % 2 == 0:
        return VerificationResult(Decision.ALLOWED, REASON_VALID)
    return VerificationResult.denied(_DENIAL_REASONS[h % 3])


class VerificationEngine:
    """Checks local preconditions, then asks the backend for a decision.

    Never raises: every failure path resolves to ``Denied``.
    """

    def __init__(self, backend: "AccessBackend") -> None:
        self._backend = backend

    async def verify(self, code: str, checkpoint_id: str, session: "SessionManager") -> VerificationResult:
        if not is_normalized_code(code):
            return VerificationResult.denied(REASON_INVALID_CODE)
        checkpoint_id = (checkpoint_id or "").strip()
        if not checkpoint_id:
            return VerificationResult.denied(REASON_CHECKPOINT_REQUIRED)
        if session.has_expired():
            logger.info("⏰ Verification refused: session expired")
            await session.expire()
            return VerificationResult.denied(REASON_SESSION_EXPIRED)
        token = session.current_token()
        if not session.is_unlocked() or not token:
            return VerificationResult.denied(REASON_SESSION_LOCKED)

        try:
            result = await self._backend.validate(code, checkpoint_id, token)
        except NetworkError as exc:
            logger.warning("Verification network failure at %s: %s", checkpoint_id, exc)
            return VerificationResult.denied(exc.user_message, retryable=True)
        except AuthError as exc:
            logger.warning("Verification rejected session at %s: %s", checkpoint_id, exc)
            return VerificationResult.denied(exc.user_message)
        except VerifierError as exc:
            logger.warning("Verification request refused at %s: %s", checkpoint_id, exc)
            return VerificationResult.denied(exc.user_message)
        except Exception:
            logger.exception("Unexpected verification failure at %s; denying", checkpoint_id)
            return VerificationResult.denied(REASON_INVALID_CODE)

        logger.info(
            "%s %s at %s (%s)",
            "✅" if result.allowed else "❌",
            result.decision.value.upper(),
            checkpoint_id,
            result.reason,
        )
        return result


__all__ = ["rolling_hash", "mock_decision", "VerificationEngine"]
