"""In-process access backend for disconnected terminals and local testing."""
from __future__ import annotations

import hmac
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from ..codes import is_normalized_code, is_valid_pin
from ..config import Settings
from ..errors import AuthError, ValidationError
from ..models import REASON_INVALID_CODE, Checkpoint, UnlockGrant, VerificationResult
from ..token_codec import SEGMENT_SEPARATOR, encode_payload
from ..verification import mock_decision

logger = logging.getLogger(__name__)

MOCK_SIGNATURE = "mock_signature"


def _seed_checkpoints(org_id: str) -> List[Checkpoint]:
    return [
        Checkpoint(checkpointId="mock_checkpoint_gate", name="Main Gate", orgId=org_id, isActive=True),
        Checkpoint(checkpointId="mock_checkpoint_service", name="Service Entrance", orgId=org_id, isActive=False),
    ]


class MockAccessBackend:
    """Seeded stand-in for the access service.

    Unlock accepts only the configured mock PIN and issues an unsigned token;
    validate applies :func:`~verifier.verification.mock_decision`.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        checkpoints: Optional[Iterable[Checkpoint]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self._clock = clock
        seeded = list(checkpoints) if checkpoints is not None else _seed_checkpoints(settings.mock.org_id)
        self._checkpoints: Dict[str, Checkpoint] = {c.checkpoint_id: c for c in seeded}

    async def unlock(self, pin: str, device_id: str) -> UnlockGrant:
        if not is_valid_pin(pin):
            raise ValidationError("PIN must be 4 digits.")
        if not hmac.compare_digest(pin, self.settings.mock.pin):
            raise AuthError(f"Invalid PIN (mock: use {self.settings.mock.pin}).")

        now = int(self._clock())
        exp = now + self.settings.mock.session_ttl_seconds
        payload = {
            "v": 1,
            "iat": now,
            "exp": exp,
            "staffId": self.settings.mock.staff_id,
            "orgId": self.settings.mock.org_id,
            "userId": self.settings.mock.user_id,
            "deviceId": device_id,
        }
        token = f"{encode_payload(payload)}{SEGMENT_SEPARATOR}{MOCK_SIGNATURE}"
        logger.info("🔓 Mock session issued for %s (expires in %ss)", device_id, exp - now)
        return UnlockGrant(token=token, expires_at=datetime.fromtimestamp(exp, tz=timezone.utc))

    async def checkpoints_by_org(self, org_id: str, session_token: Optional[str] = None) -> List[Checkpoint]:
        return [c for c in self._checkpoints.values() if c.org_id == org_id]

    async def validate(self, code: str, checkpoint_id: str, session_token: str) -> VerificationResult:
        if not is_normalized_code(code):
            return VerificationResult.denied(REASON_INVALID_CODE)
        return mock_decision(checkpoint_id, code)

    async def aclose(self) -> None:
        return None


__all__ = ["MockAccessBackend", "MOCK_SIGNATURE"]
