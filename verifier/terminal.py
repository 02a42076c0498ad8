"""Verifier terminal: wires session, checkpoints, verification and display."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .backend import AccessBackend, build_access_backend
from .checkpoints import CheckpointDirectory
from .codes import normalize
from .config import Settings, get_settings
from .device import DeviceIdentity
from .errors import ValidationError
from .models import CheckpointOption, UnlockGrant, VerificationResult
from .presenter import DisplayedResult, ResultPresenter
from .session_manager import SessionManager
from .state import SessionStatus
from .verification import VerificationEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitOutcome:
    """What happened to one code submission."""

    code: str
    checkpoint_id: str
    result: VerificationResult
    applied: bool
    displayed: Optional[DisplayedResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "checkpointId": self.checkpoint_id,
            "result": self.result.to_dict(),
            "applied": self.applied,
            "display": self.displayed.to_dict() if self.displayed else None,
        }


class VerifierTerminal:
    """One staff verification terminal.

    Flow: unlock with PIN -> checkpoints load for the session's org -> codes are
    normalized and verified -> the latest result is displayed if the session
    that issued it is still live.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        backend: Optional[AccessBackend] = None,
        device: Optional[DeviceIdentity] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or get_settings()
        self.backend = backend or build_access_backend(self.settings)
        self.device = device or DeviceIdentity.from_directory(self.settings.state_directory)
        self.session = SessionManager(self.backend, clock=clock)
        self.directory = CheckpointDirectory(self.backend, self.session)
        self.engine = VerificationEngine(self.backend)
        self.presenter = ResultPresenter(queue_size=self.settings.presenter.ui_event_queue_size)
        self._submission_seq = 0
        self.session.register_callback(self._on_session_status)

    @property
    def device_id(self) -> str:
        return self.device.get_or_create_device_id()

    async def unlock(self, pin: str) -> UnlockGrant:
        return await self.session.unlock(pin, self.device_id)

    async def lock(self) -> None:
        await self.session.lock()

    async def refresh_checkpoints(self) -> List[CheckpointOption]:
        options = await self.directory.refresh()
        await self.presenter.publish(
            "checkpoints",
            {
                "checkpoints": [c.to_dict() for c in options],
                "selected": self.directory.selected,
            },
            self.session.status,
        )
        return options

    def select_checkpoint(self, checkpoint_id: str) -> str:
        selected = self.directory.select(checkpoint_id)
        if not selected:
            raise ValidationError("checkpointId is required")
        return selected

    async def submit_code(self, raw: str, checkpoint_id: Optional[str] = None) -> SubmitOutcome:
        """Normalize ``raw``, verify it, and display the result if still current."""
        code = normalize(raw)
        if code is None:
            raise ValidationError("Code must be 4 digits.")
        checkpoint = (checkpoint_id or self.directory.selected or "").strip()

        self._submission_seq += 1
        seq = self._submission_seq
        generation = self.session.generation
        was_live = self.session.is_unlocked()
        if was_live:
            await self.presenter.code_entered(code, self.session.status)

        result = await self.engine.verify(code, checkpoint, self.session)

        if seq != self._submission_seq:
            logger.info("Result for %s superseded by a newer scan; not displayed", checkpoint)
            return SubmitOutcome(code, checkpoint, result, applied=False)
        if was_live and (generation != self.session.generation or not self.session.is_unlocked()):
            logger.info("Session ended while verifying at %s; discarding result", checkpoint)
            return SubmitOutcome(code, checkpoint, result, applied=False)

        displayed = await self.presenter.show_result(result, checkpoint, self.session.status)
        return SubmitOutcome(code, checkpoint, result, applied=True, displayed=displayed)

    def snapshot(self) -> Dict[str, Any]:
        claims = self.session.claims()
        expires_at = self.session.expires_at
        current = self.presenter.current
        return {
            "status": self.session.status.value,
            "unlocked": self.session.is_unlocked(),
            "deviceId": self.device_id,
            "expiresAt": expires_at.isoformat() if expires_at else None,
            "claims": claims.to_dict() if claims else None,
            "checkpoints": [c.to_dict() for c in self.directory.checkpoints],
            "selectedCheckpoint": self.directory.selected,
            "result": current.to_dict() if current else None,
        }

    async def close(self) -> None:
        await self.session.close()
        await self.backend.aclose()

    async def _on_session_status(self, status: SessionStatus) -> None:
        if status is SessionStatus.UNLOCKED:
            await self.presenter.publish("state", {"unlocked": True}, status)
            await self.refresh_checkpoints()
            return
        self.directory.clear()
        error = "Session expired. Unlock again." if status is SessionStatus.EXPIRED else None
        await self.presenter.clear(status, error=error)
        await self.presenter.publish("state", {"unlocked": False}, status, error=error)


__all__ = ["SubmitOutcome", "VerifierTerminal"]
