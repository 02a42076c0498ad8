"""Operator-facing result display and UI event fan-out."""
from __future__ import annotations

import asyncio
import logging
from asyncio import QueueEmpty
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .models import Decision, VerificationResult
from .state import SessionStatus, TerminalEvent

logger = logging.getLogger(__name__)

EMPTY_REASON = "—"


def reason_label(reason: Optional[str]) -> str:
    """Collapse backend reason strings into the labels staff are trained on."""
    normalized = str(reason or "").lower()
    if "expired" in normalized:
        return "Expired"
    if "permit" in normalized or "allowed_type" in normalized or "not_permitted" in normalized:
        return "Not permitted"
    if "invalid" in normalized or "code" in normalized:
        return "Invalid code"
    return reason or EMPTY_REASON


@dataclass(frozen=True)
class DisplayedResult:
    decision: Decision
    reason: str
    reason_label: str
    checkpoint_id: str
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision.value,
            "label": "Allowed" if self.decision is Decision.ALLOWED else "Denied",
            "reason": self.reason,
            "reasonLabel": self.reason_label,
            "checkpointId": self.checkpoint_id,
            "retryable": self.retryable,
        }


class ResultPresenter:
    """Holds the result on screen and broadcasts changes to UI subscribers."""

    def __init__(self, *, queue_size: int = 8) -> None:
        self._queue_size = max(1, queue_size)
        self._subscribers: List[asyncio.Queue[TerminalEvent]] = []
        self._current: Optional[DisplayedResult] = None
        self._pending_code: Optional[str] = None

    @property
    def current(self) -> Optional[DisplayedResult]:
        return self._current

    @property
    def pending_code(self) -> Optional[str]:
        return self._pending_code

    def register_ui(self) -> asyncio.Queue[TerminalEvent]:
        queue: asyncio.Queue[TerminalEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.append(queue)
        return queue

    def unregister_ui(self, queue: asyncio.Queue[TerminalEvent]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    async def code_entered(self, code: str, status: SessionStatus) -> None:
        self._pending_code = code
        self._current = None
        await self.publish("verifying", {"code": code}, status)

    async def show_result(self, result: VerificationResult, checkpoint_id: str, status: SessionStatus) -> DisplayedResult:
        """Display ``result`` and reset the code input for the next scan."""
        displayed = DisplayedResult(
            decision=result.decision,
            reason=result.reason,
            reason_label=reason_label(result.reason),
            checkpoint_id=checkpoint_id,
            retryable=result.retryable,
        )
        self._current = displayed
        self._pending_code = None
        await self.publish("result", displayed.to_dict(), status)
        return displayed

    async def clear(self, status: SessionStatus, *, error: Optional[str] = None) -> None:
        self._current = None
        self._pending_code = None
        await self.publish("cleared", {}, status, error=error)

    async def publish(
        self,
        event_type: str,
        data: Dict[str, Any],
        status: SessionStatus,
        *,
        error: Optional[str] = None,
    ) -> None:
        await self._broadcast(TerminalEvent(type=event_type, data=data, status=status, error=error))

    async def _broadcast(self, event: TerminalEvent) -> None:
        """Broadcast event to all UI subscribers, dropping the oldest when full."""
        for queue in list(self._subscribers):
            try:
                if queue.full():
                    try:
                        queue.get_nowait()
                    except QueueEmpty:
                        pass
                queue.put_nowait(event)
            except Exception as e:
                logger.warning("Failed to broadcast event to subscriber: %s", e)


__all__ = ["reason_label", "DisplayedResult", "ResultPresenter", "EMPTY_REASON"]
