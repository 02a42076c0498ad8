"""Shared terminal state definitions."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional


class SessionStatus(str, enum.Enum):
    """
    Verifier session states:

    1. LOCKED    - No session; PIN required (initial state)
    2. UNLOCKED  - Session token held, expiry timer armed
    3. EXPIRED   - Expiry timer fired or expiry detected at call time; PIN required
    """
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    EXPIRED = "expired"


@dataclass
class TerminalEvent:
    """Event payload distributed to UI clients over the local WebSocket."""

    type: str
    data: Dict[str, Any]
    status: SessionStatus
    error: Optional[str] = None


__all__ = ["SessionStatus", "TerminalEvent"]
