"""Value types exchanged with the access backend."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Decision(str, enum.Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


# Initial reason vocabulary. Remote backends may return any string.
REASON_VALID = "Valid"
REASON_EXPIRED = "Expired"
REASON_NOT_PERMITTED = "Not permitted"
REASON_INVALID_CODE = "Invalid code"
REASON_SESSION_EXPIRED = "session expired"
REASON_SESSION_LOCKED = "Session locked"
REASON_CHECKPOINT_REQUIRED = "Checkpoint required"


@dataclass(frozen=True)
class VerificationResult:
    decision: Decision
    reason: str
    retryable: bool = False

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOWED

    @classmethod
    def denied(cls, reason: str, *, retryable: bool = False) -> "VerificationResult":
        return cls(Decision.DENIED, reason, retryable)

    def to_dict(self) -> Dict[str, Any]:
        return {"decision": self.decision.value, "reason": self.reason, "retryable": self.retryable}


@dataclass(frozen=True)
class UnlockGrant:
    """Session credential issued by a successful unlock."""

    token: str
    expires_at: datetime


class UnlockResponse(BaseModel):
    """Wire shape of a successful unlock response."""

    model_config = ConfigDict(populate_by_name=True)

    session_token: str = Field(..., alias="sessionToken", min_length=1)
    expires_at: datetime = Field(..., alias="expiresAt")


class ValidateResponse(BaseModel):
    """Wire shape of a validate response; unknown result values fail closed."""

    result: str = "denied"
    reason: str = "unknown"

    def to_result(self) -> VerificationResult:
        decision = Decision.ALLOWED if self.result == Decision.ALLOWED.value else Decision.DENIED
        return VerificationResult(decision, self.reason or "unknown")


class Checkpoint(BaseModel):
    """Checkpoint record as returned by checkpoints-by-org."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    checkpoint_id: str = Field(..., alias="checkpointId")
    name: str = ""
    org_id: Optional[str] = Field(None, alias="orgId")
    is_active: bool = Field(False, alias="isActive")


@dataclass(frozen=True)
class CheckpointOption:
    """Checkpoint as exposed to staff."""

    checkpoint_id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"checkpointId": self.checkpoint_id, "name": self.name}


__all__ = [
    "Decision",
    "VerificationResult",
    "UnlockGrant",
    "UnlockResponse",
    "ValidateResponse",
    "Checkpoint",
    "CheckpointOption",
    "REASON_VALID",
    "REASON_EXPIRED",
    "REASON_NOT_PERMITTED",
    "REASON_INVALID_CODE",
    "REASON_SESSION_EXPIRED",
    "REASON_SESSION_LOCKED",
    "REASON_CHECKPOINT_REQUIRED",
]
