"""Collaborator contract implemented by every access backend."""
from __future__ import annotations

from typing import List, Optional, Protocol

from ..models import Checkpoint, UnlockGrant, VerificationResult


class AccessBackend(Protocol):
    """The three operations the terminal needs from the access service."""

    async def unlock(self, pin: str, device_id: str) -> UnlockGrant:
        """Exchange a staff PIN for a session token. Raises AuthError/NetworkError."""
        ...

    async def checkpoints_by_org(self, org_id: str, session_token: Optional[str] = None) -> List[Checkpoint]:
        ...

    async def validate(self, code: str, checkpoint_id: str, session_token: str) -> VerificationResult:
        ...

    async def aclose(self) -> None:
        ...
