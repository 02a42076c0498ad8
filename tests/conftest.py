from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from verifier.config import Settings
from verifier.models import Checkpoint, UnlockGrant, VerificationResult
from verifier.token_codec import encode_payload
from verifier.verification import mock_decision


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_token(payload: Dict[str, Any], signature: str = "sig") -> str:
    return f"{encode_payload(payload)}.{signature}"


class FakeBackend:
    """Scriptable access backend that records every call."""

    def __init__(self, *, clock: Callable[[], float] = time.time, ttl: float = 900.0, org_id: str = "org_1") -> None:
        self.clock = clock
        self.ttl = ttl
        self.org_id = org_id
        self.unlock_calls: List[Tuple[str, str]] = []
        self.validate_calls: List[Tuple[str, str, str]] = []
        self.checkpoint_calls: List[Tuple[str, Optional[str]]] = []
        self.unlock_error: Optional[Exception] = None
        self.validate_error: Optional[Exception] = None
        self.checkpoints_error: Optional[Exception] = None
        self.validate_result: Optional[VerificationResult] = None
        self.checkpoints: List[Checkpoint] = [
            Checkpoint(checkpointId="gate", name="Main Gate", orgId=org_id, isActive=True),
            Checkpoint(checkpointId="dock", name="Loading Dock", orgId=org_id, isActive=False),
            Checkpoint(checkpointId="lobby", name="Lobby", orgId=org_id, isActive=True),
        ]
        self.unlock_gate: Optional[asyncio.Event] = None
        self.validate_gate: Optional[asyncio.Event] = None
        self.closed = False

    async def unlock(self, pin: str, device_id: str) -> UnlockGrant:
        self.unlock_calls.append((pin, device_id))
        if self.unlock_gate is not None:
            await self.unlock_gate.wait()
        if self.unlock_error is not None:
            raise self.unlock_error
        now = self.clock()
        exp = now + self.ttl
        token = make_token(
            {
                "v": 1,
                "iat": int(now),
                "exp": int(exp),
                "staffId": "staff_1",
                "orgId": self.org_id,
                "userId": "user_1",
                "deviceId": device_id,
            }
        )
        return UnlockGrant(token=token, expires_at=datetime.fromtimestamp(exp, tz=timezone.utc))

    async def checkpoints_by_org(self, org_id: str, session_token: Optional[str] = None) -> List[Checkpoint]:
        self.checkpoint_calls.append((org_id, session_token))
        if self.checkpoints_error is not None:
            raise self.checkpoints_error
        return [c for c in self.checkpoints if c.org_id == org_id]

    async def validate(self, code: str, checkpoint_id: str, session_token: str) -> VerificationResult:
        self.validate_calls.append((code, checkpoint_id, session_token))
        if self.validate_gate is not None:
            await self.validate_gate.wait()
        if self.validate_error is not None:
            raise self.validate_error
        if self.validate_result is not None:
            return self.validate_result
        return mock_decision(checkpoint_id, code)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend_factory() -> Callable[..., FakeBackend]:
    return FakeBackend


@pytest.fixture
def token_factory() -> Callable[..., str]:
    return make_token


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_mode="mock",
        state_directory=tmp_path / "state",
        log_directory=tmp_path / "logs",
    )
