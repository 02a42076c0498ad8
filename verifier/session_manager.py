"""PIN-gated verifier session state machine."""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Optional

from .backend.base import AccessBackend
from .codes import is_valid_pin
from .errors import AuthError, SessionBusyError, ValidationError
from .models import UnlockGrant
from .state import SessionStatus
from .token_codec import DisplayClaims, display_claims

logger = logging.getLogger(__name__)

StatusCallback = Callable[[SessionStatus], Awaitable[None]]
Clock = Callable[[], float]


def _to_epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _token_preview(token: str) -> str:
    return f"{token[:12]}..."


class SessionManager:
    """Owns the verifier session token and its lifetime.

    States: LOCKED (initial) -> UNLOCKED on a successful unlock; UNLOCKED ->
    LOCKED on :meth:`lock`; UNLOCKED -> EXPIRED when the expiry timer fires or an
    expired session is detected at call time. The token is only ever mutated
    here; other components read it through :meth:`current_token` on every use.

    ``generation`` increments whenever session data changes hands, so callers
    can capture it before awaiting and discard work that finishes afterwards.
    """

    def __init__(self, backend: AccessBackend, *, clock: Clock = time.time) -> None:
        self._backend = backend
        self._clock = clock
        self._status: SessionStatus = SessionStatus.LOCKED
        self._token: Optional[str] = None
        self._expires_at: Optional[float] = None
        self._generation = 0
        self._unlock_lock = asyncio.Lock()
        self._expiry_task: Optional[asyncio.Task[None]] = None
        self._callbacks: list[StatusCallback] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        if self._status is SessionStatus.UNLOCKED and self.has_expired():
            return SessionStatus.EXPIRED
        return self._status

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def expires_at(self) -> Optional[datetime]:
        if self._expires_at is None:
            return None
        return datetime.fromtimestamp(self._expires_at, tz=timezone.utc)

    @property
    def unlock_in_progress(self) -> bool:
        return self._unlock_lock.locked()

    def has_expired(self) -> bool:
        """True when a session is held but wall-clock time has passed its expiry."""
        return self._token is not None and self._expires_at is not None and self._clock() >= self._expires_at

    def is_unlocked(self) -> bool:
        return (
            self._status is SessionStatus.UNLOCKED
            and self._token is not None
            and not self.has_expired()
        )

    def current_token(self) -> Optional[str]:
        return self._token if self.is_unlocked() else None

    def claims(self) -> Optional[DisplayClaims]:
        return display_claims(self.current_token())

    def current_org_id(self) -> Optional[str]:
        claims = self.claims()
        return claims.org_id if claims else None

    def register_callback(self, callback: StatusCallback) -> None:
        self._callbacks.append(callback)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def unlock(self, pin: str, device_id: str) -> UnlockGrant:
        """Exchange ``pin`` for a session bound to ``device_id``.

        Raises ValidationError for a malformed PIN (no backend call),
        SessionBusyError when another unlock is in flight, and passes through
        AuthError/NetworkError from the backend.
        """
        if not is_valid_pin(pin):
            raise ValidationError("PIN must be 4 digits.")
        if self._unlock_lock.locked():
            raise SessionBusyError("Unlock already in progress.")

        async with self._unlock_lock:
            logger.info("🔐 Unlock requested (device=%s)", device_id)
            grant = await self._backend.unlock(pin, device_id)
            expires_at = _to_epoch(grant.expires_at)
            remaining = expires_at - self._clock()
            if remaining <= 0:
                raise AuthError(
                    "Session expired. Unlock again.",
                    log_message=f"unlock grant already expired ({grant.expires_at.isoformat()})",
                )

            self._cancel_expiry_timer()
            self._token = grant.token
            self._expires_at = expires_at
            self._status = SessionStatus.UNLOCKED
            self._generation += 1
            self._expiry_task = asyncio.create_task(
                self._expire_after(remaining, self._generation), name="verifier-session-expiry"
            )
            logger.info("🔓 Session unlocked: %s (expires in %.0fs)", _token_preview(grant.token), remaining)
        await self._emit(SessionStatus.UNLOCKED)
        return grant

    async def lock(self) -> None:
        """Discard the session and cancel its expiry timer. Idempotent."""
        if self._status is SessionStatus.LOCKED and self._token is None:
            return
        logger.info("🔒 Session locked by operator")
        await self._end_session(SessionStatus.LOCKED)

    async def expire(self) -> None:
        """Discard the session as expired. No-op when no session is held."""
        if self._token is None:
            return
        logger.info("⏰ Session expired")
        await self._end_session(SessionStatus.EXPIRED)

    async def close(self) -> None:
        self._cancel_expiry_timer()

    async def _end_session(self, status: SessionStatus) -> None:
        self._cancel_expiry_timer()
        self._token = None
        self._expires_at = None
        self._status = status
        self._generation += 1
        await self._emit(status)

    async def _expire_after(self, delay: float, generation: int) -> None:
        try:
            await asyncio.sleep(max(0.0, delay))
        except asyncio.CancelledError:
            return
        if generation != self._generation:
            return
        self._expiry_task = None
        await self.expire()

    def _cancel_expiry_timer(self) -> None:
        task = self._expiry_task
        self._expiry_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _emit(self, status: SessionStatus) -> None:
        for callback in list(self._callbacks):
            try:
                await callback(status)
            except Exception:
                logger.exception("Session status callback failed")


__all__ = ["SessionManager"]
