from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from verifier.checkpoints import CheckpointDirectory
from verifier.errors import NetworkError
from verifier.models import Checkpoint, UnlockGrant
from verifier.session_manager import SessionManager


def _directory(backend):
    session = SessionManager(backend)
    return session, CheckpointDirectory(backend, session)


def test_only_active_checkpoints_are_returned(backend_factory):
    backend = backend_factory()
    _, directory = _directory(backend)

    options = asyncio.run(directory.load_checkpoints("org_1"))

    assert [o.checkpoint_id for o in options] == ["gate", "lobby"]
    assert all(o.checkpoint_id != "dock" for o in options)


def test_other_org_records_are_dropped(backend_factory):
    backend = backend_factory()

    async def leaky(org_id, session_token=None):
        return [
            Checkpoint(checkpointId="gate", name="Main Gate", orgId="org_1", isActive=True),
            Checkpoint(checkpointId="foreign", name="Elsewhere", orgId="org_2", isActive=True),
        ]

    backend.checkpoints_by_org = leaky
    _, directory = _directory(backend)
    options = asyncio.run(directory.load_checkpoints("org_1"))
    assert [o.checkpoint_id for o in options] == ["gate"]


def test_load_failure_returns_empty_list(backend_factory):
    backend = backend_factory()
    backend.checkpoints_error = NetworkError("Network error. Please try again.")
    _, directory = _directory(backend)
    assert asyncio.run(directory.load_checkpoints("org_1")) == []


def test_unexpected_failure_returns_empty_list(backend_factory):
    backend = backend_factory()
    backend.checkpoints_error = KeyError("boom")
    _, directory = _directory(backend)
    assert asyncio.run(directory.load_checkpoints("org_1")) == []


def test_refresh_uses_org_from_current_session(backend_factory):
    backend = backend_factory(org_id="org_9")
    session, directory = _directory(backend)

    async def scenario():
        await session.unlock("1234", "device-1")
        options = await directory.refresh()
        await session.close()
        return options

    options = asyncio.run(scenario())
    assert [o.checkpoint_id for o in options] == ["gate", "lobby"]
    assert backend.checkpoint_calls[0][0] == "org_9"
    assert backend.checkpoint_calls[0][1] is not None


def test_refresh_auto_selects_first_and_cache_dies_with_session(backend_factory):
    backend = backend_factory()
    session, directory = _directory(backend)

    async def scenario():
        await session.unlock("1234", "device-1")
        await directory.refresh()
        assert directory.selected == "gate"
        assert [c.checkpoint_id for c in directory.checkpoints] == ["gate", "lobby"]
        await session.lock()
        assert directory.checkpoints == []
        assert directory.selected is None

    asyncio.run(scenario())


def test_refresh_while_locked_loads_nothing(backend_factory):
    backend = backend_factory()
    _, directory = _directory(backend)
    assert asyncio.run(directory.refresh()) == []
    assert backend.checkpoint_calls == []


def test_manual_checkpoint_selection(backend_factory):
    backend = backend_factory()
    session, directory = _directory(backend)

    async def scenario():
        await session.unlock("1234", "device-1")
        await directory.refresh()
        directory.select("  typed-in-lane ")
        assert directory.selected == "typed-in-lane"
        assert [c.checkpoint_id for c in directory.checkpoints] == ["gate", "lobby"]
        await session.close()

    asyncio.run(scenario())


def test_refresh_survives_non_numeric_claims(backend_factory, token_factory):
    backend = backend_factory()

    async def odd_unlock(pin, device_id):
        token = token_factory({"v": 1, "iat": float("nan"), "exp": float("inf"), "orgId": "org_1"})
        return UnlockGrant(token=token, expires_at=datetime.now(timezone.utc) + timedelta(minutes=15))

    backend.unlock = odd_unlock
    session, directory = _directory(backend)

    async def scenario():
        await session.unlock("1234", "device-1")
        org_id = session.current_org_id()
        options = await directory.refresh()
        await session.close()
        return org_id, options

    org_id, options = asyncio.run(scenario())
    assert org_id == "org_1"
    assert [o.checkpoint_id for o in options] == ["gate", "lobby"]
