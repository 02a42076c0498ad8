"""Active checkpoints for the org of the current session."""
from __future__ import annotations

import logging
from typing import List, Optional

from .backend.base import AccessBackend
from .models import CheckpointOption
from .session_manager import SessionManager

logger = logging.getLogger(__name__)


class CheckpointDirectory:
    """Loads and caches the checkpoints staff can pick from.

    The cache lives only as long as the session generation it was loaded for.
    Loading never raises: on failure the list is empty and staff can type a
    checkpoint id by hand.
    """

    def __init__(self, backend: AccessBackend, session: SessionManager) -> None:
        self._backend = backend
        self._session = session
        self._checkpoints: List[CheckpointOption] = []
        self._loaded_generation: Optional[int] = None
        self._selected: Optional[str] = None

    @property
    def checkpoints(self) -> List[CheckpointOption]:
        if self._loaded_generation != self._session.generation:
            return []
        return list(self._checkpoints)

    @property
    def selected(self) -> Optional[str]:
        if self._loaded_generation != self._session.generation:
            return None
        return self._selected

    async def load_checkpoints(self, org_id: str) -> List[CheckpointOption]:
        if not org_id:
            return []
        try:
            records = await self._backend.checkpoints_by_org(org_id, self._session.current_token())
        except Exception as exc:
            logger.warning("Checkpoint load failed for org %s: %s", org_id, exc)
            return []
        return [
            CheckpointOption(checkpoint_id=record.checkpoint_id, name=record.name or record.checkpoint_id)
            for record in records
            if record.is_active is True and (record.org_id is None or record.org_id == org_id)
        ]

    async def refresh(self) -> List[CheckpointOption]:
        """Reload for the org in the current session token."""
        generation = self._session.generation
        org_id = self._session.current_org_id()
        if generation != self._loaded_generation:
            self._selected = None
        options = await self.load_checkpoints(org_id) if org_id else []
        if generation != self._session.generation:
            logger.info("Session changed during checkpoint load; discarding result")
            return []

        self._checkpoints = options
        self._loaded_generation = generation
        if options and not self._selected:
            self._selected = options[0].checkpoint_id
        logger.info("📍 Loaded %d active checkpoint(s) for org %s", len(options), org_id)
        return list(options)

    def select(self, checkpoint_id: str) -> str:
        """Select a checkpoint; ids not in the list are accepted as manual entries."""
        if self._loaded_generation != self._session.generation:
            self._checkpoints = []
            self._loaded_generation = self._session.generation
        checkpoint_id = (checkpoint_id or "").strip()
        if checkpoint_id and not any(c.checkpoint_id == checkpoint_id for c in self._checkpoints):
            logger.info("Manual checkpoint id entered: %s", checkpoint_id)
        self._selected = checkpoint_id or None
        return checkpoint_id

    def clear(self) -> None:
        self._checkpoints = []
        self._selected = None
        self._loaded_generation = None


__all__ = ["CheckpointDirectory"]
