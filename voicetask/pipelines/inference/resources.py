"""Exclusive slot for the memory-heavy extraction model."""

from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger("voicetask.pipeline")


class ModelSlot:
    """Size-1 slot: at most one extraction model is loaded system-wide.

    Acquisition never waits: a caller that finds the slot taken is rejected,
    not queued.
    """

    def __init__(self, name: str = "extraction") -> None:
        self.name = name
        self._owner: Optional[str] = None

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @property
    def busy(self) -> bool:
        return self._owner is not None

    def try_acquire(self, owner: str) -> bool:
        if self._owner is not None:
            logger.info(
                "Model slot %s busy owner=%s rejected=%s", self.name, self._owner, owner
            )
            return False
        self._owner = owner
        return True

    def release(self, owner: str) -> bool:
        """Release the slot if ``owner`` holds it; returns whether it did."""

        if self._owner != owner:
            return False
        self._owner = None
        return True


__all__ = ["ModelSlot"]
