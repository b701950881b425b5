"""In-flight guard: reject a second submit for an area while one is running"""
import logging
from contextlib import asynccontextmanager
from typing import Optional, Set

from lavtutor.errors import ActionInProgress

logger = logging.getLogger(__name__)


class ActionGuard:
    """
    Busy flags keyed by action area (e.g. 'appointment:<id>').

    This only debounces overlapping requests handled by this process; it is
    not a lock over the underlying record.
    """

    def __init__(self):
        self._busy: Set[str] = set()

    def is_busy(self, key: str) -> bool:
        return key in self._busy

    @asynccontextmanager
    async def hold(self, key: str):
        if key in self._busy:
            logger.info(f"Rejected overlapping action for {key}")
            raise ActionInProgress(
                "This action is already being processed. Please wait.",
                details={"area": key},
            )
        self._busy.add(key)
        try:
            yield
        finally:
            self._busy.discard(key)


_action_guard: Optional[ActionGuard] = None


def get_action_guard() -> ActionGuard:
    """Get or create global ActionGuard instance"""
    global _action_guard
    if _action_guard is None:
        _action_guard = ActionGuard()
    return _action_guard
