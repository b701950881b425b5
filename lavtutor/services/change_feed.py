"""
Change Feed and Data Sync

After every committed write the service:
- publishes the table name on the Redis channel 'lav:changes:{table}' so
  other processes and clients know to re-fetch
- bumps the in-process global and per-table versions, debounced so a burst
  of writes produces one version bump

Failed operations can be registered under a name together with a closure
that re-runs them; retrying clears the entry on success.
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

from lavtutor import config
from lavtutor.database import get_redis
from lavtutor.errors import NotFound

logger = logging.getLogger(__name__)

TABLES = (
    "appointment",
    "evaluation",
    "notification",
    "profile",
    "schedule",
    "users",
)


def channel_for(table: str) -> str:
    return f"{config.CHANGE_CHANNEL_PREFIX}:{table}"


@dataclass
class SyncError:
    """A failed operation the user can retry"""
    key: str
    message: str
    retry: Optional[Callable[[], Awaitable]] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "message": self.message,
            "retryable": self.retry is not None,
            "timestamp": self.timestamp,
        }


class DataSync:
    """Version counters, change publishing and the retry registry"""

    def __init__(self, redis_getter=get_redis, debounce_ms: int = config.SYNC_DEBOUNCE_MS):
        self._redis_getter = redis_getter
        self.debounce_ms = debounce_ms
        self.version = 0
        self.table_versions: Dict[str, int] = {}
        self._queue: Set[str] = set()
        self._flush_handle: Optional[asyncio.TimerHandle] = None
        self._errors: Dict[str, SyncError] = {}

    # Versions

    def _apply_updates(self, tables: Iterable[str]):
        tables = list(tables)
        if not tables:
            return
        self.version += 1
        for table in tables:
            self.table_versions[table] = self.table_versions.get(table, 0) + 1

    def flush(self):
        """Apply queued table changes now"""
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        tables = sorted(self._queue)
        self._queue.clear()
        self._apply_updates(tables)

    def schedule_update(self, table: str):
        """Queue a table change; versions move once the debounce window closes"""
        self._queue.add(table)
        if self.debounce_ms <= 0:
            self.flush()
            return
        if self._flush_handle is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        self._flush_handle = loop.call_later(self.debounce_ms / 1000, self.flush)

    def check_for_updates(self, tables: Optional[Iterable[str]] = None):
        """Force every (or the given) table to a new version"""
        self._apply_updates(tables or TABLES)

    def snapshot(self) -> dict:
        return {
            "version": self.version,
            "tables": dict(self.table_versions),
            "pending": sorted(self._queue),
        }

    # Publishing

    async def publish(self, table: str) -> bool:
        redis = self._redis_getter()
        if redis is None:
            return False
        try:
            await redis.publish(channel_for(table), json.dumps({"table": table, "at": time.time()}))
            return True
        except Exception as e:
            logger.warning(f"Failed to publish change for {table}: {e}")
            return False

    async def record_change(self, *tables: str):
        """Call after a successful commit touching these tables"""
        for table in tables:
            self.schedule_update(table)
            await self.publish(table)

    # Error registry

    def report_error(self, key: str, message: str, retry: Optional[Callable[[], Awaitable]] = None):
        self._errors[key] = SyncError(key=key, message=message, retry=retry)
        logger.warning(f"Registered failed operation {key}: {message}")

    def clear_error(self, key: str):
        self._errors.pop(key, None)

    def list_errors(self) -> List[dict]:
        return [
            error.to_dict()
            for error in sorted(self._errors.values(), key=lambda e: e.timestamp, reverse=True)
        ]

    async def retry_error(self, key: str) -> bool:
        """
        Re-run a registered failed operation.

        Returns:
            True when the retry succeeded and the entry was cleared
        """
        target = self._errors.get(key)
        if target is None:
            raise NotFound(f"No failed operation named '{key}'", details={"key": key})
        if target.retry is None:
            return False

        try:
            await target.retry()
        except Exception as e:
            logger.warning(f"Retry of {key} failed: {e}")
            self.report_error(key, str(e), target.retry)
            return False

        self.clear_error(key)
        logger.info(f"Retry of {key} succeeded")
        return True


_data_sync: Optional[DataSync] = None


def get_data_sync() -> DataSync:
    """Get or create global DataSync instance"""
    global _data_sync
    if _data_sync is None:
        _data_sync = DataSync()
    return _data_sync
