"""
Sync context - owns the stores, the subscription registry, the sync
coordinator, the change feed subscription and the polling task for the
lifetime of the application
"""

import asyncio
import logging
from typing import Optional

from config.settings import DATABASE_URL, LOCAL_CACHE_PATH, SYNC_POLL_INTERVAL
from services.base_store import LocalRecordStore, RecordStore
from services.local_cache import LocalCacheStore
from services.memory_store import MemoryStore
from services.remote_store import RemoteParticipantStore
from services.subscriptions import ConnectionStatus, SubscriptionRegistry
from services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


def select_local_store(cache_path: Optional[str]) -> LocalRecordStore:
    """Cache file when one can be kept, otherwise the seeded process memory store"""
    if LocalCacheStore.is_available(cache_path):
        logger.info(f"SYNC: Using local cache at {cache_path}")
        return LocalCacheStore(cache_path)

    logger.warning("SYNC: No usable cache path, falling back to process memory store")
    return MemoryStore()


class SyncContext:
    """Single long-lived object holding all participant sync state"""

    def __init__(
        self,
        local: LocalRecordStore,
        remote: Optional[RecordStore] = None,
        poll_interval: float = SYNC_POLL_INTERVAL
    ):
        self.registry = SubscriptionRegistry()
        self.local = local
        self.remote = remote
        self.coordinator = SyncCoordinator(local, self.registry, remote)
        self.poll_interval = poll_interval
        self._poll_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls) -> "SyncContext":
        """Build the context from environment configuration"""
        remote = RemoteParticipantStore(DATABASE_URL) if DATABASE_URL else None
        return cls(select_local_store(LOCAL_CACHE_PATH), remote)

    async def start(self) -> bool:
        """
        Connect to the remote (when configured), subscribe to its change
        feed, run an initial sync and start the polling fallback.

        Returns True when the remote is connected.
        """
        if self.remote is None:
            logger.warning("SYNC: Remote not configured, using local storage only")
            self.registry.set_status(ConnectionStatus.DISCONNECTED)
            return False

        logger.info("SYNC: Initializing remote connection...")
        self.registry.set_status(ConnectionStatus.CONNECTING)

        ping = await self.remote.ping()
        if not ping.success:
            logger.error(f"SYNC: Connection test failed: {ping.error}")
            self.registry.set_status(ConnectionStatus.ERROR)
        else:
            logger.info(f"SYNC: Connection successful, {ping.count} participants on remote")
            self.registry.set_status(ConnectionStatus.CONNECTED)
            await self._subscribe()
            await self.coordinator.refresh()

        self._start_polling()
        return ping.success

    async def _subscribe(self):
        subscribe = getattr(self.remote, "subscribe_changes", None)
        if subscribe is None:
            return
        if not await subscribe(self.coordinator.on_remote_change):
            self.registry.set_status(ConnectionStatus.ERROR)

    def _start_polling(self):
        if self.poll_interval <= 0 or self._poll_task is not None:
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        logger.info(f"SYNC: Polling remote every {self.poll_interval}s")

    async def _poll_loop(self):
        """Periodic full refresh in case the change feed silently drops"""
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"SYNC: Poll failed: {e}", exc_info=True)

    async def poll_once(self):
        result = await self.coordinator.refresh(only_if_changed=True)
        if self.registry.status == ConnectionStatus.CONNECTED and not getattr(self.remote, "is_subscribed", True):
            logger.info("SYNC: Change feed inactive, re-subscribing")
            await self._subscribe()
        return result

    async def shutdown(self):
        """Stop polling, close the change feed and pool, drop all listeners"""
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        await self.coordinator.wait_for_pending_refreshes()

        close = getattr(self.remote, "close", None)
        if close is not None:
            await close()

        self.registry.clear()
        logger.info("SYNC: Context shut down")
