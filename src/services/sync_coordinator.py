"""
Sync coordinator - decides per operation between the remote participant
table and the local fallback store, keeps them consistent and publishes
changes to subscribers
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from models.participant import Participant, ParticipantCreate
from services.base_store import (
    LocalRecordStore,
    RecordStore,
    ServiceResult,
    DUPLICATE_CERTIFICATE,
    RESOURCE_NOT_FOUND,
)
from services.subscriptions import ConnectionStatus, SubscriptionRegistry

logger = logging.getLogger(__name__)

# Outcomes that prove the remote answered, even though the operation failed
REMOTE_ANSWERED = (DUPLICATE_CERTIFICATE, RESOURCE_NOT_FOUND)


class SyncCoordinator:
    """
    Fallback contract for the participant registry.

    Writes go to the local store first so callers get an immediate answer,
    then to the remote table when one is configured. Only duplicate
    certificates and missing ids are reported as failures; every other
    remote problem degrades to the local store and shows up in the
    connection status instead.
    """

    def __init__(
        self,
        local: LocalRecordStore,
        registry: SubscriptionRegistry,
        remote: Optional[RecordStore] = None
    ):
        self.local = local
        self.registry = registry
        self.remote = remote
        self._last_published: Optional[List[Dict[str, Any]]] = None
        self._refresh_tasks: Set[asyncio.Task] = set()

    @property
    def remote_configured(self) -> bool:
        return self.remote is not None

    def _track_remote(self, result: ServiceResult) -> bool:
        """Update the connection status from a remote outcome; True when the remote failed"""
        if result.success or result.error_type in REMOTE_ANSWERED:
            self.registry.set_status(ConnectionStatus.CONNECTED)
            return False
        self.registry.set_status(ConnectionStatus.ERROR)
        return True

    async def _publish_local(self):
        """Push the local registry to listeners (used when no change notification will follow)"""
        snapshot = await self.local.get_all()
        self._publish(snapshot.data)

    def _publish(self, participants: List[Participant]):
        self._last_published = [p.model_dump() for p in participants]
        self.registry.notify_participants(participants)

    # Read operations

    async def get_all(self) -> ServiceResult:
        """All participants newest first; mirrors the remote into the local store when reachable"""
        if self.remote is not None:
            result = await self.remote.get_all()
            if not self._track_remote(result):
                await self.local.replace_all(result.data)
                return result
            logger.warning(f"SYNC: Remote fetch failed, serving local {self.local.kind}: {result.error}")

        return await self.local.get_all()

    async def find_by_id(self, record_id: int) -> ServiceResult:
        if self.remote is not None:
            result = await self.remote.find_by_id(record_id)
            if not self._track_remote(result):
                return result
            logger.warning(f"SYNC: Remote lookup of id {record_id} failed, trying local {self.local.kind}")

        return await self.local.find_by_id(record_id)

    async def find_by_certificate(self, certificate_number: str) -> ServiceResult:
        """
        Trimmed, case-insensitive exact match.

        A remote "no row" answer is authoritative; the local store is only
        searched when the remote could not be asked.
        """
        if self.remote is not None:
            result = await self.remote.find_by_certificate(certificate_number)
            if not self._track_remote(result):
                return result
            logger.warning(f"SYNC: Remote search failed, searching local {self.local.kind}: {result.error}")

        return await self.local.find_by_certificate(certificate_number)

    # Write operations

    async def add(self, participant: ParticipantCreate) -> ServiceResult:
        """
        Two-phase add: tentative local insert, remote confirmation, then
        commit (swap in the remote record) or compensate (drop the
        tentative record when the remote reports a duplicate).
        """
        tentative = await self.local.add(participant)
        if not tentative.success:
            logger.info(f"SYNC: Add of {participant.certificate_number} rejected locally: {tentative.error}")
            return tentative

        local_record = tentative.first
        if self.remote is None:
            logger.info(f"SYNC: Added {local_record.certificate_number} to local {self.local.kind} only")
            await self._publish_local()
            return tentative

        confirmed = await self.remote.add(participant)

        if confirmed.success:
            await self.local.delete(local_record.id)
            await self.local.put(confirmed.first)
            self.registry.set_status(ConnectionStatus.CONNECTED)
            # Listeners hear about it through the change feed
            return confirmed

        if confirmed.error_type == DUPLICATE_CERTIFICATE:
            await self.local.delete(local_record.id)
            self.registry.set_status(ConnectionStatus.CONNECTED)
            logger.info(f"SYNC: Rolled back tentative add of {participant.certificate_number}: duplicate on remote")
            return confirmed

        self._track_remote(confirmed)
        logger.warning(
            f"SYNC: Kept {local_record.certificate_number} in local {self.local.kind} despite remote error: "
            f"{confirmed.error}"
        )
        await self._publish_local()
        return tentative

    async def update(self, record_id: int, changes: Dict[str, Any]) -> ServiceResult:
        """Apply partial changes locally, then remotely; the remote version wins when it answers"""
        previous = (await self.local.find_by_id(record_id)).first
        tentative = await self.local.update(record_id, changes)
        if not tentative.success:
            return tentative

        if self.remote is None:
            await self._publish_local()
            return tentative

        confirmed = await self.remote.update(record_id, changes)

        if confirmed.success:
            self.registry.set_status(ConnectionStatus.CONNECTED)
            await self.local.put(confirmed.first)
            return confirmed

        if confirmed.error_type == DUPLICATE_CERTIFICATE:
            self.registry.set_status(ConnectionStatus.CONNECTED)
            await self.local.put(previous)
            logger.info(f"SYNC: Restored participant {record_id}: certificate number taken on remote")
            return confirmed

        if confirmed.error_type == RESOURCE_NOT_FOUND:
            self.registry.set_status(ConnectionStatus.CONNECTED)
            logger.warning(f"SYNC: Participant {record_id} exists only in local {self.local.kind}; kept local update")
        else:
            self._track_remote(confirmed)
            logger.warning(f"SYNC: Kept local update of participant {record_id} despite remote error: {confirmed.error}")

        await self._publish_local()
        return tentative

    async def delete(self, record_id: int) -> ServiceResult:
        """Delete locally (missing id is an error), then best-effort remotely"""
        removed = await self.local.delete(record_id)
        if not removed.success:
            return removed

        if self.remote is None:
            await self._publish_local()
            return removed

        confirmed = await self.remote.delete(record_id)
        if confirmed.success:
            self.registry.set_status(ConnectionStatus.CONNECTED)
            return removed

        if confirmed.error_type == RESOURCE_NOT_FOUND:
            self.registry.set_status(ConnectionStatus.CONNECTED)
            logger.info(f"SYNC: Participant {record_id} was not on remote")
        else:
            # Not re-inserted locally: the remote copy comes back on the next successful refresh
            self._track_remote(confirmed)
            logger.warning(f"SYNC: Remote delete of participant {record_id} failed: {confirmed.error}")

        await self._publish_local()
        return removed

    # Change propagation

    async def refresh(self, only_if_changed: bool = False) -> ServiceResult:
        """Full refresh: re-run get_all and republish the whole set to listeners"""
        result = await self.get_all()
        snapshot = [p.model_dump() for p in result.data]

        if only_if_changed and snapshot == self._last_published:
            return result

        logger.info(f"SYNC: Publishing {result.count} participants")
        self._publish(result.data)
        return result

    def on_remote_change(self, event: Dict[str, Any]):
        """Change feed callback: schedule a full refresh on the running loop"""
        logger.info(f"SYNC: Remote {event.get('eventType', 'change')} received, refreshing")
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def wait_for_pending_refreshes(self):
        if self._refresh_tasks:
            await asyncio.gather(*self._refresh_tasks, return_exceptions=True)

    # Introspection

    def get_stats(self) -> Dict[str, Any]:
        stats = self.local.get_stats()
        return {"total": stats["total"], "last_updated": stats["last_updated"]}

    def get_connection_status(self) -> Dict[str, Any]:
        return {
            "is_configured": self.remote_configured,
            "status": self.registry.status.value,
            "store": self.local.kind,
            "realtime": bool(getattr(self.remote, "is_subscribed", False)),
        }
