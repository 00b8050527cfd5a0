"""
pytest configuration and fixtures for the participant sync test suite
Stores are real; the remote table is replaced by an in-process fake
with switchable failure modes.
"""

from datetime import date
from typing import Any, Callable, Dict, List, Optional

import pytest
import pytest_asyncio

from models.participant import ParticipantCreate
from services.base_store import LocalRecordStore, ServiceResult, REMOTE_UNAVAILABLE
from services.local_cache import LocalCacheStore
from services.memory_store import MemoryStore
from services.subscriptions import SubscriptionRegistry
from services.sync_coordinator import SyncCoordinator


class FakeRemoteStore(LocalRecordStore):
    """
    Stand-in for the remote participant table.

    Ids start at 100 so remote-assigned ids are distinguishable from the
    tentative ids handed out by the local store. Set `unavailable = True`
    to make every call fail the way an unreachable backend does.
    """

    kind = "remote"

    def __init__(self):
        super().__init__([], next_id=100)
        self.unavailable = False
        self.calls: List[str] = []
        self.change_handler: Optional[Callable[[Dict[str, Any]], None]] = None
        self.subscribe_ok = True
        self.closed = False

    def _unavailable(self) -> ServiceResult:
        return ServiceResult(success=False, error="connection refused", error_type=REMOTE_UNAVAILABLE)

    async def ping(self):
        self.calls.append("ping")
        if self.unavailable:
            return self._unavailable()
        return ServiceResult(success=True, data=[], count=len(self._participants))

    async def get_all(self):
        self.calls.append("get_all")
        return self._unavailable() if self.unavailable else await super().get_all()

    async def find_by_id(self, record_id):
        self.calls.append("find_by_id")
        return self._unavailable() if self.unavailable else await super().find_by_id(record_id)

    async def find_by_certificate(self, certificate_number):
        self.calls.append("find_by_certificate")
        return self._unavailable() if self.unavailable else await super().find_by_certificate(certificate_number)

    async def add(self, participant):
        self.calls.append("add")
        return self._unavailable() if self.unavailable else await super().add(participant)

    async def update(self, record_id, changes):
        self.calls.append("update")
        return self._unavailable() if self.unavailable else await super().update(record_id, changes)

    async def delete(self, record_id):
        self.calls.append("delete")
        return self._unavailable() if self.unavailable else await super().delete(record_id)

    @property
    def is_subscribed(self) -> bool:
        return self.change_handler is not None

    async def subscribe_changes(self, handler):
        self.calls.append("subscribe_changes")
        if not self.subscribe_ok:
            return False
        self.change_handler = handler
        return True

    def drop_subscription(self):
        self.change_handler = None

    def emit(self, event_type: str = "INSERT"):
        self.change_handler({"eventType": event_type, "new": None, "old": None})

    async def close(self):
        self.closed = True
        self.change_handler = None


def make_participant(
    certificate_number: str = "CERT-2024-101",
    name: str = "Siti Nurhaliza",
    issue_date: date = date(2024, 3, 2),
    class_name: str = "Digital Marketing"
) -> ParticipantCreate:
    return ParticipantCreate(
        certificate_number=certificate_number,
        name=name,
        issue_date=issue_date,
        class_name=class_name
    )


@pytest.fixture
def participant_factory():
    return make_participant


@pytest.fixture
def registry():
    return SubscriptionRegistry()


@pytest.fixture
def cache_path(tmp_path):
    return str(tmp_path / "cache" / "participants.json")


@pytest.fixture
def local_cache(cache_path):
    return LocalCacheStore(cache_path)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def fake_remote():
    return FakeRemoteStore()


@pytest.fixture
def offline_coordinator(local_cache, registry):
    """Coordinator with no remote configured"""
    return SyncCoordinator(local_cache, registry)


@pytest.fixture
def online_coordinator(local_cache, registry, fake_remote):
    """Coordinator backed by the fake remote"""
    return SyncCoordinator(local_cache, registry, fake_remote)


@pytest.fixture
def published(registry):
    """Every participant snapshot pushed to listeners, in order"""
    snapshots = []
    registry.add_participant_listener(snapshots.append)
    return snapshots


@pytest_asyncio.fixture
async def seeded_remote(fake_remote):
    """Fake remote already holding two participants"""
    await fake_remote.add(make_participant("CERT-2024-001", "John Doe", date(2024, 1, 15), "Web Development Fundamentals"))
    await fake_remote.add(make_participant("CERT-2024-002", "Jane Smith", date(2024, 1, 20), "React Advanced Course"))
    fake_remote.calls.clear()
    return fake_remote
