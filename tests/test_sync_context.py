"""
Sync context lifecycle: connect, subscribe, poll, shut down
"""

import pytest

from services.local_cache import LocalCacheStore
from services.memory_store import MemoryStore
from services.subscriptions import ConnectionStatus
from services.sync_context import SyncContext, select_local_store


@pytest.fixture
def context(local_cache, fake_remote):
    return SyncContext(local_cache, fake_remote, poll_interval=0)


@pytest.mark.sync
class TestStart:

    @pytest.mark.asyncio
    async def test_connects_subscribes_and_syncs(self, context, seeded_remote):
        snapshots = []
        statuses = []
        context.registry.add_participant_listener(snapshots.append)
        context.registry.add_status_listener(statuses.append)

        connected = await context.start()

        assert connected
        assert statuses == [ConnectionStatus.DISCONNECTED, ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
        assert seeded_remote.calls == ["ping", "subscribe_changes", "get_all"]
        assert len(snapshots) == 1 and len(snapshots[0]) == 2
        assert context.coordinator.get_connection_status()["realtime"]

    @pytest.mark.asyncio
    async def test_unreachable_remote_sets_error(self, context, fake_remote):
        fake_remote.unavailable = True

        connected = await context.start()

        assert not connected
        assert context.registry.status == ConnectionStatus.ERROR
        assert fake_remote.calls == ["ping"]

    @pytest.mark.asyncio
    async def test_failed_subscription_sets_error(self, context, fake_remote):
        fake_remote.subscribe_ok = False
        statuses = []
        context.registry.add_status_listener(statuses.append)

        await context.start()

        assert ConnectionStatus.ERROR in statuses
        assert not fake_remote.is_subscribed
        assert not context.coordinator.get_connection_status()["realtime"]

    @pytest.mark.asyncio
    async def test_without_remote_stays_disconnected(self, memory_store):
        context = SyncContext(memory_store, poll_interval=0)

        assert not await context.start()
        assert context.registry.status == ConnectionStatus.DISCONNECTED
        assert (await context.coordinator.get_all()).count == 3


@pytest.mark.sync
class TestChangeFeed:

    @pytest.mark.asyncio
    async def test_notification_republishes_full_set(self, context, seeded_remote, participant_factory):
        await context.start()
        snapshots = []
        context.registry.add_participant_listener(snapshots.append)

        await seeded_remote.add(participant_factory("CERT-NEW"))
        seeded_remote.emit("INSERT")
        await context.coordinator.wait_for_pending_refreshes()

        assert len(snapshots) == 1
        assert "CERT-NEW" in [p.certificate_number for p in snapshots[0]]

    @pytest.mark.asyncio
    async def test_poll_publishes_only_on_change(self, context, seeded_remote, participant_factory):
        await context.start()
        snapshots = []
        context.registry.add_participant_listener(snapshots.append)

        await context.poll_once()
        assert snapshots == []

        await seeded_remote.add(participant_factory("CERT-NEW"))
        await context.poll_once()
        assert len(snapshots) == 1

    @pytest.mark.asyncio
    async def test_poll_resubscribes_dropped_feed(self, context, seeded_remote):
        await context.start()
        seeded_remote.drop_subscription()

        await context.poll_once()

        assert seeded_remote.is_subscribed
        assert seeded_remote.calls.count("subscribe_changes") == 2

    @pytest.mark.asyncio
    async def test_poll_does_not_resubscribe_while_unreachable(self, context, seeded_remote):
        await context.start()
        seeded_remote.drop_subscription()
        seeded_remote.unavailable = True

        await context.poll_once()

        assert context.registry.status == ConnectionStatus.ERROR
        assert seeded_remote.calls.count("subscribe_changes") == 1


@pytest.mark.sync
class TestShutdown:

    @pytest.mark.asyncio
    async def test_closes_remote_and_drops_listeners(self, local_cache, fake_remote):
        context = SyncContext(local_cache, fake_remote, poll_interval=60)
        await context.start()
        context.registry.add_participant_listener(lambda participants: None)

        await context.shutdown()

        assert fake_remote.closed
        assert context.registry.listener_counts == {"participants": 0, "status": 0}
        assert context._poll_task is None


class TestSelectLocalStore:

    def test_uses_cache_when_path_is_usable(self, cache_path):
        assert isinstance(select_local_store(cache_path), LocalCacheStore)

    def test_falls_back_to_memory(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        store = select_local_store(str(blocker / "participants.json"))

        assert isinstance(store, MemoryStore)
