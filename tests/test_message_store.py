"""
Tests for the dual-backend message store
"""

import asyncio
import json
import threading
import pytest
from unittest.mock import Mock

from infrastructure.external.chat_api_client import TransportError
from infrastructure.storage.local_storage import LocalStorage
from services.chat_service.message_store import CACHE_KEY, MessageStore
from services.chat_service.models import ConnectivityState, Message


def make_message(n, **changes):
    data = {"id": f"m{n}", "userId": "u1", "username": "Alice", "text": f"hello {n}", "timestamp": 1000 + n}
    data.update(changes)
    return data


class TestMessageStore:

    @pytest.fixture(autouse=True)
    def setup_store(self, tmp_path):
        self.storage = LocalStorage(str(tmp_path / "ls.json"))
        self.remote = Mock()
        self.store = MessageStore(remote=self.remote, storage=self.storage, cache_limit=100)
        self.changes = []
        self.store.add_listener(self.changes.append)

    def set_cache(self, messages):
        self.storage.set_item(CACHE_KEY, json.dumps(messages))

    # ------------------------------------------------------------------ fetch

    @pytest.mark.asyncio
    async def test_fetch_replaces_transcript(self):
        self.remote.list_messages.return_value = [make_message(1), make_message(2)]

        assert await self.store.fetch_latest() is True
        assert [m.id for m in self.store.messages] == ["m1", "m2"]
        assert self.store.connectivity == ConnectivityState.ONLINE
        assert len(self.changes) == 1

    @pytest.mark.asyncio
    async def test_unchanged_tail_is_not_replaced(self):
        self.remote.list_messages.return_value = [make_message(1), make_message(2)]
        await self.store.fetch_latest()
        before = self.store.messages
        version = self.store.version

        assert await self.store.fetch_latest() is False
        assert self.store.messages is before
        assert self.store.version == version
        assert len(self.changes) == 1

    @pytest.mark.asyncio
    async def test_empty_remote_on_empty_transcript_is_unchanged(self):
        self.remote.list_messages.return_value = []

        assert await self.store.fetch_latest() is False
        assert self.changes == []

    @pytest.mark.asyncio
    async def test_remote_authoritative_even_if_shorter(self):
        self.remote.list_messages.return_value = [make_message(1), make_message(2)]
        await self.store.fetch_latest()
        self.remote.list_messages.return_value = [make_message(3)]

        assert await self.store.fetch_latest() is True
        assert [m.id for m in self.store.messages] == ["m3"]

    @pytest.mark.asyncio
    async def test_failure_on_fresh_start_adopts_cache(self):
        self.set_cache([make_message(1), make_message(2)])
        self.remote.list_messages.side_effect = TransportError("down")

        assert await self.store.fetch_latest() is True
        assert [m.id for m in self.store.messages] == ["m1", "m2"]
        assert self.store.is_offline

    @pytest.mark.asyncio
    async def test_failure_never_shrinks_transcript(self):
        self.remote.list_messages.return_value = [make_message(n) for n in range(5)]
        await self.store.fetch_latest()
        self.set_cache([make_message(1), make_message(2)])
        self.remote.list_messages.side_effect = TransportError("down")

        assert await self.store.fetch_latest() is False
        assert len(self.store.messages) == 5
        assert self.store.is_offline

    @pytest.mark.asyncio
    async def test_failure_adopts_longer_cache(self):
        self.remote.list_messages.return_value = [make_message(1)]
        await self.store.fetch_latest()
        self.set_cache([make_message(1), make_message(2), make_message(3)])
        self.remote.list_messages.side_effect = TransportError("down")

        assert await self.store.fetch_latest() is True
        assert len(self.store.messages) == 3

    @pytest.mark.asyncio
    async def test_malformed_payload_counts_as_failure(self):
        self.remote.list_messages.return_value = [{"no": "id"}]

        assert await self.store.fetch_latest() is False
        assert self.store.is_offline

    @pytest.mark.asyncio
    async def test_corrupt_cache_counts_as_empty(self):
        self.storage.set_item(CACHE_KEY, "not json")
        self.remote.list_messages.side_effect = TransportError("down")

        assert await self.store.fetch_latest() is False
        assert self.store.messages == ()

    @pytest.mark.asyncio
    async def test_recovery_goes_back_online(self):
        self.remote.list_messages.side_effect = TransportError("down")
        await self.store.fetch_latest()
        self.remote.list_messages.side_effect = None
        self.remote.list_messages.return_value = [make_message(1)]

        await self.store.fetch_latest()

        assert self.store.connectivity == ConnectivityState.ONLINE

    @pytest.mark.asyncio
    async def test_results_after_close_are_discarded(self):
        self.remote.list_messages.return_value = [make_message(1)]
        self.store.close()

        assert await self.store.fetch_latest() is False
        assert self.store.messages == ()

    @pytest.mark.asyncio
    async def test_poll_dispatched_before_close_stays_discarded_after_reopen(self):
        release = threading.Event()

        def slow_list():
            release.wait(timeout=2)
            return [make_message(1)]

        self.remote.list_messages.side_effect = slow_list
        poll = asyncio.create_task(self.store.fetch_latest())
        await asyncio.sleep(0.01)

        self.store.close()
        self.store.open()
        release.set()

        assert await poll is False
        assert self.store.messages == ()

    # ------------------------------------------------------------------ append

    @pytest.mark.asyncio
    async def test_append_is_visible_and_cached_before_remote(self):
        message = Message.from_dict(make_message(1))

        self.store.append(message)

        assert self.store.messages[-1] is message
        assert json.loads(self.storage.get_item(CACHE_KEY))[-1]["id"] == "m1"
        await self.store.drain()
        self.remote.append_message.assert_called_once_with(message.to_dict())

    @pytest.mark.asyncio
    async def test_append_failure_is_swallowed(self):
        self.remote.append_message.side_effect = TransportError("down")
        message = Message.from_dict(make_message(1))

        self.store.append(message)
        await self.store.drain()

        assert self.store.messages == (message,)
        assert len(self.store.load_cache()) == 1

    @pytest.mark.asyncio
    async def test_cache_keeps_most_recent_only(self):
        store = MessageStore(remote=self.remote, storage=self.storage, cache_limit=3)
        for n in range(5):
            store.append(Message.from_dict(make_message(n)))
        await store.drain()

        assert [m.id for m in store.load_cache()] == ["m2", "m3", "m4"]
        assert len(store.messages) == 5
