"""
Tests for peer registration and broadcast

Tests:
- Fan-out to every registered channel
- Isolation of per-peer send failures
- Stale peer pruning
- Per-peer ordering
"""

import asyncio
import logging

import pytest

from iron.core.exceptions import PeerSendError
from iron.network import peer_registry
from iron.network.peer_registry import PeerChannel, PeerRegistry


@pytest.fixture
def registry():
    return PeerRegistry()


class TestPeerChannel:

    def test_send_and_drain(self):
        channel = PeerChannel()
        channel.send({"n": 1})
        channel.send({"n": 2})

        assert channel.qsize() == 2
        assert channel.drain() == [{"n": 1}, {"n": 2}]
        assert channel.qsize() == 0

    def test_closed_channel_rejects(self):
        channel = PeerChannel()
        channel.close()

        with pytest.raises(PeerSendError):
            channel.send({"n": 1})

    @pytest.mark.asyncio
    async def test_recv_waits_for_message(self):
        channel = PeerChannel()

        async def later():
            await asyncio.sleep(0.01)
            channel.send({"method": "ping"})

        task = asyncio.create_task(later())
        message = await asyncio.wait_for(channel.recv(), timeout=1)
        await task

        assert message == {"method": "ping"}


class TestRegistry:

    def test_add_remove(self, registry):
        channel = PeerChannel()
        registry.add("10.0.0.1:4000", channel)

        assert "10.0.0.1:4000" in registry
        assert len(registry) == 1
        assert registry.get("10.0.0.1:4000") is channel

        assert registry.remove("10.0.0.1:4000") is channel
        assert len(registry) == 0
        assert registry.remove("10.0.0.1:4000") is None

    def test_broadcast_reaches_every_peer(self, registry):
        channels = [PeerChannel() for _ in range(3)]
        for i, channel in enumerate(channels):
            registry.add(f"10.0.0.{i}:4000", channel)

        delivered = registry.broadcast({"method": "accountsChanged", "params": ["0xabc"]})

        assert delivered == 3
        for channel in channels:
            assert channel.drain() == [{"method": "accountsChanged", "params": ["0xabc"]}]

    def test_broadcast_without_peers(self, registry):
        assert registry.broadcast({"method": "noop"}) == 0

    def test_broadcast_serializes_message(self, registry):
        channel = PeerChannel()
        registry.add("10.0.0.1:4000", channel)

        registry.broadcast({"method": "chainChanged", "params": ("a", "b")})

        assert channel.drain() == [{"method": "chainChanged", "params": ["a", "b"]}]

    def test_failed_peer_does_not_abort_others(self, registry, caplog):
        first, dead, last = PeerChannel(), PeerChannel(), PeerChannel()
        registry.add("10.0.0.1:4000", first)
        registry.add("10.0.0.2:4000", dead)
        registry.add("10.0.0.3:4000", last)
        dead.close()

        with caplog.at_level(logging.WARNING, logger="iron.network.peer_registry"):
            delivered = registry.broadcast({"method": "accountsChanged", "params": ["0xabc"]})

        assert delivered == 2
        assert first.qsize() == 1
        assert last.qsize() == 1
        assert registry.stale == {"10.0.0.2:4000"}
        assert "10.0.0.2:4000" in caplog.text

    def test_prune_removes_stale_peers(self, registry):
        live, dead = PeerChannel(), PeerChannel()
        registry.add("10.0.0.1:4000", live)
        registry.add("10.0.0.2:4000", dead)
        dead.close()
        registry.broadcast({"method": "x"})

        assert registry.prune() == ["10.0.0.2:4000"]
        assert registry.addresses() == ["10.0.0.1:4000"]
        assert registry.stale == set()
        assert registry.prune() == []

    def test_re_adding_peer_clears_stale_mark(self, registry):
        dead = PeerChannel()
        registry.add("10.0.0.2:4000", dead)
        dead.close()
        registry.broadcast({"method": "x"})

        registry.add("10.0.0.2:4000", PeerChannel())

        assert registry.stale == set()
        assert registry.prune() == []
        assert "10.0.0.2:4000" in registry

    def test_per_peer_order_matches_broadcast_order(self, registry):
        channel = PeerChannel()
        registry.add("10.0.0.1:4000", channel)

        for n in range(5):
            registry.broadcast({"n": n})

        assert [m["n"] for m in channel.drain()] == [0, 1, 2, 3, 4]


def test_module_documented():
    assert peer_registry.__doc__.strip().startswith("Peer notification registry")
