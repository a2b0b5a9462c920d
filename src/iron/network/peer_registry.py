"""
Peer notification registry.

Each connected peer owns an outbound ``PeerChannel``; the transport drains it
and forwards messages to the client. Broadcast fans a notification out to every
registered channel, isolating failures per peer.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Iterator

from iron.core.exceptions import PeerSendError

logger = logging.getLogger(__name__)


class PeerChannel:
    """Unbounded outbound message queue for one peer."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop accepting messages; anything already queued can still be drained."""
        self._closed = True

    def send(self, message: dict[str, Any]) -> None:
        """
        Enqueue a message without blocking.

        Raises:
            PeerSendError: If the channel has been closed
        """
        if self._closed:
            raise PeerSendError("Peer channel is closed")
        self._queue.put_nowait(message)

    async def recv(self) -> dict[str, Any]:
        """Wait for the next queued message."""
        return await self._queue.get()

    def recv_nowait(self) -> dict[str, Any]:
        return self._queue.get_nowait()

    def drain(self) -> list[dict[str, Any]]:
        """Return every queued message without waiting."""
        messages = []
        while not self._queue.empty():
            messages.append(self._queue.get_nowait())
        return messages

    def qsize(self) -> int:
        return self._queue.qsize()


class PeerRegistry:
    """Connected peers keyed by their ``host:port`` address."""

    def __init__(self) -> None:
        self._peers: dict[str, PeerChannel] = {}
        self._stale: set[str] = set()

    def add(self, peer: str, channel: PeerChannel) -> None:
        if peer in self._peers:
            logger.debug("Replacing channel for peer %s", peer)
        self._peers[peer] = channel
        self._stale.discard(peer)

    def remove(self, peer: str) -> PeerChannel | None:
        self._stale.discard(peer)
        return self._peers.pop(peer, None)

    def get(self, peer: str) -> PeerChannel | None:
        return self._peers.get(peer)

    def addresses(self) -> list[str]:
        return list(self._peers)

    @property
    def stale(self) -> set[str]:
        """Peers whose most recent send failed."""
        return set(self._stale)

    def broadcast(self, message: Any) -> int:
        """
        Serialize ``message`` and enqueue it on every registered channel.

        A failing peer is logged and marked stale; delivery to the others goes on.

        Returns:
            Number of peers the message was queued for
        """
        payload = json.loads(json.dumps(message))
        logger.info("Broadcasting message: %s", payload)

        delivered = 0
        for peer, channel in list(self._peers.items()):
            try:
                channel.send(payload)
            except PeerSendError as e:
                e.peer = peer
                self._stale.add(peer)
                logger.warning(
                    "Failed to notify peer %s: %s",
                    peer,
                    e,
                    extra={"event": "peer.send_failed", "peer": peer},
                )
                continue
            delivered += 1
        return delivered

    def prune(self) -> list[str]:
        """Drop every stale peer and return their addresses."""
        removed = sorted(self._stale)
        for peer in removed:
            self._peers.pop(peer, None)
        self._stale.clear()
        if removed:
            logger.info("Pruned %d stale peer(s)", len(removed))
        return removed

    def __len__(self) -> int:
        return len(self._peers)

    def __contains__(self, peer: object) -> bool:
        return peer in self._peers

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._peers))
