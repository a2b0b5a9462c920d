"""Peer notification channels and broadcast."""

from iron.network.peer_registry import PeerChannel, PeerRegistry

__all__ = ["PeerChannel", "PeerRegistry"]
