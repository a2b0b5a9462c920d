"""
Iron - session core of a multi-network EVM wallet backend.

Main Components:
- Session: shared wallet/network state guarded by an asyncio lock
- Wallet: BIP-39 / BIP-32 derived signing identity
- Network: chain descriptors and RPC client construction
- Peers: notification fan-out to connected clients
- Storage: SQLite-backed persistence of the session
"""

__version__ = "0.6.1"
__author__ = "Iron Development Team"

__all__ = []
