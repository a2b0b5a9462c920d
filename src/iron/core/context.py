"""
Session context - the shared wallet/network state of a running Iron backend.

``ContextInner`` holds the active wallet, the selected network, the known
networks, the connected peers and the storage handle. ``Context`` is the
handle every component receives; it guards the inner state with one
``asyncio.Lock`` so transitions never interleave:

    async with context.lock() as inner:
        inner.set_current_network("anvil")

Transitions only notify peers when something they can observe changes:
``accountsChanged`` when the address changes, ``chainChanged`` when the chain
id changes. A chain change re-derives the signer before the broadcast.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from eth_account.signers.local import LocalAccount
from web3 import Web3

from iron.core import config
from iron.core.exceptions import NetworkNotFoundError, PersistenceError
from iron.core.network import Network, default_networks
from iron.core.provider import build_provider
from iron.database.storage_manager import StorageManager
from iron.network.peer_registry import PeerChannel, PeerRegistry
from iron.wallet.hd_wallet import Wallet

logger = logging.getLogger(__name__)

# Storage key of the persisted session projection
SESSION_KEY = "session"


class ContextInner:
    """
    Session state. Only touch it while holding ``Context.lock()``.

    Invariants for any state reached through the transitions:
    - ``current_network`` names an entry of ``networks``
    - ``wallet`` is bound to that entry's chain id
    """

    def __init__(
        self,
        wallet: Optional[Wallet] = None,
        current_network: Optional[str] = None,
        networks: Optional[Iterable[Network]] = None,
        db: Optional[StorageManager] = None,
    ):
        self.networks: Dict[str, Network] = {}
        self.set_networks(default_networks() if networks is None else networks)

        if current_network is None:
            current_network = config.DEFAULT_NETWORK
            if current_network not in self.networks:
                current_network = next(iter(self.networks), current_network)
        network = self.get_network(current_network)
        self.current_network: str = current_network

        if wallet is None:
            wallet = Wallet.default(network.chain_id)
        elif wallet.chain_id != network.chain_id:
            wallet = wallet.with_chain_id(network.chain_id)
        self.wallet: Wallet = wallet

        self.peers = PeerRegistry()
        self.db = db

    # ===== STORAGE =====

    def connect_db(self, path: Path | str) -> StorageManager:
        """
        Open the storage at ``path`` and attach it to the session.

        Raises:
            PersistenceError: If the store cannot be opened
        """
        db = StorageManager(Path(path))
        if self.db is not None and self.db is not db:
            self.db.close()
        self.db = db
        logger.info("Connected session storage at %s", db.db_path)
        return db

    # ===== PEERS =====

    def add_peer(self, peer: str, channel: PeerChannel) -> None:
        self.peers.add(peer, channel)
        logger.debug("Peer %s connected (%d total)", peer, len(self.peers))

    def remove_peer(self, peer: str) -> None:
        self.peers.remove(peer)
        logger.debug("Peer %s disconnected (%d total)", peer, len(self.peers))

    def prune_peers(self) -> List[str]:
        return self.peers.prune()

    def broadcast(self, message: Dict[str, Any]) -> int:
        return self.peers.broadcast(message)

    # ===== TRANSITIONS =====

    def _active_chain_id(self) -> int:
        # After set_networks() the active name may be gone; the wallet still
        # carries the chain id peers last saw.
        current = self.networks.get(self.current_network)
        return current.chain_id if current is not None else self.wallet.chain_id

    def set_wallet(self, wallet: Wallet) -> bool:
        """
        Change the active wallet.

        The new wallet is re-bound to the active chain id before it is
        installed. Broadcasts ``accountsChanged`` if the address changed.

        Returns:
            True if the address changed

        Raises:
            DerivationError: If re-binding the wallet fails (nothing is changed)
        """
        chain_id = self._active_chain_id()
        if wallet.chain_id != chain_id:
            wallet = wallet.with_chain_id(chain_id)

        previous_address = self.wallet.checksummed_address
        self.wallet = wallet
        new_address = self.wallet.checksummed_address

        if previous_address == new_address:
            return False

        logger.info("Active account changed to %s", new_address)
        self.broadcast({"method": "accountsChanged", "params": [new_address]})
        return True

    def set_current_network(self, name: str) -> bool:
        """
        Change the active network by name.

        If the chain id changes, the signer is re-derived under the new chain
        id and ``chainChanged`` is broadcast. Lookup and derivation happen
        before anything is committed.

        Returns:
            True if the chain id changed

        Raises:
            NetworkNotFoundError: If ``name`` is not a known network
            DerivationError: If the signer cannot be re-derived
        """
        new_network = self.get_network(name)

        previous_chain_id = self._active_chain_id()

        if previous_chain_id == new_network.chain_id:
            self.current_network = name
            return False

        wallet = self.wallet.with_chain_id(new_network.chain_id)
        self.current_network = name
        self.wallet = wallet

        logger.info("Active network changed to %s", new_network)
        self.broadcast(
            {
                "method": "chainChanged",
                "params": {
                    "chainId": new_network.chain_id_hex,
                    "networkVersion": new_network.name,
                },
            }
        )
        return True

    def set_current_network_by_id(self, chain_id: int) -> bool:
        """
        Change the active network to the first known network with ``chain_id``.

        Networks are searched in the order they were given to ``set_networks``.

        Raises:
            NetworkNotFoundError: If no known network has ``chain_id``
        """
        for network in self.networks.values():
            if network.chain_id == chain_id:
                return self.set_current_network(network.name)
        raise NetworkNotFoundError(
            f"No network with chain id {chain_id}", chain_id=chain_id
        )

    def set_networks(self, networks: Iterable[Network]) -> None:
        """
        Replace the known networks. Later entries win on duplicate names.

        The active network is not checked against the new set; callers that
        may have removed it must follow up with ``set_current_network``.
        """
        self.networks = {network.name: network for network in networks}
        current = getattr(self, "current_network", None)
        if current is not None and current not in self.networks:
            logger.warning("Active network %s is no longer in the network list", current)

    # ===== LOOKUPS =====

    def get_network(self, name: str) -> Network:
        """
        Raises:
            NetworkNotFoundError: If ``name`` is not a known network
        """
        try:
            return self.networks[name]
        except KeyError:
            raise NetworkNotFoundError(f"Unknown network: {name}", name=name) from None

    def get_current_network(self) -> Network:
        return self.get_network(self.current_network)

    def get_provider(self) -> Web3:
        """
        Build an RPC client for the active network.

        Raises:
            ConfigurationError: If the network's RPC URL is malformed
        """
        return build_provider(self.get_current_network())

    def get_signer(self) -> LocalAccount:
        return self.wallet.signer

    # ===== SERIALIZATION =====

    def to_dict(self) -> Dict[str, Any]:
        """Persistable projection; peers, storage and key material are excluded."""
        return {
            "wallet": self.wallet.to_dict(),
            "currentNetwork": self.current_network,
            "networks": {name: network.to_dict() for name, network in self.networks.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContextInner":
        """
        Rebuild session state from its persisted projection.

        Fields are read first, then the signer is derived under the chain id
        of the persisted active network.

        Raises:
            PersistenceError: If the projection is malformed
            NetworkNotFoundError: If the active network is not in the saved set
            DerivationError: If the wallet cannot be derived
        """
        try:
            networks = [Network.from_dict(entry) for entry in data["networks"].values()]
            current_network = str(data["currentNetwork"])
            wallet_data = dict(data["wallet"])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PersistenceError(f"Malformed session data: {e}") from e

        inner = cls.__new__(cls)
        inner.networks = {}
        inner.set_networks(networks)
        network = inner.get_network(current_network)
        inner.current_network = current_network
        inner.wallet = Wallet.from_dict(wallet_data, network.chain_id)
        inner.peers = PeerRegistry()
        inner.db = None
        return inner

    def save(self) -> None:
        """
        Write the session projection to the attached storage.

        Raises:
            PersistenceError: If no storage is attached or the write fails
        """
        if self.db is None:
            raise PersistenceError("No storage connected")
        self.db.set(SESSION_KEY, self.to_dict())

    @classmethod
    def load(cls, db: StorageManager) -> "ContextInner":
        """Session saved in ``db``, or a fresh default session; ``db`` is attached."""
        data = db.get(SESSION_KEY)
        if data is None:
            logger.info("No saved session in %s, starting with defaults", db.db_path)
            inner = cls()
        else:
            inner = cls.from_dict(data)
            logger.info("Loaded session on %s", inner.get_current_network())
        inner.db = db
        return inner


class Context:
    """
    Shared handle to one ``ContextInner``.

    Handles created with ``clone()`` share the same state and the same lock.
    """

    def __init__(self, inner: Optional[ContextInner] = None):
        self._inner = inner if inner is not None else ContextInner()
        self._lock = asyncio.Lock()
        self._persist_lock = asyncio.Lock()

    def clone(self) -> "Context":
        handle = Context.__new__(Context)
        handle._inner = self._inner
        handle._lock = self._lock
        handle._persist_lock = self._persist_lock
        return handle

    @asynccontextmanager
    async def lock(self) -> AsyncIterator[ContextInner]:
        """Exclusive access to the session state for the body of the ``async with``."""
        async with self._lock:
            yield self._inner

    def locked(self) -> bool:
        return self._lock.locked()

    @classmethod
    async def open(cls, path: Path | str) -> "Context":
        """
        Open the storage at ``path`` and build a handle from the saved session.

        Raises:
            PersistenceError: If the storage cannot be opened or read
            NetworkNotFoundError, DerivationError: If the saved session cannot be rebuilt
        """
        db = await asyncio.to_thread(StorageManager, Path(path))
        try:
            inner = await asyncio.to_thread(ContextInner.load, db)
        except Exception:
            db.close()
            raise
        return cls(inner)

    async def persist(self) -> None:
        """
        Write the current session projection to storage.

        The snapshot is taken under the state lock; the write itself runs in
        a worker thread after the lock is released. Writes happen in call order.

        Raises:
            PersistenceError: If no storage is attached or the write fails
        """
        async with self._persist_lock:
            async with self._lock:
                db = self._inner.db
                snapshot = self._inner.to_dict()
            if db is None:
                raise PersistenceError("No storage connected")
            await asyncio.to_thread(db.set, SESSION_KEY, snapshot)

    async def close(self) -> None:
        async with self._lock:
            if self._inner.db is not None:
                self._inner.db.close()
                self._inner.db = None

    # ===== GUARDED SHORTCUTS =====

    async def set_wallet(self, wallet: Wallet) -> bool:
        async with self.lock() as inner:
            return inner.set_wallet(wallet)

    async def set_current_network(self, name: str) -> bool:
        async with self.lock() as inner:
            return inner.set_current_network(name)

    async def set_current_network_by_id(self, chain_id: int) -> bool:
        async with self.lock() as inner:
            return inner.set_current_network_by_id(chain_id)

    async def set_networks(self, networks: Iterable[Network]) -> None:
        async with self.lock() as inner:
            inner.set_networks(networks)

    async def add_peer(self, peer: str, channel: PeerChannel) -> None:
        async with self.lock() as inner:
            inner.add_peer(peer, channel)

    async def remove_peer(self, peer: str) -> None:
        async with self.lock() as inner:
            inner.remove_peer(peer)
