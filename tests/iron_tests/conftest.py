import logging

import pytest

from iron.core.context import ContextInner
from iron.core.network import Network
from iron.network.peer_registry import PeerChannel
from iron.wallet.hd_wallet import Wallet

from accounts import TEST_MNEMONIC, TEST_PATH


@pytest.fixture(autouse=True)
def reset_iron_logger():
    """Undo handlers/levels installed by setup_logging (the CLI calls it)."""
    yield
    package_logger = logging.getLogger("iron")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def networks():
    """mainnet and a fork sharing chain id 1, plus goerli and anvil."""
    return [
        Network(name="mainnet", chain_id=1, rpc_url="https://mainnet.example.org"),
        Network(name="mainnet-fork", chain_id=1, rpc_url="http://localhost:8546"),
        Network(name="goerli", chain_id=5, rpc_url="https://goerli.example.org"),
        Network(name="anvil", chain_id=31337, rpc_url="http://localhost:8545"),
    ]


@pytest.fixture
def wallet():
    return Wallet.derive(TEST_MNEMONIC, TEST_PATH, 0, 1)


@pytest.fixture
def session(networks, wallet):
    """Session on mainnet with account 0 and no peers."""
    return ContextInner(wallet=wallet, current_network="mainnet", networks=networks)


@pytest.fixture
def peer(session):
    """A connected peer channel on ``session``."""
    channel = PeerChannel()
    session.add_peer("127.0.0.1:50001", channel)
    return channel


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "iron" / "session.db"
