"""
Iron Session Configuration

Values are read from environment variables at import time and exposed both as
module-level constants and through the ``Config`` class.

SECURITY NOTICE:
- IRON_MNEMONIC holds wallet secret material; never commit it
- The built-in test mnemonic is public and must never hold real funds
"""

from __future__ import annotations

import logging
import os

from iron.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Publicly known development mnemonic (anvil / hardhat default accounts)
DEFAULT_MNEMONIC = "test test test test test test test test test test test junk"
DEFAULT_DERIVATION_PATH = "m/44'/60'/0'/0"

DEFAULT_MAINNET_RPC_URL = "https://eth-mainnet.g.alchemy.com/v2/rTwL6BTDDWkP3tZJUc_N6shfCSR5hsTs"
DEFAULT_GOERLI_RPC_URL = "https://eth-goerli.g.alchemy.com/v2/rTwL6BTDDWkP3tZJUc_N6shfCSR5hsTs"
DEFAULT_ANVIL_RPC_URL = "http://localhost:8545"


def _get_int(env_var: str, default: int) -> int:
    """Read a non-negative integer from the environment."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{env_var} must be an integer, got {raw!r}",
            details={"env_var": env_var},
        )
    if value < 0:
        raise ConfigurationError(
            f"{env_var} must be non-negative, got {value}",
            details={"env_var": env_var},
        )
    return value


DATA_DIR = os.getenv("IRON_DATA_DIR", os.path.join(os.path.expanduser("~"), ".iron"))
DB_PATH = os.getenv("IRON_DB_PATH", os.path.join(DATA_DIR, "session.db"))

DEFAULT_NETWORK = os.getenv("IRON_DEFAULT_NETWORK", "mainnet").strip() or "mainnet"

MNEMONIC = os.getenv("IRON_MNEMONIC", "").strip() or DEFAULT_MNEMONIC
DERIVATION_PATH = os.getenv("IRON_DERIVATION_PATH", "").strip() or DEFAULT_DERIVATION_PATH
ACCOUNT_INDEX = _get_int("IRON_ACCOUNT_INDEX", 0)

MAINNET_RPC_URL = os.getenv("IRON_MAINNET_RPC_URL", DEFAULT_MAINNET_RPC_URL)
GOERLI_RPC_URL = os.getenv("IRON_GOERLI_RPC_URL", DEFAULT_GOERLI_RPC_URL)
ANVIL_RPC_URL = os.getenv("IRON_ANVIL_RPC_URL", DEFAULT_ANVIL_RPC_URL)

LOG_LEVEL = os.getenv("IRON_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("IRON_LOG_FILE", "").strip() or None
ENVIRONMENT = os.getenv("IRON_ENVIRONMENT", "production")

if MNEMONIC == DEFAULT_MNEMONIC:
    logger.debug(
        "Using the public development mnemonic; set IRON_MNEMONIC for a private wallet",
        extra={"event": "config.default_mnemonic"},
    )


class Config:
    """Session configuration resolved from the environment."""

    DATA_DIR = DATA_DIR
    DB_PATH = DB_PATH
    DEFAULT_NETWORK = DEFAULT_NETWORK

    # Wallet
    MNEMONIC = MNEMONIC
    DERIVATION_PATH = DERIVATION_PATH
    ACCOUNT_INDEX = ACCOUNT_INDEX

    # RPC endpoints for the built-in networks
    MAINNET_RPC_URL = MAINNET_RPC_URL
    GOERLI_RPC_URL = GOERLI_RPC_URL
    ANVIL_RPC_URL = ANVIL_RPC_URL

    # Logging
    LOG_LEVEL = LOG_LEVEL
    LOG_FILE = LOG_FILE
    ENVIRONMENT = ENVIRONMENT


__all__ = [
    "Config",
    "ConfigurationError",
    "DEFAULT_MNEMONIC",
    "DEFAULT_DERIVATION_PATH",
    "DATA_DIR",
    "DB_PATH",
    "DEFAULT_NETWORK",
]
