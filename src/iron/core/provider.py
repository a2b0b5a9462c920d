"""
Upstream RPC client construction.

Only building the client is handled here; requests go through web3 directly.
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from web3 import Web3

from iron.core.exceptions import ConfigurationError
from iron.core.network import Network

logger = logging.getLogger(__name__)

RPC_SCHEMES = ("http", "https")


def validate_rpc_url(rpc_url: str) -> str:
    """
    Check that ``rpc_url`` is an absolute http(s) URL.

    Raises:
        ConfigurationError: If the URL is malformed
    """
    try:
        parsed = urlparse(rpc_url)
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigurationError(f"Malformed RPC URL: {rpc_url!r}") from e

    if parsed.scheme not in RPC_SCHEMES or not parsed.netloc:
        raise ConfigurationError(
            f"Malformed RPC URL: {rpc_url!r}",
            details={"rpc_url": rpc_url},
        )
    return rpc_url


def build_provider(network: Network) -> Web3:
    """
    Build a web3 HTTP client for ``network``.

    Raises:
        ConfigurationError: If the network's RPC URL is malformed
    """
    rpc_url = validate_rpc_url(network.rpc_url)
    logger.debug("Built RPC client for %s", network)
    return Web3(Web3.HTTPProvider(rpc_url))
