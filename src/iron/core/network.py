"""
Chain descriptors.

A ``Network`` describes one EVM network the session can switch to. Instances are
immutable; the descriptor set is only ever replaced wholesale.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List

from iron.core import config

# Chain ids and decimals are unsigned 32-bit values
MAX_U32 = 2**32 - 1


@dataclass(frozen=True)
class Network:
    """One selectable network."""

    name: str
    chain_id: int
    rpc_url: str
    currency: str = "ETH"
    decimals: int = 18

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Network name must not be empty")
        if not isinstance(self.chain_id, int) or not 0 <= self.chain_id <= MAX_U32:
            raise ValueError(f"Invalid chain id for {self.name}: {self.chain_id!r}")
        if not isinstance(self.decimals, int) or not 0 <= self.decimals <= MAX_U32:
            raise ValueError(f"Invalid decimals for {self.name}: {self.decimals!r}")

    @classmethod
    def mainnet(cls) -> "Network":
        return cls(name="mainnet", chain_id=1, rpc_url=config.MAINNET_RPC_URL)

    @classmethod
    def goerli(cls) -> "Network":
        return cls(name="goerli", chain_id=5, rpc_url=config.GOERLI_RPC_URL)

    @classmethod
    def anvil(cls) -> "Network":
        return cls(name="anvil", chain_id=31337, rpc_url=config.ANVIL_RPC_URL)

    @property
    def chain_id_hex(self) -> str:
        """Chain id as lowercase ``0x``-prefixed hex, e.g. ``0x7a69``."""
        return hex(self.chain_id)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Network":
        """Build a descriptor from its persisted form."""
        return cls(
            name=str(data["name"]),
            chain_id=int(data["chain_id"]),
            rpc_url=str(data["rpc_url"]),
            currency=str(data.get("currency", "ETH")),
            decimals=int(data.get("decimals", 18)),
        )

    def __str__(self) -> str:
        return f"{self.chain_id}-{self.name}"


def default_networks() -> List[Network]:
    """The built-in descriptor set used when nothing has been configured."""
    return [Network.mainnet(), Network.goerli(), Network.anvil()]
