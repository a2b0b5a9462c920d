"""HD signing identities."""

from iron.wallet.hd_wallet import Wallet

__all__ = ["Wallet"]
