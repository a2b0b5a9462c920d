"""
HD signing identity - BIP-39 / BIP-32 derivation of an EVM signer.

A ``Wallet`` is the secret material (mnemonic, derivation path template,
account index) plus the signer derived from it at ``<path>/<idx>``. The signer
is bound to a chain id for replay-protected signing; the address does not
depend on the chain id. Only the secret material is serialized, the signer is
rebuilt on load.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import ValidationError, to_checksum_address

from iron.core import config
from iron.core.exceptions import DerivationError

logger = logging.getLogger(__name__)

Account.enable_unaudited_hdwallet_features()

# Highest non-hardened BIP-32 child index
MAX_ACCOUNT_INDEX = 2**31 - 1


def _normalize_mnemonic(mnemonic: str) -> str:
    return " ".join(mnemonic.split())


class Wallet:
    """
    Deterministic signing identity derived from a BIP-39 mnemonic.

    Instances are never mutated; re-binding to another chain id returns a new
    ``Wallet`` built from the same secret material.
    """

    __slots__ = ("_mnemonic", "_derivation_path", "_idx", "_chain_id", "_signer")

    def __init__(
        self,
        mnemonic: str,
        derivation_path: str,
        idx: int,
        chain_id: int,
        signer: LocalAccount,
    ):
        self._mnemonic = mnemonic
        self._derivation_path = derivation_path
        self._idx = idx
        self._chain_id = chain_id
        self._signer = signer

    # ===== CONSTRUCTION =====

    @staticmethod
    def build_signer(mnemonic: str, derivation_path: str, idx: int) -> LocalAccount:
        """
        Derive the account key at ``<derivation_path>/<idx>``.

        Raises:
            DerivationError: If the mnemonic, path or index is invalid
        """
        if not isinstance(idx, int) or isinstance(idx, bool) or not 0 <= idx <= MAX_ACCOUNT_INDEX:
            raise DerivationError(
                f"Account index must be between 0 and {MAX_ACCOUNT_INDEX}, got {idx!r}"
            )

        phrase = _normalize_mnemonic(mnemonic)
        if not phrase:
            raise DerivationError("Mnemonic phrase must not be empty")

        path = f"{derivation_path.rstrip('/')}/{idx}"
        try:
            return Account.from_mnemonic(phrase, account_path=path)
        except (ValidationError, ValueError) as e:
            # Bad checksum, unknown words and malformed paths all end up here
            raise DerivationError(
                f"Could not derive key at {path}: {e}", details={"path": path}
            ) from e

    @classmethod
    def derive(
        cls,
        mnemonic: str,
        derivation_path: str,
        idx: int,
        chain_id: int,
    ) -> "Wallet":
        """
        Derive a signing identity bound to ``chain_id``.

        Same inputs always produce the same key material and address.

        Raises:
            DerivationError: If the mnemonic is not valid BIP-39 or the path is malformed
        """
        signer = cls.build_signer(mnemonic, derivation_path, idx)
        return cls(mnemonic, derivation_path, idx, chain_id, signer)

    @classmethod
    def default(cls, chain_id: int = 1) -> "Wallet":
        """Wallet from the configured (or public development) mnemonic."""
        return cls.derive(config.MNEMONIC, config.DERIVATION_PATH, config.ACCOUNT_INDEX, chain_id)

    def with_chain_id(self, chain_id: int) -> "Wallet":
        """Re-derive the signer from the same secret material under ``chain_id``."""
        logger.debug("Re-deriving signer for chain id %d", chain_id)
        return self.derive(self._mnemonic, self._derivation_path, self._idx, chain_id)

    # ===== ACCESSORS =====

    @property
    def mnemonic(self) -> str:
        return self._mnemonic

    @property
    def derivation_path(self) -> str:
        return self._derivation_path

    @property
    def idx(self) -> int:
        return self._idx

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def signer(self) -> LocalAccount:
        return self._signer

    @property
    def checksummed_address(self) -> str:
        """EIP-55 mixed-case address of the derived account."""
        return to_checksum_address(self._signer.address)

    # ===== SIGNING =====

    def sign_message(self, text: str):
        """Sign an EIP-191 personal message."""
        return self._signer.sign_message(encode_defunct(text=text))

    def sign_transaction(self, transaction: Dict[str, Any]):
        """
        Sign a transaction dict, binding it to this wallet's chain id.

        An explicit ``chainId`` that disagrees with the wallet is rejected.
        """
        tx = dict(transaction)
        chain_id = tx.setdefault("chainId", self._chain_id)
        if chain_id != self._chain_id:
            raise ValueError(
                f"Transaction chainId {chain_id} does not match wallet chain id {self._chain_id}"
            )
        return self._signer.sign_transaction(tx)

    # ===== SERIALIZATION =====

    def to_dict(self) -> Dict[str, Any]:
        """Persistable projection. Key material is never included."""
        return {
            "mnemonic": self._mnemonic,
            "derivationPath": self._derivation_path,
            "idx": self._idx,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], chain_id: int) -> "Wallet":
        """
        Rebuild a wallet from its persisted projection, deriving the signer for ``chain_id``.

        Raises:
            DerivationError: If a field is missing or derivation fails
        """
        missing = [field for field in ("mnemonic", "derivationPath", "idx") if field not in data]
        if missing:
            raise DerivationError(
                f"Persisted wallet is missing fields: {', '.join(missing)}",
                details={"missing": missing},
            )
        return cls.derive(str(data["mnemonic"]), str(data["derivationPath"]), data["idx"], chain_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Wallet):
            return NotImplemented
        return (
            self._mnemonic == other._mnemonic
            and self._derivation_path == other._derivation_path
            and self._idx == other._idx
            and self._chain_id == other._chain_id
        )

    def __hash__(self) -> int:
        return hash((self._derivation_path, self._idx, self._chain_id, self.checksummed_address))

    def __repr__(self) -> str:
        return (
            f"Wallet(address={self.checksummed_address}, path={self._derivation_path}/{self._idx}, "
            f"chain_id={self._chain_id})"
        )
