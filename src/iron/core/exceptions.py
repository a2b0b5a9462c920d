"""
Session exception hierarchy for Iron.

Typed exceptions for session transitions, key derivation, persistence and
peer delivery so callers can tell a bad lookup from a broken store.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class IronError(Exception):
    """Base exception for all session-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Lookup Errors ====================


class NetworkNotFoundError(IronError):
    """Raised when a network name or chain id has no matching descriptor."""

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        chain_id: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.name = name
        self.chain_id = chain_id


# ==================== Key Errors ====================


class DerivationError(IronError):
    """Raised when a signer cannot be derived.

    Examples: invalid BIP-39 mnemonic, malformed derivation path, bad index.
    """
    pass


# ==================== Storage Errors ====================


class PersistenceError(IronError):
    """Raised when the durable store cannot be opened, read or written.

    In-memory session state is never rolled back or altered because of it.
    """

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


# ==================== Peer Errors ====================


class PeerSendError(IronError):
    """Raised when a notification cannot be queued for a single peer."""

    def __init__(self, message: str, peer: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.peer = peer


# ==================== Configuration Errors ====================


class ConfigurationError(IronError):
    """Raised when required configuration is missing or invalid."""
    pass


__all__ = [
    "IronError",
    "NetworkNotFoundError",
    "DerivationError",
    "PersistenceError",
    "PeerSendError",
    "ConfigurationError",
]
