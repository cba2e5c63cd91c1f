"""
Authority Module

Structural interface to the remote signing authority, wire models, and the
read-only chain client. The production adapter lives in
walletkit.core.authority.http.
"""

from .base import AuthorityListener, Unsubscribe, WalletAuthority
from .chain_client import EIP1271_MAGIC_VALUE, ChainClient, ChainClientPool
from .models import (
    AuthorityEvent,
    AuthorityEventType,
    ConnectDetails,
    ConnectOptions,
    ConnectProof,
    OpenWalletIntent,
    OpenWalletOptions,
    UiSettings,
)

__all__ = [
    "WalletAuthority",
    "AuthorityListener",
    "Unsubscribe",
    "ChainClient",
    "ChainClientPool",
    "EIP1271_MAGIC_VALUE",
    "AuthorityEvent",
    "AuthorityEventType",
    "ConnectDetails",
    "ConnectOptions",
    "ConnectProof",
    "OpenWalletIntent",
    "OpenWalletOptions",
    "UiSettings",
]
