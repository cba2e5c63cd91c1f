"""
Session models and types.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class SessionState(str, Enum):
    """Connection lifecycle states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"                    # Waiting on the authority
    CONNECTED = "connected"
    CONNECTED_AUTHORIZED = "connected_authorized"  # Connected with a verified proof


class WalletState(str, Enum):
    """Wallet window substate, orthogonal to the connection."""
    CLOSED = "closed"
    OPEN = "open"


@dataclass(frozen=True)
class Session:
    """
    Immutable snapshot of the session.

    Only SessionManager produces new snapshots; everything else reads them.
    """
    state: SessionState = SessionState.DISCONNECTED
    session_id: Optional[str] = None
    address: Optional[str] = None
    active_chain_id: Optional[int] = None
    wallet_state: WalletState = WalletState.CLOSED
    connected_at: Optional[datetime] = None

    @property
    def is_connected(self) -> bool:
        return self.state in (SessionState.CONNECTED, SessionState.CONNECTED_AUTHORIZED)

    @property
    def is_authorized(self) -> bool:
        return self.state == SessionState.CONNECTED_AUTHORIZED

    @property
    def is_wallet_open(self) -> bool:
        return self.wallet_state == WalletState.OPEN

    def evolve(self, **changes: Any) -> "Session":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "session_id": self.session_id,
            "address": self.address,
            "active_chain_id": self.active_chain_id,
            "wallet_state": self.wallet_state.value,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
        }


class WalletEventType(str, Enum):
    """Events published to session subscribers."""
    MESSAGE = "message"
    ACCOUNTS_CHANGED = "accountsChanged"
    CHAIN_CHANGED = "chainChanged"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    WALLET_OPENED = "walletOpened"
    WALLET_CLOSED = "walletClosed"


@dataclass(frozen=True)
class WalletEvent:
    """One published event. sequence is strictly increasing per bus."""
    type: WalletEventType
    payload: Any = None
    sequence: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
