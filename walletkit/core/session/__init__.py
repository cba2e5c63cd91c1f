"""
Session Module

Connection state machine against the wallet authority, and the event bus
that relays wallet events to subscribers.
"""

from .events import EventBus, EventStream, Listener, Subscription
from .manager import SessionManager
from .models import Session, SessionState, WalletEvent, WalletEventType, WalletState

__all__ = [
    # Manager
    "SessionManager",
    # Events
    "EventBus",
    "EventStream",
    "Subscription",
    "Listener",
    # Models
    "Session",
    "SessionState",
    "WalletState",
    "WalletEvent",
    "WalletEventType",
]
