"""
Per-chain signer resolution.

A Signer is a capability handle for one wallet address on one chain. Handles
are cached per (session, chain) and dropped whenever the session ends or the
wallet reports a different account or chain.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .chains.models import Network
from .errors import UnknownChainError
from .session.manager import SessionManager
from .session.models import WalletEvent, WalletEventType


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signer:
    """Wallet address bound to a chain for the lifetime of one session."""
    chain_id: int
    address: str
    session_id: str


class SignerResolver:
    """
    Resolve chain ids to Signers.

    Usage:
        resolver = SignerResolver(session_manager)
        signer = resolver.resolve()        # active chain, else registry default
        mainnet = resolver.resolve(1)
    """

    def __init__(self, sessions: SessionManager):
        self._sessions = sessions
        self._cache: Dict[Tuple[str, int], Signer] = {}
        self._subscription = sessions.subscribe(
            self._invalidate,
            [
                WalletEventType.DISCONNECT,
                WalletEventType.ACCOUNTS_CHANGED,
                WalletEventType.CHAIN_CHANGED,
            ],
        )

    def resolve(self, chain_id: Optional[int] = None) -> Signer:
        """
        Return the Signer for chain_id.

        None means the session's active chain, falling back to the registry's
        default network.

        Raises:
            NotConnectedError: No session
            UnknownChainError: chain_id is not in the registry
        """
        session = self._sessions.require_session()
        registry = self._sessions.registry

        if chain_id is None:
            if session.active_chain_id is not None:
                chain_id = session.active_chain_id
            else:
                chain_id = registry.default_network().chain_id

        # The registry may have been swapped since the handle was cached
        key = (session.session_id, chain_id)
        if chain_id not in registry:
            self._cache.pop(key, None)
            raise UnknownChainError(chain_id)

        signer = self._cache.get(key)
        if signer is not None:
            return signer

        signer = Signer(chain_id=chain_id, address=session.address, session_id=session.session_id)
        self._cache[key] = signer
        logger.debug("Resolved signer for chain %d", chain_id)
        return signer

    def resolve_network(self, network: Network) -> Signer:
        return self.resolve(network.chain_id)

    def clear(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        self._subscription.unsubscribe()
        self._cache.clear()

    def _invalidate(self, event: WalletEvent) -> None:
        if self._cache:
            logger.debug("Dropping %d cached signers on %s", len(self._cache), event.type.value)
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
