"""
The remote signing authority, as seen by walletkit.

The authority holds custody and user-approval UI; walletkit only talks to it
through this structural interface. Any object with these coroutines satisfies
it: the production HttpWalletAuthority, or an in-memory fake in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .models import AuthorityEvent, ConnectDetails, ConnectOptions, OpenWalletIntent

if TYPE_CHECKING:
    from ..execution.models import TransactionBatchResult, TransactionIntent


AuthorityListener = Callable[[AuthorityEvent], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class WalletAuthority(Protocol):
    """Operations the remote signing authority exposes.

    Failures are raised as AuthorityError carrying an EIP-1193 / JSON-RPC code.
    """

    async def connect(self, options: ConnectOptions) -> ConnectDetails:
        ...

    async def disconnect(self) -> None:
        ...

    async def open_wallet(
        self,
        path: Optional[str] = None,
        intent: Optional[OpenWalletIntent] = None,
    ) -> None:
        ...

    async def close_wallet(self) -> None:
        ...

    async def get_address(self) -> str:
        ...

    async def get_chain_id(self) -> int:
        ...

    async def get_networks(self) -> List[Dict[str, Any]]:
        ...

    async def get_balance(self, address: str, chain_id: int) -> int:
        ...

    async def sign_message(self, digest: bytes, chain_id: int, counterfactual: bool) -> bytes:
        """Sign a 32-byte EIP-191 message digest on behalf of the wallet."""
        ...

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, Any],
        message: Dict[str, Any],
        chain_id: int,
        counterfactual: bool,
    ) -> bytes:
        ...

    async def send_transaction_batch(
        self,
        intents: Sequence[TransactionIntent],
        chain_id: int,
    ) -> TransactionBatchResult:
        """Submit intents as one batch; returns as soon as a tx hash exists."""
        ...

    async def wait_for_batch(self, tx_hash: str, chain_id: int) -> TransactionBatchResult:
        """Wait until a submitted batch is mined."""
        ...

    async def estimate_gas(self, intent: TransactionIntent, chain_id: int) -> int:
        ...

    def subscribe(self, listener: AuthorityListener) -> Unsubscribe:
        ...
