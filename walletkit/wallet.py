"""
Wallet facade: one explicitly constructed object per wallet session.

Wires the registry, session manager, signer resolver, signing and proof
protocols, and the batcher around a single authority. Several Wallets can
coexist in one process.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .config import Settings, settings as default_settings
from .core.auth.models import AuthProof, ProofClaims, ProofVerification
from .core.auth.proof import AuthProofProtocol, encode_proof
from .core.authority.base import WalletAuthority
from .core.authority.chain_client import ChainClientPool
from .core.authority.http import HttpWalletAuthority
from .core.authority.models import ConnectDetails, OpenWalletIntent, UiSettings
from .core.chains.models import Network
from .core.chains.registry import ChainRegistry
from .core.execution.batcher import TransactionBatcher
from .core.execution.models import TransactionBatchResult, TransactionIntent
from .core.session.events import Listener, Subscription
from .core.session.manager import SessionManager
from .core.session.models import Session, WalletEventType
from .core.signer import Signer, SignerResolver
from .core.signing.digest import Message
from .core.signing.models import TypedData
from .core.signing.protocol import SigningProtocol


logger = logging.getLogger(__name__)

IntentLike = Union[TransactionIntent, Dict[str, Any]]


class Wallet:
    """
    Multi-chain wallet client.

    Usage:
        async with Wallet.from_settings() as wallet:
            await wallet.connect("Demo Dapp", authorize=True)
            signature = await wallet.sign_message("hello")
            assert await wallet.is_valid_message_signature(wallet.get_address(), "hello", signature)

            result = await wallet.send_transaction_batch(
                [{"to": "0x8b4de256180cfec54c436a470af50f9ee2813dbb", "value": 10**15}],
                chain_id=137,
            )
    """

    def __init__(
        self,
        authority: WalletAuthority,
        *,
        settings: Optional[Settings] = None,
        registry: Optional[ChainRegistry] = None,
    ):
        self.settings = settings or default_settings
        self.authority = authority

        if registry is None:
            registry = ChainRegistry(authority, default_network=self.settings.default_network)
        self.registry = registry
        self.chain_clients = ChainClientPool(
            self.registry,
            timeout=self.settings.request_timeout_seconds,
        )
        self.signing = SigningProtocol(
            authority,
            chain_clients=self.chain_clients,
            settings=self.settings,
        )
        self.proofs = AuthProofProtocol(self.signing, settings=self.settings)
        self.sessions = SessionManager(
            authority,
            self.registry,
            proofs=self.proofs,
            settings=self.settings,
        )
        self.signers = SignerResolver(self.sessions)
        self.batcher = TransactionBatcher(authority, self.signers, settings=self.settings)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Wallet":
        """Wallet talking to the configured remote wallet app over HTTP."""
        settings = settings or default_settings
        return cls(HttpWalletAuthority(settings=settings), settings=settings)

    # Session

    async def connect(
        self,
        app_name: str,
        authorize: bool = False,
        settings: Optional[Union[UiSettings, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> ConnectDetails:
        return await self.sessions.connect(app_name, authorize, settings, **kwargs)

    async def disconnect(self) -> None:
        await self.sessions.disconnect()

    async def open_wallet(
        self,
        path: Optional[str] = None,
        intent: Optional[OpenWalletIntent] = None,
    ) -> None:
        await self.sessions.open_wallet(path, intent)

    async def close_wallet(self) -> None:
        await self.sessions.close_wallet()

    @property
    def session(self) -> Session:
        return self.sessions.session

    def is_connected(self) -> bool:
        return self.sessions.is_connected()

    def is_opened(self) -> bool:
        return self.sessions.is_wallet_open()

    def get_address(self) -> str:
        return self.sessions.require_session().address

    def get_chain_id(self) -> int:
        return self.get_signer().chain_id

    def get_networks(self) -> List[Network]:
        return self.registry.list_networks()

    def get_signer(self, chain_id: Optional[int] = None) -> Signer:
        return self.signers.resolve(chain_id)

    def on(
        self,
        listener: Listener,
        events: Optional[Iterable[Union[WalletEventType, str]]] = None,
    ) -> Subscription:
        """Subscribe to wallet events; returns the subscription to cancel it."""
        return self.sessions.subscribe(listener, events)

    # Signing

    async def sign_message(
        self,
        message: Message,
        chain_id: Optional[int] = None,
        counterfactual: bool = False,
    ) -> bytes:
        return await self.signing.sign_message(self.get_signer(chain_id), message, counterfactual)

    async def sign_typed_data(
        self,
        typed_data: Union[TypedData, Mapping[str, Any]],
        chain_id: Optional[int] = None,
        counterfactual: bool = False,
    ) -> bytes:
        if not isinstance(typed_data, TypedData):
            typed_data = TypedData.from_dict(dict(typed_data))
        return await self.signing.sign_typed(self.get_signer(chain_id), typed_data, counterfactual)

    async def is_valid_message_signature(
        self,
        address: str,
        message: Message,
        signature: Union[bytes, str],
        chain_id: Optional[int] = None,
    ) -> bool:
        chain = chain_id if chain_id is not None else self.get_chain_id()
        return await self.signing.verify_message_signature(address, message, signature, chain)

    async def is_valid_typed_data_signature(
        self,
        address: str,
        typed_data: Union[TypedData, Mapping[str, Any]],
        signature: Union[bytes, str],
        chain_id: Optional[int] = None,
    ) -> bool:
        chain = chain_id if chain_id is not None else self.get_chain_id()
        return await self.signing.verify_typed_data_signature(address, typed_data, signature, chain)

    # Auth proofs

    async def sign_auth_proof(
        self,
        claims: Union[ProofClaims, Mapping[str, Any]],
        ttl_seconds: Optional[int] = None,
        chain_id: Optional[int] = None,
        counterfactual: bool = False,
    ) -> AuthProof:
        signer = self.get_signer(chain_id)
        proof = self.proofs.build_proof(signer.address, claims, ttl_seconds)
        return await self.proofs.sign_proof(proof, signer, counterfactual)

    async def auth_proof_string(self, claims: Union[ProofClaims, Mapping[str, Any]], **kwargs: Any) -> str:
        return encode_proof(await self.sign_auth_proof(claims, **kwargs))

    async def verify_auth_proof(
        self,
        proof: Union[AuthProof, str],
        chain_id: Optional[int] = None,
    ) -> ProofVerification:
        chain = chain_id if chain_id is not None else self.get_chain_id()
        if isinstance(proof, str):
            return await self.proofs.verify_proof_string(proof, chain)
        return await self.proofs.verify_proof(proof, chain)

    # Transactions

    async def get_balance(self, chain_id: Optional[int] = None) -> int:
        return await self.batcher.get_balance(self.get_signer(chain_id))

    async def estimate_gas(self, intent: IntentLike, chain_id: Optional[int] = None) -> int:
        return await self.batcher.estimate_gas(intent, chain_id)

    async def send_transaction_batch(
        self,
        intents: Iterable[IntentLike],
        chain_id: Optional[int] = None,
        **kwargs: Any,
    ) -> TransactionBatchResult:
        return await self.batcher.send_batch(self.get_signer(chain_id), intents, **kwargs)

    async def send_transaction(
        self,
        intent: IntentLike,
        chain_id: Optional[int] = None,
        **kwargs: Any,
    ) -> TransactionBatchResult:
        return await self.send_transaction_batch([intent], chain_id, **kwargs)

    # Lifecycle

    async def aclose(self) -> None:
        """Disconnect and release resources."""
        await self.sessions.disconnect()
        self.signers.close()
        await self.sessions.close()
        await self.chain_clients.close()
        close = getattr(self.authority, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "Wallet":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()
