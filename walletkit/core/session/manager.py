"""
Session Manager

Owns the connection lifecycle against the wallet authority:

    disconnected -> connecting -> connected [-> connected_authorized]

The wallet window (open/closed) is tracked as an orthogonal substate.
Authority events update the session snapshot and are relayed to subscribers
through the EventBus.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Set, Union

import structlog
from eth_utils import is_address, to_checksum_address

from walletkit.config import Settings, settings as default_settings
from walletkit.logging_config import bind_session_context

from ..auth.proof import AuthProofProtocol, decode_proof
from ..authority.base import WalletAuthority
from ..authority.models import (
    AuthorityEvent,
    AuthorityEventType,
    ConnectDetails,
    ConnectOptions,
    OpenWalletIntent,
    UiSettings,
)
from ..chains.models import Network
from ..chains.registry import ChainRegistry
from ..errors import (
    AlreadyConnectingError,
    AuthorityError,
    ConnectionRejectedError,
    ConnectionTimeoutError,
    InvalidProofError,
    InvalidTransitionError,
    MalformedProofError,
    NotConnectedError,
    classify_authority_error,
)
from .events import EventBus, Listener, Subscription
from .models import Session, SessionState, WalletEventType, WalletState


_slog = structlog.stdlib.get_logger("walletkit.session")

# Authority event -> published event
_RELAYED_EVENTS: Dict[AuthorityEventType, WalletEventType] = {
    AuthorityEventType.MESSAGE: WalletEventType.MESSAGE,
    AuthorityEventType.ACCOUNTS_CHANGED: WalletEventType.ACCOUNTS_CHANGED,
    AuthorityEventType.CHAIN_CHANGED: WalletEventType.CHAIN_CHANGED,
    AuthorityEventType.CONNECT: WalletEventType.CONNECT,
    AuthorityEventType.DISCONNECT: WalletEventType.DISCONNECT,
    AuthorityEventType.OPEN: WalletEventType.WALLET_OPENED,
    AuthorityEventType.CLOSE: WalletEventType.WALLET_CLOSED,
}


def _parse_chain_id(value: Any) -> Optional[int]:
    if isinstance(value, dict):
        value = value.get("chainId")
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        text = str(value)
        return int(text, 16) if text.startswith("0x") else int(text)
    except ValueError:
        return None


class _ConnectAttempt:
    """One in-flight connect and the callers waiting on it."""

    def __init__(self, options: ConnectOptions, task: "asyncio.Task[ConnectDetails]"):
        self.options = options
        self.task = task
        self.waiters = 0


class SessionManager:
    """
    Connection state machine for one wallet session.

    Features:
    - Validates transitions against an allowed transition map
    - Coalesces concurrent connect() calls into one authority request
    - Restores the prior stable state on connect failure or cancellation
    - Relays authority events to subscribers in arrival order
    """

    TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
        SessionState.DISCONNECTED: {
            SessionState.CONNECTING,
        },
        SessionState.CONNECTING: {
            SessionState.CONNECTED,
            SessionState.CONNECTED_AUTHORIZED,  # Restored after a failed re-connect
            SessionState.DISCONNECTED,
        },
        SessionState.CONNECTED: {
            SessionState.CONNECTING,
            SessionState.CONNECTED_AUTHORIZED,
            SessionState.DISCONNECTED,
        },
        SessionState.CONNECTED_AUTHORIZED: {
            SessionState.CONNECTING,
            SessionState.DISCONNECTED,
        },
    }

    def __init__(
        self,
        authority: WalletAuthority,
        registry: ChainRegistry,
        *,
        proofs: Optional[AuthProofProtocol] = None,
        settings: Optional[Settings] = None,
        bus: Optional[EventBus] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the session manager.

        Args:
            authority: The remote signing authority
            registry: Registry refreshed with the networks each session advertises
            proofs: Verifier for connect proofs (required for authorize=True)
            settings: Timeouts and proof verification chain
            bus: Event bus to publish on (a private one by default)
            logger: Optional logger
        """
        self._authority = authority
        self._registry = registry
        self._proofs = proofs
        self._settings = settings or default_settings
        self.events = bus or EventBus()
        self.logger = logger or logging.getLogger(__name__)

        self._session = Session()
        self._attempt: Optional[_ConnectAttempt] = None
        self._unsubscribe_authority = authority.subscribe(self._on_authority_event)

    # Queries

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def address(self) -> Optional[str]:
        return self._session.address

    @property
    def chain_id(self) -> Optional[int]:
        return self._session.active_chain_id

    @property
    def session_id(self) -> Optional[str]:
        return self._session.session_id

    @property
    def registry(self) -> ChainRegistry:
        return self._registry

    def is_connected(self) -> bool:
        return self._session.is_connected

    def is_connecting(self) -> bool:
        return self._session.state == SessionState.CONNECTING

    def is_authorized(self) -> bool:
        return self._session.is_authorized

    def is_wallet_open(self) -> bool:
        return self._session.is_wallet_open

    def require_session(self) -> Session:
        session = self._session
        if not session.is_connected:
            raise NotConnectedError("No wallet session; call connect() first")
        return session

    def subscribe(
        self,
        listener: Listener,
        events: Optional[Iterable[Union[WalletEventType, str]]] = None,
    ) -> Subscription:
        return self.events.subscribe(listener, events)

    # Lifecycle

    async def connect(
        self,
        app_name: str,
        authorize: bool = False,
        ui_settings: Optional[Union[UiSettings, Dict[str, Any]]] = None,
        *,
        keep_wallet_opened: bool = False,
        timeout: Optional[float] = None,
    ) -> ConnectDetails:
        """
        Connect to the wallet.

        Concurrent calls with the same arguments share one authority request.

        Raises:
            ConnectionRejectedError: The authority declined
            ConnectionTimeoutError: No answer within the connect timeout
            InvalidProofError: authorize=True and the proof did not verify;
                the session is still connected (unauthorized)
            AlreadyConnectingError: A connect with different arguments is in flight
        """
        if isinstance(ui_settings, dict):
            ui_settings = UiSettings.model_validate(ui_settings)
        options = ConnectOptions(
            app=app_name,
            authorize=authorize,
            keep_wallet_opened=keep_wallet_opened,
            settings=ui_settings,
        )

        attempt = self._attempt
        if attempt is not None and not attempt.task.done():
            if attempt.options != options:
                raise AlreadyConnectingError(
                    "A connect() with different options is already in progress"
                )
            self.logger.debug("Joining in-flight connect for %s", app_name)
        else:
            prior = self._session
            self._set(self._session.evolve(state=SessionState.CONNECTING))
            task = asyncio.create_task(self._run_connect(options, prior, timeout))
            attempt = _ConnectAttempt(options, task)
            self._attempt = attempt

        attempt.waiters += 1
        try:
            return await asyncio.shield(attempt.task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is None or not current.cancelling():
                # The attempt itself was cancelled by disconnect()
                raise ConnectionRejectedError("Connection attempt cancelled by disconnect()") from None
            if attempt.waiters == 1 and not attempt.task.done():
                attempt.task.cancel()
                await asyncio.wait([attempt.task])
            raise
        finally:
            attempt.waiters -= 1

    async def _run_connect(
        self,
        options: ConnectOptions,
        prior: Session,
        timeout: Optional[float],
    ) -> ConnectDetails:
        wait = timeout if timeout is not None else self._settings.connect_timeout_seconds
        self.logger.info("Connecting to wallet for app %r (authorize=%s)", options.app, options.authorize)

        try:
            try:
                details = await asyncio.wait_for(self._authority.connect(options), wait)
            except asyncio.TimeoutError:
                raise ConnectionTimeoutError(f"Wallet did not answer within {wait}s") from None
            except AuthorityError as e:
                raise classify_authority_error(e, "connect") from e

            if not details.connected:
                raise ConnectionRejectedError(details.error or "Wallet declined the connection")

            address = details.address or await self._authority.get_address()
            chain_id = details.chain_id or await self._authority.get_chain_id()
            if not is_address(address):
                raise ConnectionRejectedError(f"Wallet returned an invalid address: {address!r}")
            await self._load_networks(details)
        except (Exception, asyncio.CancelledError) as e:
            self.logger.info("Connect failed (%s); restoring %s", type(e).__name__, prior.state.value)
            self._restore(prior)
            raise

        session = Session(
            state=SessionState.CONNECTED,
            session_id=uuid.uuid4().hex,
            address=to_checksum_address(address),
            active_chain_id=chain_id,
            wallet_state=self._session.wallet_state,
            connected_at=datetime.now(timezone.utc),
        )
        self._set(session)
        bind_session_context(session.session_id, session.address)
        _slog.info(
            "session_connected",
            app=options.app,
            address=session.address,
            chain_id=chain_id,
            networks=len(self._registry),
        )

        if options.authorize:
            await self._authorize(details, session)
        return details

    async def _load_networks(self, details: ConnectDetails) -> None:
        if details.networks:
            self._registry.replace(Network.from_authority(n) for n in details.networks)
        elif self._registry.has_source:
            await self._registry.refresh()

    async def _authorize(self, details: ConnectDetails, session: Session) -> None:
        if details.proof is None:
            raise InvalidProofError("Wallet returned no proof", connect_details=details)
        if self._proofs is None:
            raise InvalidProofError("No proof verifier configured", connect_details=details)

        try:
            proof = decode_proof(details.proof.proof_string)
        except MalformedProofError as e:
            raise InvalidProofError(f"Malformed connect proof: {e.message}", connect_details=details) from e

        if proof.address.lower() != (session.address or "").lower():
            raise InvalidProofError(
                "Proof address does not match the connected account",
                connect_details=details,
            )

        chain_id = self._settings.verify_chain_id or session.active_chain_id
        result = await self._proofs.verify_proof(proof, chain_id)
        if not result.valid:
            self.logger.warning("Connect proof rejected: %s", result.reason)
            raise InvalidProofError(
                f"Connect proof rejected: {result.reason}",
                connect_details=details,
            )

        self._set(self._session.evolve(state=SessionState.CONNECTED_AUTHORIZED))
        _slog.info("session_authorized", address=session.address, chain_id=chain_id)

    async def disconnect(self) -> None:
        """Disconnect from the wallet. Idempotent; cancels an in-flight connect."""
        cancelled = False
        attempt = self._attempt
        if attempt is not None and not attempt.task.done():
            attempt.task.cancel()
            await asyncio.wait([attempt.task])
            cancelled = True

        was_connected = self._session.is_connected
        if was_connected or cancelled:
            _slog.info("session_disconnected", session_id=self._session.session_id, cancelled=cancelled)
            try:
                await self._authority.disconnect()
            except AuthorityError as e:
                self.logger.warning("Authority disconnect failed: %s", e)

        if self._session.state != SessionState.DISCONNECTED:
            self._set(Session())
            if was_connected:
                # The authority never reported the disconnect
                self.events.publish(WalletEventType.DISCONNECT, None)
        bind_session_context(None, None)

    async def open_wallet(
        self,
        path: Optional[str] = None,
        intent: Optional[OpenWalletIntent] = None,
    ) -> None:
        self.require_session()
        await self._authority.open_wallet(path, intent)
        if self._session.is_connected:
            self._set(self._session.evolve(wallet_state=WalletState.OPEN))

    async def close_wallet(self) -> None:
        if not self._session.is_wallet_open:
            return
        await self._authority.close_wallet()
        self._set(self._session.evolve(wallet_state=WalletState.CLOSED))

    async def close(self) -> None:
        """Detach from the authority and stop event delivery."""
        self._unsubscribe_authority()
        await self.events.aclose()

    # State

    def _set(self, session: Session) -> None:
        current = self._session.state
        if session.state != current and session.state not in self.TRANSITIONS[current]:
            raise InvalidTransitionError(current, session.state)
        self._session = session

    def _restore(self, prior: Session) -> None:
        # A disconnect event may have landed mid-connect; never revive a session then
        if self._session.state == SessionState.CONNECTING:
            self._set(prior.evolve(wallet_state=self._session.wallet_state))

    # Authority events

    def _on_authority_event(self, event: AuthorityEvent) -> None:
        published = _RELAYED_EVENTS.get(event.type)
        if published is None:
            return

        payload = event.payload
        session = self._session

        if event.type == AuthorityEventType.ACCOUNTS_CHANGED:
            accounts = [a for a in (payload or []) if is_address(a)]
            payload = [to_checksum_address(a) for a in accounts]
            if session.is_connected:
                if payload:
                    self._set(session.evolve(address=payload[0]))
                    bind_session_context(session.session_id, payload[0])
                else:
                    self.logger.info("Wallet exposes no accounts; session ended")
                    self._set(Session())
                    bind_session_context(None, None)

        elif event.type == AuthorityEventType.CHAIN_CHANGED:
            chain_id = _parse_chain_id(payload)
            payload = chain_id
            if chain_id is not None and session.is_connected:
                self._set(session.evolve(active_chain_id=chain_id))

        elif event.type == AuthorityEventType.DISCONNECT:
            if session.is_connected:
                self._set(Session())
                bind_session_context(None, None)

        elif event.type == AuthorityEventType.OPEN:
            if session.is_connected:
                self._set(session.evolve(wallet_state=WalletState.OPEN))

        elif event.type == AuthorityEventType.CLOSE:
            self._set(session.evolve(wallet_state=WalletState.CLOSED))

        self.events.publish(published, payload)
