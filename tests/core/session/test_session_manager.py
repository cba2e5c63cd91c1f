"""
Tests for the SessionManager

Connection lifecycle, connect coalescing and cancellation, proof handling,
and authority event relay.
"""

import asyncio

import pytest

from walletkit.core.authority.models import AuthorityEventType
from walletkit.core.errors import (
    AlreadyConnectingError,
    AuthorityError,
    AuthorityErrorCode,
    ConnectionRejectedError,
    ConnectionTimeoutError,
    InvalidProofError,
    InvalidTransitionError,
    NotConnectedError,
)
from walletkit.core.session import (
    Session,
    SessionManager,
    SessionState,
    WalletEventType,
    WalletState,
)

from fakes import FakeAuthority


async def wait_until_connecting(sessions: SessionManager, authority: FakeAuthority) -> None:
    while authority.connect_calls == 0:
        await asyncio.sleep(0)


# =============================================================================
# Connect Tests
# =============================================================================

class TestConnect:
    def test_initial_state(self, sessions: SessionManager):
        assert sessions.state == SessionState.DISCONNECTED
        assert sessions.is_connected() is False
        assert sessions.is_wallet_open() is False
        assert sessions.address is None

    @pytest.mark.asyncio
    async def test_connect_without_authorize(self, sessions: SessionManager, authority: FakeAuthority):
        details = await sessions.connect("Demo Dapp")

        assert details.connected is True
        assert sessions.is_connected() is True
        assert sessions.state == SessionState.CONNECTED
        assert sessions.address == authority.address
        assert sessions.chain_id == 137
        assert sessions.session_id is not None

    @pytest.mark.asyncio
    async def test_connect_refreshes_registry(self, sessions: SessionManager):
        await sessions.connect("Demo Dapp")

        assert sessions.registry.default_network().name == "polygon"
        assert len(sessions.registry) == 3

    @pytest.mark.asyncio
    async def test_connect_refreshes_from_authority_when_details_omit_networks(
        self,
        sessions: SessionManager,
        authority: FakeAuthority,
    ):
        authority.include_networks = False

        await sessions.connect("Demo Dapp")

        assert 42161 in sessions.registry

    @pytest.mark.asyncio
    async def test_each_connect_mints_new_session_id(self, sessions: SessionManager):
        await sessions.connect("Demo Dapp")
        first = sessions.session_id
        await sessions.disconnect()
        await sessions.connect("Demo Dapp")

        assert sessions.session_id != first

    @pytest.mark.asyncio
    async def test_rejected_connect_restores_disconnected(self, sessions: SessionManager, authority: FakeAuthority):
        authority.reject_connect = True

        with pytest.raises(ConnectionRejectedError):
            await sessions.connect("Demo Dapp")

        assert sessions.state == SessionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_connect_timeout(self, sessions: SessionManager, authority: FakeAuthority):
        authority.connect_gate = asyncio.Event()

        with pytest.raises(ConnectionTimeoutError):
            await sessions.connect("Demo Dapp", timeout=0.05)

        assert sessions.state == SessionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_failed_reconnect_restores_prior_session(self, sessions: SessionManager, authority: FakeAuthority):
        await sessions.connect("Demo Dapp")
        before = sessions.session
        authority.reject_connect = True

        with pytest.raises(ConnectionRejectedError):
            await sessions.connect("Demo Dapp")

        assert sessions.session == before

    @pytest.mark.asyncio
    async def test_ui_settings_forwarded(self, sessions: SessionManager):
        details = await sessions.connect(
            "Demo Dapp",
            ui_settings={"theme": "dark", "includedPaymentProviders": ["moonpay"]},
        )

        assert details.connected is True


# =============================================================================
# Authorization Tests
# =============================================================================

class TestAuthorize:
    @pytest.mark.asyncio
    async def test_valid_proof_authorizes(self, sessions: SessionManager):
        details = await sessions.connect("Demo Dapp", authorize=True)

        assert details.proof is not None
        assert sessions.state == SessionState.CONNECTED_AUTHORIZED
        assert sessions.is_authorized() is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", ["forged", "mismatched", "malformed", "missing"])
    async def test_bad_proof_leaves_session_connected(
        self,
        sessions: SessionManager,
        authority: FakeAuthority,
        mode: str,
    ):
        authority.proof_mode = mode

        with pytest.raises(InvalidProofError) as exc_info:
            await sessions.connect("Demo Dapp", authorize=True)

        assert exc_info.value.connect_details is not None
        assert exc_info.value.connect_details.connected is True
        assert sessions.state == SessionState.CONNECTED
        assert sessions.is_connected() is True


# =============================================================================
# Concurrency Tests
# =============================================================================

class TestConnectConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_connects_share_one_request(self, sessions: SessionManager, authority: FakeAuthority):
        authority.connect_gate = asyncio.Event()

        first = asyncio.create_task(sessions.connect("Demo Dapp"))
        second = asyncio.create_task(sessions.connect("Demo Dapp"))
        await wait_until_connecting(sessions, authority)
        assert sessions.state == SessionState.CONNECTING

        authority.connect_gate.set()
        results = await asyncio.gather(first, second)

        assert authority.connect_calls == 1
        assert results[0] == results[1]
        assert sessions.state == SessionState.CONNECTED

    @pytest.mark.asyncio
    async def test_concurrent_connect_with_other_options(self, sessions: SessionManager, authority: FakeAuthority):
        authority.connect_gate = asyncio.Event()
        first = asyncio.create_task(sessions.connect("Demo Dapp"))
        await wait_until_connecting(sessions, authority)

        with pytest.raises(AlreadyConnectingError):
            await sessions.connect("Other Dapp")

        authority.connect_gate.set()
        await first

    @pytest.mark.asyncio
    async def test_cancel_connect_returns_to_disconnected(self, sessions: SessionManager, authority: FakeAuthority):
        authority.connect_gate = asyncio.Event()
        task = asyncio.create_task(sessions.connect("Demo Dapp"))
        await wait_until_connecting(sessions, authority)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert sessions.state == SessionState.DISCONNECTED
        assert sessions.is_connecting() is False

    @pytest.mark.asyncio
    async def test_caller_deadline_returns_to_disconnected(self, sessions: SessionManager, authority: FakeAuthority):
        authority.connect_gate = asyncio.Event()

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(sessions.connect("Demo Dapp"), 0.05)

        assert sessions.state == SessionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_one_cancelled_waiter_does_not_cancel_others(
        self,
        sessions: SessionManager,
        authority: FakeAuthority,
    ):
        authority.connect_gate = asyncio.Event()
        first = asyncio.create_task(sessions.connect("Demo Dapp"))
        second = asyncio.create_task(sessions.connect("Demo Dapp"))
        await wait_until_connecting(sessions, authority)

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        authority.connect_gate.set()
        details = await second

        assert details.connected is True
        assert sessions.state == SessionState.CONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_aborts_in_flight_connect(self, sessions: SessionManager, authority: FakeAuthority):
        authority.connect_gate = asyncio.Event()
        task = asyncio.create_task(sessions.connect("Demo Dapp"))
        await wait_until_connecting(sessions, authority)

        await sessions.disconnect()

        with pytest.raises(ConnectionRejectedError):
            await task
        assert sessions.state == SessionState.DISCONNECTED
        assert authority.disconnect_calls == 1


# =============================================================================
# Disconnect / Wallet Window Tests
# =============================================================================

class TestLifecycle:
    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, sessions: SessionManager, authority: FakeAuthority):
        await sessions.connect("Demo Dapp")

        await sessions.disconnect()
        await sessions.disconnect()

        assert sessions.state == SessionState.DISCONNECTED
        assert sessions.session == Session()
        assert authority.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_failed_authority_disconnect_still_publishes(
        self,
        sessions: SessionManager,
        authority: FakeAuthority,
    ):
        await sessions.connect("Demo Dapp")
        seen = []
        sessions.subscribe(lambda event: seen.append(event.type))
        authority.disconnect_error = AuthorityError(AuthorityErrorCode.DISCONNECTED, "gone")

        await sessions.disconnect()

        assert sessions.state == SessionState.DISCONNECTED
        assert seen == [WalletEventType.DISCONNECT]

    @pytest.mark.asyncio
    async def test_disconnect_event_published_once(self, sessions: SessionManager):
        await sessions.connect("Demo Dapp")
        seen = []
        sessions.subscribe(lambda event: seen.append(event.type), ["disconnect"])

        await sessions.disconnect()

        assert seen == [WalletEventType.DISCONNECT]

    @pytest.mark.asyncio
    async def test_open_wallet_requires_connection(self, sessions: SessionManager):
        with pytest.raises(NotConnectedError):
            await sessions.open_wallet()

    @pytest.mark.asyncio
    async def test_open_and_close_wallet(self, sessions: SessionManager, authority: FakeAuthority):
        await sessions.connect("Demo Dapp")

        await sessions.open_wallet("wallet/add-funds")
        assert sessions.is_wallet_open() is True
        assert sessions.state == SessionState.CONNECTED

        await sessions.close_wallet()
        await sessions.close_wallet()
        assert sessions.session.wallet_state == WalletState.CLOSED
        assert authority.calls.count("close_wallet") == 1

    def test_require_session(self, sessions: SessionManager):
        with pytest.raises(NotConnectedError):
            sessions.require_session()

    def test_invalid_transition(self, sessions: SessionManager):
        with pytest.raises(InvalidTransitionError):
            sessions._set(Session(state=SessionState.CONNECTED))


# =============================================================================
# Event Relay Tests
# =============================================================================

class TestEventRelay:
    @pytest.mark.asyncio
    async def test_lifecycle_events_in_order(self, sessions: SessionManager):
        seen = []
        sessions.subscribe(lambda event: seen.append(event.type))

        await sessions.connect("Demo Dapp")
        await sessions.open_wallet()
        await sessions.close_wallet()
        await sessions.disconnect()

        assert seen == [
            WalletEventType.CONNECT,
            WalletEventType.ACCOUNTS_CHANGED,
            WalletEventType.WALLET_OPENED,
            WalletEventType.WALLET_CLOSED,
            WalletEventType.DISCONNECT,
        ]

    @pytest.mark.asyncio
    async def test_chain_changed_updates_active_chain(self, sessions: SessionManager, authority: FakeAuthority):
        payloads = []
        sessions.subscribe(lambda event: payloads.append(event.payload), [WalletEventType.CHAIN_CHANGED])
        await sessions.connect("Demo Dapp")

        authority.emit(AuthorityEventType.CHAIN_CHANGED, "0xa4b1")

        assert sessions.chain_id == 42161
        assert payloads == [42161]

    @pytest.mark.asyncio
    async def test_accounts_changed_updates_address(self, sessions: SessionManager, authority: FakeAuthority):
        await sessions.connect("Demo Dapp")
        other = "0x000000000000000000000000000000000000beef"

        authority.emit(AuthorityEventType.ACCOUNTS_CHANGED, [other])

        assert sessions.address.lower() == other

    @pytest.mark.asyncio
    async def test_empty_accounts_ends_session(self, sessions: SessionManager, authority: FakeAuthority):
        await sessions.connect("Demo Dapp")

        authority.emit(AuthorityEventType.ACCOUNTS_CHANGED, [])

        assert sessions.is_connected() is False

    @pytest.mark.asyncio
    async def test_authority_disconnect_event_ends_session(self, sessions: SessionManager, authority: FakeAuthority):
        await sessions.connect("Demo Dapp")

        authority.emit(AuthorityEventType.DISCONNECT)

        assert sessions.state == SessionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_message_events_relayed(self, sessions: SessionManager, authority: FakeAuthority):
        seen = []
        sessions.subscribe(seen.append, ["message"])

        authority.emit(AuthorityEventType.MESSAGE, {"type": "ping"})

        assert len(seen) == 1
        assert seen[0].payload == {"type": "ping"}
