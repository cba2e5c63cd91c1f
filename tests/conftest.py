import pytest

from walletkit.config import Settings
from walletkit.core.chains.registry import ChainRegistry
from walletkit.core.session.manager import SessionManager
from walletkit.wallet import Wallet

from fakes import FakeAuthority


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short timeouts and no network access."""
    return Settings(
        connect_timeout_seconds=1.0,
        confirmation_timeout_seconds=1.0,
        receipt_poll_interval_seconds=0.01,
        enable_onchain_verification=False,
        verify_chain_id=None,
    )


@pytest.fixture
def authority() -> FakeAuthority:
    return FakeAuthority()


@pytest.fixture
def registry(authority: FakeAuthority) -> ChainRegistry:
    return ChainRegistry(authority, default_network="polygon")


@pytest.fixture
def wallet(authority: FakeAuthority, test_settings: Settings) -> Wallet:
    return Wallet(authority, settings=test_settings)


@pytest.fixture
def sessions(wallet: Wallet) -> SessionManager:
    return wallet.sessions
