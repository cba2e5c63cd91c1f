"""
Tests for the ChainRegistry.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from walletkit.core.chains import ChainRegistry, Network
from walletkit.core.errors import (
    InvalidNetworkTableError,
    NoDefaultNetworkError,
    UnknownChainError,
)

from fakes import ARBITRUM, DEFAULT_NETWORKS, MAINNET, POLYGON


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def static_registry() -> ChainRegistry:
    return ChainRegistry.from_networks([MAINNET, ARBITRUM, POLYGON])


# =============================================================================
# Network Model Tests
# =============================================================================

class TestNetwork:
    def test_from_authority_payload(self):
        network = Network.from_authority({
            "chainId": "0x89",
            "name": "Polygon",
            "isDefaultChain": True,
            "rpcUrl": "https://nodes.example/polygon",
            "nativeToken": {"symbol": "POL"},
        })

        assert network.chain_id == 137
        assert network.name == "polygon"
        assert network.is_default is True
        assert network.rpc_url == "https://nodes.example/polygon"
        assert network.native_symbol == "POL"

    def test_rejects_non_positive_chain_id(self):
        with pytest.raises(ValueError):
            Network(chain_id=0, name="zero")

    def test_round_trips_through_wire_dict(self):
        assert Network.from_authority(POLYGON.to_dict()) == POLYGON


# =============================================================================
# Lookup Tests
# =============================================================================

class TestRegistryLookups:
    def test_default_network_listed_first(self, static_registry: ChainRegistry):
        networks = static_registry.list_networks()

        assert networks[0] == POLYGON
        assert [n.chain_id for n in networks[1:]] == [1, 42161]

    def test_default_network(self, static_registry: ChainRegistry):
        assert static_registry.default_network().chain_id == 137

    def test_by_chain_id_and_name(self, static_registry: ChainRegistry):
        assert static_registry.by_chain_id(42161) == ARBITRUM
        assert static_registry.by_chain_id(10) is None
        assert static_registry.by_name("MAINNET") == MAINNET

    def test_require_unknown_chain(self, static_registry: ChainRegistry):
        with pytest.raises(UnknownChainError):
            static_registry.require(10)

    def test_contains_and_len(self, static_registry: ChainRegistry):
        assert 137 in static_registry
        assert 10 not in static_registry
        assert len(static_registry) == 3

    def test_no_default_network(self):
        registry = ChainRegistry.from_networks([MAINNET, ARBITRUM])

        with pytest.raises(NoDefaultNetworkError):
            registry.default_network()

    def test_empty_registry_has_no_default(self):
        with pytest.raises(NoDefaultNetworkError):
            ChainRegistry().default_network()

    def test_configured_default_is_promoted(self):
        registry = ChainRegistry.from_networks([MAINNET, ARBITRUM], default_network="arbitrum")

        assert registry.default_network().chain_id == 42161
        assert registry.list_networks()[0].is_default is True


# =============================================================================
# Validation Tests
# =============================================================================

class TestRegistryValidation:
    def test_duplicate_chain_ids_rejected(self):
        with pytest.raises(InvalidNetworkTableError):
            ChainRegistry.from_networks([MAINNET, Network(chain_id=1, name="mainnet-copy")])

    def test_multiple_defaults_rejected(self):
        with pytest.raises(InvalidNetworkTableError):
            ChainRegistry.from_networks([POLYGON, Network(chain_id=1, name="mainnet", is_default=True)])


# =============================================================================
# Refresh Tests
# =============================================================================

class TestRegistryRefresh:
    @pytest.mark.asyncio
    async def test_refresh_from_authority(self, registry: ChainRegistry):
        networks = await registry.refresh()

        assert [n.chain_id for n in networks] == [n.chain_id for n in DEFAULT_NETWORKS]
        assert registry.is_loaded
        assert registry.last_refresh is not None

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_table(self):
        source = AsyncMock()
        source.get_networks = AsyncMock(return_value=[n.to_dict() for n in DEFAULT_NETWORKS])
        registry = ChainRegistry(source)
        await registry.refresh()

        source.get_networks = AsyncMock(return_value=[
            MAINNET.to_dict(),
            {"chainId": 1, "name": "duplicate"},
        ])
        with pytest.raises(InvalidNetworkTableError):
            await registry.refresh()

        assert len(registry) == 3
        assert registry.default_network() == POLYGON

    @pytest.mark.asyncio
    async def test_refresh_without_source(self):
        with pytest.raises(InvalidNetworkTableError):
            await ChainRegistry().refresh()

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_fetch(self):
        gate = asyncio.Event()
        calls = []

        async def get_networks():
            calls.append(1)
            await gate.wait()
            return [n.to_dict() for n in DEFAULT_NETWORKS]

        source = AsyncMock()
        source.get_networks = get_networks
        registry = ChainRegistry(source)

        pending = [asyncio.create_task(registry.refresh()) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*pending)

        assert len(calls) == 1
        assert results[0] == results[1] == results[2]

        await registry.refresh()
        assert len(calls) == 2
