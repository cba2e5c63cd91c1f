"""
Tests for the read-only chain client and EIP-1271 verification.
"""

import json

import httpx
import pytest
from unittest.mock import AsyncMock

from walletkit.core.authority.chain_client import EIP1271_MAGIC_VALUE, ChainClient, ChainClientPool
from walletkit.core.chains import ChainRegistry, Network
from walletkit.core.signing import message_digest, verify_universal_signature

from fakes import MAINNET, RECIPIENT


class TestChainClient:
    @pytest.mark.asyncio
    async def test_is_valid_signature_checks_magic_value(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            seen.append(body)
            result = "0x" + (EIP1271_MAGIC_VALUE + bytes(28)).hex()
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

        client = ChainClient(1, "https://node.example", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        assert await client.is_valid_signature(RECIPIENT, b"\x01" * 32, b"\x02" * 65) is True
        call = seen[0]["params"][0]
        assert call["data"].startswith("0x1626ba7e")
        await client.close()

    def test_pool_skips_networks_without_rpc(self):
        registry = ChainRegistry.from_networks([
            Network(chain_id=137, name="polygon", is_default=True, rpc_url="https://node.example/polygon"),
            MAINNET,
        ])
        pool = ChainClientPool(registry)

        assert pool.get(137) is pool.get(137)
        assert pool.get(1) is None
        assert pool.get(10) is None


class TestContractWalletVerification:
    @pytest.mark.asyncio
    async def test_deployed_contract_wallet_uses_eip1271(self):
        chain_client = AsyncMock()
        chain_client.get_code = AsyncMock(return_value=b"\x60\x80")
        chain_client.is_valid_signature = AsyncMock(return_value=True)
        digest = message_digest("hello")

        valid = await verify_universal_signature(RECIPIENT, digest, b"\x05" * 100, 1, chain_client)

        assert valid is True
        chain_client.is_valid_signature.assert_awaited_once_with(RECIPIENT, digest, b"\x05" * 100)

    @pytest.mark.asyncio
    async def test_undeployed_wallet_without_wrapper_is_invalid(self):
        chain_client = AsyncMock()
        chain_client.get_code = AsyncMock(return_value=b"")

        valid = await verify_universal_signature(RECIPIENT, message_digest("hello"), b"\x05" * 100, 1, chain_client)

        assert valid is False
        chain_client.is_valid_signature.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_node_failure_is_invalid(self):
        chain_client = AsyncMock()
        chain_client.get_code = AsyncMock(side_effect=RuntimeError("node down"))

        assert await verify_universal_signature(RECIPIENT, message_digest("hello"), b"\x05" * 100, 1, chain_client) is False
