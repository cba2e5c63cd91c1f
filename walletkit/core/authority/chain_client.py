"""
Read-only JSON-RPC access to a network node.

Used for on-chain signature checks (EIP-1271) against contract wallets. The
node endpoint comes from the network's rpc_url in the ChainRegistry.
"""

import logging
from typing import Dict, Optional

import httpx
from eth_abi import encode as abi_encode
from eth_utils import decode_hex, encode_hex, to_checksum_address

from ..chains.registry import ChainRegistry
from .jsonrpc import rpc_call


logger = logging.getLogger(__name__)

# isValidSignature(bytes32,bytes) selector, also the success magic value
EIP1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")


class ChainClient:
    """JSON-RPC client bound to one chain's node endpoint."""

    def __init__(
        self,
        chain_id: int,
        rpc_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.chain_id = chain_id
        self.rpc_url = rpc_url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def get_code(self, address: str) -> bytes:
        result = await rpc_call(
            self._client,
            self.rpc_url,
            "eth_getCode",
            [to_checksum_address(address), "latest"],
        )
        return decode_hex(result or "0x")

    async def call(self, to: str, data: bytes) -> bytes:
        result = await rpc_call(
            self._client,
            self.rpc_url,
            "eth_call",
            [{"to": to_checksum_address(to), "data": encode_hex(data)}, "latest"],
        )
        return decode_hex(result or "0x")

    async def is_valid_signature(self, wallet: str, digest: bytes, signature: bytes) -> bool:
        """Ask a deployed contract wallet whether it accepts signature for digest."""
        calldata = EIP1271_MAGIC_VALUE + abi_encode(["bytes32", "bytes"], [digest, signature])
        result = await self.call(wallet, calldata)
        return result[:4] == EIP1271_MAGIC_VALUE

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()


class ChainClientPool:
    """Lazily creates one ChainClient per network that has an RPC endpoint."""

    def __init__(self, registry: ChainRegistry, *, timeout: float = 30.0):
        self._registry = registry
        self._timeout = timeout
        self._clients: Dict[int, ChainClient] = {}

    def get(self, chain_id: int) -> Optional[ChainClient]:
        client = self._clients.get(chain_id)
        if client is not None:
            return client

        network = self._registry.by_chain_id(chain_id)
        if network is None or not network.rpc_url:
            return None

        client = ChainClient(chain_id, network.rpc_url, timeout=self._timeout)
        self._clients[chain_id] = client
        logger.debug("Created chain client for %s (%d)", network.name, chain_id)
        return client

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
