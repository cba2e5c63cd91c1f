"""
Production adapter for the remote wallet.

Requests go to the wallet app as JSON-RPC over HTTP; wallet events arrive over
a WebSocket. The adapter also emits the events implied by its own successful
calls (connect, disconnect, open, close) so listeners see one ordered stream.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
import websockets
from eth_abi import decode as abi_decode
from eth_utils import decode_hex, encode_hex, keccak, to_checksum_address
from websockets.exceptions import ConnectionClosed

from walletkit.config import Settings, settings as default_settings

from ..errors import AuthorityError, AuthorityErrorCode
from ..execution.models import (
    BatchStatus,
    IntentOutcome,
    TransactionBatchResult,
    TransactionIntent,
    decode_revert_reason,
)
from .base import AuthorityListener, Unsubscribe
from .jsonrpc import rpc_call
from .models import (
    AuthorityEvent,
    AuthorityEventType,
    ConnectDetails,
    ConnectOptions,
    OpenWalletIntent,
)


logger = logging.getLogger(__name__)

# Per-call outcome events emitted by the wallet contract
TX_EXECUTED_TOPIC = keccak(text="TxExecuted(bytes32,uint256)")
TX_FAILED_TOPIC = keccak(text="TxFailed(bytes32,uint256,bytes)")


def _parse_quantity(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16) if str(value).startswith("0x") else int(value)


class HttpWalletAuthority:
    """
    WalletAuthority backed by the wallet app's JSON-RPC endpoint.

    Usage:
        authority = HttpWalletAuthority()
        details = await authority.connect(ConnectOptions(app="Demo Dapp"))
        await authority.start()   # stream wallet events
        ...
        await authority.close()
    """

    def __init__(
        self,
        app_url: Optional[str] = None,
        ws_url: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or default_settings
        self.app_url = (app_url or self._settings.wallet_app_url).rstrip("/")
        self.ws_url = ws_url or self._settings.wallet_ws_url
        self._rpc_url = f"{self.app_url}/rpc"
        self._client = client or httpx.AsyncClient(timeout=self._settings.request_timeout_seconds)

        self._address: Optional[str] = None
        self._listeners: List[AuthorityListener] = []
        self._pending_batches: Dict[str, int] = {}

        self._running = False
        self._stream_task: Optional[asyncio.Task] = None

    async def _rpc(self, method: str, params: List[Any], chain_id: Optional[int] = None) -> Any:
        extra = {"chainId": chain_id} if chain_id is not None else None
        return await rpc_call(self._client, self._rpc_url, method, params, extra)

    # Session

    async def connect(self, options: ConnectOptions) -> ConnectDetails:
        result = await self._rpc("sequence_connect", [options.to_wire()])
        details = ConnectDetails.model_validate(result or {"connected": False})
        if details.connected:
            self._address = details.address
            self._emit(AuthorityEventType.CONNECT, {"chainId": details.chain_id})
            if details.address:
                self._emit(AuthorityEventType.ACCOUNTS_CHANGED, [details.address])
        return details

    async def disconnect(self) -> None:
        await self._rpc("sequence_disconnect", [])
        self._address = None
        self._emit(AuthorityEventType.DISCONNECT, None)

    async def open_wallet(
        self,
        path: Optional[str] = None,
        intent: Optional[OpenWalletIntent] = None,
    ) -> None:
        await self._rpc(
            "sequence_openWallet",
            [path, intent.to_wire() if intent else None],
        )
        self._emit(AuthorityEventType.OPEN, {"path": path})

    async def close_wallet(self) -> None:
        await self._rpc("sequence_closeWallet", [])
        self._emit(AuthorityEventType.CLOSE, None)

    # State

    async def get_address(self) -> str:
        accounts = await self._rpc("eth_accounts", [])
        if not accounts:
            raise AuthorityError(AuthorityErrorCode.UNAUTHORIZED, "Wallet exposes no accounts")
        self._address = to_checksum_address(accounts[0])
        return self._address

    async def get_chain_id(self) -> int:
        return _parse_quantity(await self._rpc("eth_chainId", []))

    async def get_networks(self) -> List[Dict[str, Any]]:
        return list(await self._rpc("sequence_getNetworks", []) or [])

    async def get_balance(self, address: str, chain_id: int) -> int:
        result = await self._rpc(
            "eth_getBalance",
            [to_checksum_address(address), "latest"],
            chain_id=chain_id,
        )
        return _parse_quantity(result)

    # Signing

    async def sign_message(self, digest: bytes, chain_id: int, counterfactual: bool) -> bytes:
        result = await self._rpc(
            "sequence_signDigest",
            [encode_hex(digest), {"counterfactual": counterfactual}],
            chain_id=chain_id,
        )
        return decode_hex(result)

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, Any],
        message: Dict[str, Any],
        chain_id: int,
        counterfactual: bool,
    ) -> bytes:
        address = self._address or await self.get_address()
        payload = json.dumps({"domain": domain, "types": types, "message": message})
        result = await self._rpc(
            "eth_signTypedData_v4",
            [address, payload, {"counterfactual": counterfactual}],
            chain_id=chain_id,
        )
        return decode_hex(result)

    # Transactions

    async def estimate_gas(self, intent: TransactionIntent, chain_id: int) -> int:
        result = await self._rpc(
            "eth_estimateGas",
            [intent.to_call(self._address)],
            chain_id=chain_id,
        )
        return _parse_quantity(result)

    async def send_transaction_batch(
        self,
        intents: Sequence[TransactionIntent],
        chain_id: int,
    ) -> TransactionBatchResult:
        tx_hash = await self._rpc(
            "eth_sendTransaction",
            [[intent.to_dict() for intent in intents]],
            chain_id=chain_id,
        )
        self._pending_batches[tx_hash] = len(intents)
        logger.info("Batch submitted: %s (%d intents, chain %d)", tx_hash, len(intents), chain_id)
        return TransactionBatchResult(tx_hash=tx_hash, chain_id=chain_id)

    async def wait_for_batch(self, tx_hash: str, chain_id: int) -> TransactionBatchResult:
        poll_interval = self._settings.receipt_poll_interval_seconds

        while True:
            try:
                receipt = await self._rpc("eth_getTransactionReceipt", [tx_hash], chain_id=chain_id)
            except AuthorityError as e:
                logger.warning("Error checking batch status %s: %s", tx_hash, e)
                receipt = None

            if receipt:
                return self._result_from_receipt(tx_hash, chain_id, receipt)

            await asyncio.sleep(poll_interval)

    def _result_from_receipt(
        self,
        tx_hash: str,
        chain_id: int,
        receipt: Dict[str, Any],
    ) -> TransactionBatchResult:
        executed: Dict[int, bool] = {}
        failures: Dict[int, bytes] = {}

        for log in receipt.get("logs") or []:
            topics = [decode_hex(t) for t in log.get("topics") or []]
            if not topics:
                continue
            data = decode_hex(log.get("data") or "0x")
            if topics[0] == TX_EXECUTED_TOPIC:
                _, index = abi_decode(["bytes32", "uint256"], data)
                executed[index] = True
            elif topics[0] == TX_FAILED_TOPIC:
                _, index, reason = abi_decode(["bytes32", "uint256", "bytes"], data)
                failures[index] = reason

        count = self._pending_batches.pop(tx_hash, None)
        if count is None:
            seen = list(executed) + list(failures)
            count = max(seen) + 1 if seen else 0

        succeeded = _parse_quantity(receipt.get("status", "0x1")) == 1 and not failures
        outcomes = []
        for index in range(count):
            if index in failures:
                outcomes.append(IntentOutcome(
                    success=False,
                    return_data=failures[index],
                    revert_reason=decode_revert_reason(failures[index]),
                ))
            else:
                outcomes.append(IntentOutcome(success=succeeded or index in executed))

        return TransactionBatchResult(
            tx_hash=tx_hash,
            chain_id=chain_id,
            status=BatchStatus.CONFIRMED if succeeded else BatchStatus.REVERTED,
            outcomes=tuple(outcomes),
            block_number=_parse_quantity(receipt["blockNumber"]) if receipt.get("blockNumber") else None,
            gas_used=_parse_quantity(receipt["gasUsed"]) if receipt.get("gasUsed") else None,
        )

    # Events

    def subscribe(self, listener: AuthorityListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event_type: AuthorityEventType, payload: Any) -> None:
        event = AuthorityEvent(type=event_type, payload=payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Authority listener failed on %s", event_type.value)

    async def start(self) -> None:
        """Start streaming wallet events from the WebSocket endpoint."""
        if self._running or not self.ws_url:
            return
        self._running = True
        self._stream_task = asyncio.create_task(self._run_event_stream())
        logger.info("Wallet event stream started: %s", self.ws_url)

    async def stop(self) -> None:
        self._running = False
        if self._stream_task:
            self._stream_task.cancel()
            await asyncio.gather(self._stream_task, return_exceptions=True)
            self._stream_task = None

    async def _run_event_stream(self) -> None:
        """Consume the event stream with auto-reconnect."""
        retry_delay = 1
        max_retry_delay = 60

        while self._running:
            try:
                async with websockets.connect(self.ws_url) as ws:
                    retry_delay = 1
                    async for raw in ws:
                        self._dispatch_raw_event(raw)
            except ConnectionClosed as e:
                logger.warning("Wallet event stream closed: %s", e)
            except Exception as e:
                logger.error("Wallet event stream error: %s", e)

            if self._running:
                logger.info("Reconnecting wallet event stream in %ss...", retry_delay)
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, max_retry_delay)

    def _dispatch_raw_event(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
            if not isinstance(message, dict):
                raise ValueError("event frame is not an object")
            event_type = AuthorityEventType(message.get("type"))
        except (TypeError, ValueError):
            logger.debug("Ignoring unrecognised wallet event: %r", raw)
            return

        payload = message.get("data")
        if event_type == AuthorityEventType.ACCOUNTS_CHANGED:
            self._address = payload[0] if isinstance(payload, list) and payload else None
        self._emit(event_type, payload)

    async def close(self) -> None:
        """Stop the event stream and close the HTTP client."""
        await self.stop()
        await self._client.aclose()
