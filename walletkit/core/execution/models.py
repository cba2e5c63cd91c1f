"""
Transaction batch models and types.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, encode_hex, is_address, to_checksum_address


# Error(string)
REVERT_ERROR_SELECTOR = bytes.fromhex("08c379a0")
# Panic(uint256)
REVERT_PANIC_SELECTOR = bytes.fromhex("4e487b71")


def _to_int(value: Union[int, str, None]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    value = value.strip()
    return int(value, 16) if value.startswith(("0x", "0X")) else int(value)


def _to_bytes(value: Union[bytes, str, None]) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return decode_hex(value) if value else b""


class BatchStatus(str, Enum):
    """Batch lifecycle status."""
    PENDING = "pending"          # Submitted, waiting for a receipt
    CONFIRMED = "confirmed"      # Mined, every intent succeeded
    REVERTED = "reverted"        # Mined, batch rolled back


@dataclass(frozen=True)
class TransactionIntent:
    """A single call in a batch. Batches execute intents in order."""
    to: str
    value: int = 0
    data: bytes = b""
    gas_limit: Optional[int] = None
    delegate_call: bool = False
    revert_on_error: bool = True

    def __post_init__(self):
        if not is_address(self.to):
            raise ValueError(f"Invalid destination address: {self.to!r}")
        if self.value < 0:
            raise ValueError("value must be non-negative")
        if self.gas_limit is not None and self.gas_limit <= 0:
            raise ValueError("gas_limit must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransactionIntent":
        """Accepts the wallet transaction shape (hex or int quantities)."""
        return cls(
            to=data["to"],
            value=_to_int(data.get("value")) or 0,
            data=_to_bytes(data.get("data")),
            gas_limit=_to_int(data.get("gasLimit")),
            delegate_call=bool(data.get("delegateCall", False)),
            revert_on_error=bool(data.get("revertOnError", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wallet's transaction shape."""
        tx: Dict[str, Any] = {
            "to": to_checksum_address(self.to),
            "value": hex(self.value),
            "data": encode_hex(self.data),
            "delegateCall": self.delegate_call,
            "revertOnError": self.revert_on_error,
        }
        if self.gas_limit is not None:
            tx["gasLimit"] = hex(self.gas_limit)
        return tx

    def to_call(self, from_address: Optional[str] = None) -> Dict[str, Any]:
        """eth_call / eth_estimateGas call object."""
        call: Dict[str, Any] = {"to": to_checksum_address(self.to), "data": encode_hex(self.data)}
        if from_address:
            call["from"] = to_checksum_address(from_address)
        if self.value > 0:
            call["value"] = hex(self.value)
        return call


@dataclass(frozen=True)
class IntentOutcome:
    """Per-intent execution outcome."""
    success: bool
    return_data: bytes = b""
    revert_reason: Optional[str] = None


@dataclass(frozen=True)
class TransactionBatchResult:
    """Result of a batch submission."""
    tx_hash: str
    chain_id: int
    status: BatchStatus = BatchStatus.PENDING
    outcomes: Tuple[IntentOutcome, ...] = ()

    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    confirmed_at: Optional[datetime] = None

    @property
    def is_final(self) -> bool:
        return self.status != BatchStatus.PENDING

    @property
    def is_success(self) -> bool:
        return self.status == BatchStatus.CONFIRMED

    def first_failure(self) -> Optional[int]:
        """Index of the first intent that did not succeed."""
        for index, outcome in enumerate(self.outcomes):
            if not outcome.success:
                return index
        return None


def total_value(intents: Sequence[TransactionIntent]) -> int:
    return sum(intent.value for intent in intents)


def decode_revert_reason(data: Union[bytes, str, None]) -> Optional[str]:
    """Decode Error(string) / Panic(uint256) revert payloads."""
    raw = _to_bytes(data)
    if not raw:
        return None
    selector, payload = raw[:4], raw[4:]
    try:
        if selector == REVERT_ERROR_SELECTOR:
            (reason,) = abi_decode(["string"], payload)
            return reason
        if selector == REVERT_PANIC_SELECTOR:
            (code,) = abi_decode(["uint256"], payload)
            return f"panic code {hex(code)}"
    except (DecodingError, UnicodeDecodeError):
        # Malformed payload; fall through to the raw hex
        pass
    return encode_hex(raw)


def intents_from_dicts(items: List[Dict[str, Any]]) -> List[TransactionIntent]:
    return [TransactionIntent.from_dict(item) for item in items]
