"""
Signing models and types.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SignatureKind(str, Enum):
    """What a signature request covers."""
    MESSAGE = "message"
    TYPED_DATA = "typed_data"


@dataclass(frozen=True)
class SignatureRequest:
    """One signing call, created and consumed inside SigningProtocol."""
    kind: SignatureKind
    payload_digest: bytes
    chain_id: int
    counterfactual: bool = False

    def __post_init__(self):
        if len(self.payload_digest) != 32:
            raise ValueError("payload_digest must be 32 bytes")


@dataclass(frozen=True)
class TypedData:
    """EIP-712 payload: domain, schema and message."""
    domain: Dict[str, Any]
    types: Dict[str, List[Dict[str, str]]]
    message: Dict[str, Any]
    primary_type: Optional[str] = None

    def __post_init__(self):
        # The domain type is derived from the domain fields
        if "EIP712Domain" in self.types:
            object.__setattr__(
                self,
                "types",
                {name: fields for name, fields in self.types.items() if name != "EIP712Domain"},
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TypedData":
        """Accepts the eth_signTypedData_v4 JSON shape."""
        return cls(
            domain=dict(data.get("domain") or {}),
            types=dict(data.get("types") or {}),
            message=dict(data.get("message") or {}),
            primary_type=data.get("primaryType"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "domain": self.domain,
            "types": self.types,
            "message": self.message,
        }
        if self.primary_type:
            result["primaryType"] = self.primary_type
        return result


@dataclass(frozen=True)
class Erc6492Signature:
    """Parsed ERC-6492 wrapper (counterfactual wallet signature)."""
    factory: bytes = field(default=bytes(20))
    factory_calldata: bytes = b""
    inner_signature: bytes = b""

    @property
    def has_deployment_info(self) -> bool:
        return self.factory != bytes(20) and len(self.factory_calldata) > 0
