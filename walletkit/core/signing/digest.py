"""
Canonical digests.

Hashing is defined over bytes: a text message, the same message as raw UTF-8
bytes, and the same bytes as a 0x-hex string all produce the same digest.
"""

from typing import Any, Dict, Mapping, Union

from eth_abi import encode as abi_encode
from eth_account.messages import SignableMessage, encode_defunct, encode_typed_data
from eth_utils import keccak, to_canonical_address

from .models import TypedData


Message = Union[str, bytes]


def message_to_bytes(message: Message) -> bytes:
    """Normalise a message to the bytes that get hashed."""
    if isinstance(message, (bytes, bytearray)):
        return bytes(message)
    if message.startswith("0x") and len(message) % 2 == 0:
        try:
            return bytes.fromhex(message[2:])
        except ValueError:
            pass
    return message.encode("utf-8")


def _hash_signable(signable: SignableMessage) -> bytes:
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def message_digest(message: Message) -> bytes:
    """EIP-191 personal message hash."""
    return _hash_signable(encode_defunct(primitive=message_to_bytes(message)))


def typed_data_digest(typed_data: Union[TypedData, Mapping[str, Any]]) -> bytes:
    """EIP-712 hash: keccak(0x1901 || domainSeparator || hashStruct(message))."""
    if not isinstance(typed_data, TypedData):
        typed_data = TypedData.from_dict(dict(typed_data))
    signable = encode_typed_data(
        typed_data.domain,
        typed_data.types,
        typed_data.message,
    )
    return _hash_signable(signable)


def wallet_subdigest(chain_id: int, address: str, digest: bytes) -> bytes:
    """
    Bind a digest to one wallet on one chain.

    This is what the wallet's signing key actually signs, so a signature made
    for one chain does not verify on another.
    """
    return keccak(
        b"\x19\x01"
        + abi_encode(["uint256"], [chain_id])
        + to_canonical_address(address)
        + digest
    )


def eip712_types_with_domain(typed_data: TypedData) -> Dict[str, Any]:
    """Full types table including the derived EIP712Domain entry."""
    domain_fields = []
    for name, type_name in (
        ("name", "string"),
        ("version", "string"),
        ("chainId", "uint256"),
        ("verifyingContract", "address"),
        ("salt", "bytes32"),
    ):
        if name in typed_data.domain:
            domain_fields.append({"name": name, "type": type_name})
    return {"EIP712Domain": domain_fields, **typed_data.types}
