"""ERC-6492 signature wrapping for counterfactual (not yet deployed) wallets."""

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak, to_canonical_address, to_checksum_address

from .models import Erc6492Signature


ERC6492_MAGIC_VALUE = bytes.fromhex("6492" * 16)


def is_erc6492_signature(signature: bytes) -> bool:
    """ERC-6492 signatures end with the 32-byte magic suffix."""
    if len(signature) < 32:
        return False
    return signature[-32:] == ERC6492_MAGIC_VALUE


def parse_erc6492_signature(signature: bytes) -> Erc6492Signature:
    """Parse an ERC-6492 wrapped signature.

    Format:
        abi.encode((address factory, bytes factoryCalldata, bytes signature)) + magicBytes

    A signature without the suffix is returned as the inner signature with an
    empty factory.

    Raises:
        ValueError: If the wrapper is present but malformed.
    """
    if not is_erc6492_signature(signature):
        return Erc6492Signature(inner_signature=signature)

    try:
        factory, factory_calldata, inner_signature = abi_decode(
            ["address", "bytes", "bytes"],
            signature[:-32],
        )
    except DecodingError as e:
        raise ValueError(f"Invalid ERC-6492 signature format: {e}") from e

    return Erc6492Signature(
        factory=to_canonical_address(factory),
        factory_calldata=factory_calldata,
        inner_signature=inner_signature,
    )


def wrap_erc6492_signature(factory: str, factory_calldata: bytes, inner_signature: bytes) -> bytes:
    """Wrap a signature so it can be checked before the wallet is deployed."""
    payload = abi_encode(
        ["address", "bytes", "bytes"],
        [to_checksum_address(factory), factory_calldata, inner_signature],
    )
    return payload + ERC6492_MAGIC_VALUE


def counterfactual_subdigest(subdigest: bytes, factory: str, factory_calldata: bytes) -> bytes:
    """
    Bind a wallet subdigest to the deployment that creates the wallet.

    The inner signature of a wrapper covers this digest, so the factory and
    its calldata cannot be swapped without invalidating the signature.
    """
    deployment = keccak(abi_encode(
        ["address", "bytes"],
        [to_checksum_address(factory), factory_calldata],
    ))
    return keccak(subdigest + deployment)
