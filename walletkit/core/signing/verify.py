"""Universal signature verification for EOA, EIP-1271 and ERC-6492 signatures."""

import logging
from typing import Optional, Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import decode_hex, is_address

from ..authority.chain_client import ChainClient
from .digest import wallet_subdigest
from .erc6492 import counterfactual_subdigest, is_erc6492_signature, parse_erc6492_signature


logger = logging.getLogger(__name__)


def signature_to_bytes(signature: Union[bytes, str]) -> bytes:
    if isinstance(signature, (bytes, bytearray)):
        return bytes(signature)
    return decode_hex(signature)


def recover_signer(digest: bytes, signature: bytes) -> Optional[str]:
    """Recover the checksum address that produced a 65-byte ECDSA signature.

    Handles Ethereum v value adjustment (27/28 -> 0/1). Returns None when the
    signature cannot be recovered.
    """
    if len(signature) != 65 or len(digest) != 32:
        return None

    v = signature[64]
    if v >= 27:
        v -= 27
    if v not in (0, 1):
        return None

    try:
        sig = keys.Signature(signature_bytes=signature[:64] + bytes([v]))
        return sig.recover_public_key_from_msg_hash(digest).to_checksum_address()
    except (BadSignature, ValidationError, ValueError):
        return None


def verify_eoa_signature(digest: bytes, signature: bytes, expected_address: str) -> bool:
    """Wallet signatures carry v as 27 or 28; the 0/1 form is not accepted here."""
    if len(signature) != 65 or signature[64] not in (27, 28):
        return False
    recovered = recover_signer(digest, signature)
    return recovered is not None and recovered.lower() == expected_address.lower()


async def verify_universal_signature(
    address: str,
    digest: bytes,
    signature: Union[bytes, str],
    chain_id: int,
    chain_client: Optional[ChainClient] = None,
) -> bool:
    """Check a wallet signature over digest on chain_id.

    1. Parse the ERC-6492 wrapper if present
    2. 65-byte inner signature: recover against the chain-bound wallet
       subdigest (plain EOAs signing the digest directly are accepted too).
       A wrapped signature must instead cover the subdigest bound to its
       factory and calldata; it is settled here with no on-chain lookup
    3. Otherwise, if the wallet is deployed, ask it via EIP-1271

    Never raises: malformed input of any kind yields False.
    """
    try:
        if not is_address(address) or len(digest) != 32:
            return False

        raw = signature_to_bytes(signature)
        wrapped = is_erc6492_signature(raw)
        sig_data = parse_erc6492_signature(raw)
        inner = sig_data.inner_signature

        if len(inner) == 65:
            subdigest = wallet_subdigest(chain_id, address, digest)
            if wrapped:
                bound = counterfactual_subdigest(subdigest, sig_data.factory, sig_data.factory_calldata)
                if verify_eoa_signature(bound, inner, address):
                    return True
            elif verify_eoa_signature(subdigest, inner, address) or verify_eoa_signature(digest, inner, address):
                return True

        if chain_client is None:
            return False

        code = await chain_client.get_code(address)
        if not code:
            logger.debug("No contract at %s on chain %d; EIP-1271 skipped", address, chain_id)
            return False

        return await chain_client.is_valid_signature(address, digest, inner)
    except Exception as e:
        logger.debug("Signature verification failed for %s: %s", address, e)
        return False
