"""
Signing Module

Canonical digests, signing through the authority, and universal
verification (EOA, EIP-1271, ERC-6492).
"""

from .digest import (
    message_digest,
    message_to_bytes,
    typed_data_digest,
    wallet_subdigest,
)
from .erc6492 import (
    ERC6492_MAGIC_VALUE,
    counterfactual_subdigest,
    is_erc6492_signature,
    parse_erc6492_signature,
    wrap_erc6492_signature,
)
from .models import Erc6492Signature, SignatureKind, SignatureRequest, TypedData
from .protocol import SigningProtocol
from .verify import recover_signer, verify_universal_signature

__all__ = [
    # Protocol
    "SigningProtocol",
    # Digests
    "message_to_bytes",
    "message_digest",
    "typed_data_digest",
    "wallet_subdigest",
    # ERC-6492
    "ERC6492_MAGIC_VALUE",
    "counterfactual_subdigest",
    "is_erc6492_signature",
    "parse_erc6492_signature",
    "wrap_erc6492_signature",
    # Verification
    "recover_signer",
    "verify_universal_signature",
    # Models
    "SignatureKind",
    "SignatureRequest",
    "TypedData",
    "Erc6492Signature",
]
