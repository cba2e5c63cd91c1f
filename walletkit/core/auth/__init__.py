"""
Auth Proof Module

Self-issued, time-bounded authentication proofs signed as typed data.
"""

from .models import AuthProof, ProofClaims, ProofVerification
from .proof import (
    CLAIM_TYPES,
    ETHAUTH_DOMAIN,
    AuthProofProtocol,
    decode_proof,
    encode_proof,
    proof_typed_data,
)

__all__ = [
    "AuthProofProtocol",
    "proof_typed_data",
    "encode_proof",
    "decode_proof",
    "ETHAUTH_DOMAIN",
    "CLAIM_TYPES",
    "AuthProof",
    "ProofClaims",
    "ProofVerification",
]
