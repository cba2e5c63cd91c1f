"""
ETHAuth-style authentication proofs.

A proof is a set of claims (app, issue/expiry time, optional nonce, origin...)
signed as EIP-712 typed data by a wallet. On the wire it travels as

    eth.<address>.<base64url(claims JSON)>.<0x signature>
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Union

from eth_utils import decode_hex, encode_hex, is_address, to_checksum_address

from walletkit.config import Settings, settings as default_settings

from ..errors import (
    BadProofSignatureError,
    InvalidTTLError,
    MalformedProofError,
    ProofError,
    ProofExpiredError,
    ProofNotYetValidError,
)
from ..signing.models import TypedData
from .models import AuthProof, ProofClaims, ProofVerification

if TYPE_CHECKING:
    from ..signer import Signer
    from ..signing.protocol import SigningProtocol


logger = logging.getLogger(__name__)

ETHAUTH_PREFIX = "eth"
ETHAUTH_DOMAIN = {"name": "ETHAuth", "version": "1"}

# Claim wire name -> EIP-712 type, in canonical order
CLAIM_TYPES = (
    ("app", "string"),
    ("iat", "int64"),
    ("exp", "int64"),
    ("n", "uint64"),
    ("typ", "string"),
    ("ogn", "string"),
    ("v", "string"),
)


def proof_typed_data(proof: AuthProof) -> TypedData:
    """Typed data a wallet signs for proof; only present claims are included."""
    claims = proof.claims_dict()
    fields = [{"name": name, "type": type_} for name, type_ in CLAIM_TYPES if name in claims]
    return TypedData(
        domain=dict(ETHAUTH_DOMAIN),
        types={"Claims": fields},
        message=claims,
        primary_type="Claims",
    )


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def encode_proof(proof: AuthProof) -> str:
    """Serialize a signed proof to its string form."""
    if not proof.is_signed:
        raise BadProofSignatureError("Cannot encode an unsigned proof")
    claims_json = json.dumps(proof.claims_dict(), separators=(",", ":"))
    return ".".join([
        ETHAUTH_PREFIX,
        proof.address.lower(),
        _b64encode(claims_json.encode("utf-8")),
        encode_hex(proof.signature),
    ])


def decode_proof(proof_string: str) -> AuthProof:
    """Parse a proof string. Raises MalformedProofError on any defect."""
    if not isinstance(proof_string, str):
        raise MalformedProofError("Proof must be a string")

    parts = proof_string.split(".")
    if len(parts) not in (4, 5) or parts[0] != ETHAUTH_PREFIX:
        raise MalformedProofError("Proof must look like eth.<address>.<claims>.<signature>")

    _, address, encoded_claims, encoded_signature = parts[:4]
    if not is_address(address):
        raise MalformedProofError(f"Invalid proof address: {address!r}")

    try:
        claims = json.loads(_b64decode(encoded_claims))
        signature = decode_hex(encoded_signature)
    except (binascii.Error, ValueError, UnicodeDecodeError) as e:
        raise MalformedProofError(f"Undecodable proof: {e}") from e

    if not isinstance(claims, dict):
        raise MalformedProofError("Proof claims must be a JSON object")
    if not isinstance(claims.get("iat"), int) or not isinstance(claims.get("exp"), int):
        raise MalformedProofError("Proof claims need integer iat and exp")
    if not signature:
        raise MalformedProofError("Proof has no signature")

    try:
        return AuthProof(
            address=to_checksum_address(address),
            claims=ProofClaims.from_dict(claims),
            issued_at=claims["iat"],
            expires_at=claims["exp"],
            signature=signature,
        )
    except InvalidTTLError as e:
        raise MalformedProofError(e.message) from e


class AuthProofProtocol:
    """
    Build, sign, encode and verify auth proofs.

    Usage:
        proofs = AuthProofProtocol(signing)
        proof = proofs.build_proof(signer.address, ProofClaims(app="Demo Dapp"), ttl_seconds=3600)
        signed = await proofs.sign_proof(proof, signer)
        token = encode_proof(signed)

        result = await proofs.verify_proof(decode_proof(token), chain_id=137)
        result.raise_for_error()
    """

    def __init__(
        self,
        signing: SigningProtocol,
        *,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._signing = signing
        self._settings = settings or default_settings
        self._clock = clock or time.time

    def now(self) -> int:
        return int(self._clock())

    def build_proof(
        self,
        address: str,
        claims: Union[ProofClaims, Mapping[str, Any]],
        ttl_seconds: Optional[int] = None,
    ) -> AuthProof:
        ttl = self._settings.proof_default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise InvalidTTLError(f"TTL must be positive, got {ttl}")
        if ttl > self._settings.proof_max_ttl_seconds:
            raise InvalidTTLError(
                f"TTL {ttl}s exceeds the maximum of {self._settings.proof_max_ttl_seconds}s"
            )
        if not is_address(address):
            raise ValueError(f"Invalid address: {address!r}")

        if not isinstance(claims, ProofClaims):
            claims = ProofClaims.from_dict(dict(claims))

        issued_at = self.now()
        return AuthProof(
            address=to_checksum_address(address),
            claims=claims,
            issued_at=issued_at,
            expires_at=issued_at + ttl,
        )

    async def sign_proof(
        self,
        proof: AuthProof,
        signer: "Signer",
        counterfactual: bool = False,
    ) -> AuthProof:
        """Sign proof's claims as typed data; returns the signed proof."""
        if signer.address.lower() != proof.address.lower():
            raise BadProofSignatureError(
                f"Signer {signer.address} cannot sign a proof for {proof.address}"
            )
        signature = await self._signing.sign_typed(signer, proof_typed_data(proof), counterfactual)
        return proof.with_signature(signature)

    async def verify_proof(
        self,
        proof: AuthProof,
        chain_id: int,
        now: Optional[int] = None,
    ) -> ProofVerification:
        """Check the time window and the signature. Never raises."""
        current = self.now() if now is None else int(now)
        skew = self._settings.proof_clock_skew_seconds

        if current > proof.expires_at + skew:
            return ProofVerification.fail(ProofExpiredError(
                f"Proof expired at {proof.expires_at}",
                details={"expires_at": proof.expires_at, "now": current},
            ))
        if current < proof.issued_at - skew:
            return ProofVerification.fail(ProofNotYetValidError(
                f"Proof not valid before {proof.issued_at}",
                details={"issued_at": proof.issued_at, "now": current},
            ))
        if not proof.is_signed:
            return ProofVerification.fail(BadProofSignatureError("Proof is not signed"))

        valid = await self._signing.verify_typed_data_signature(
            proof.address,
            proof_typed_data(proof),
            proof.signature,
            chain_id,
        )
        if not valid:
            logger.info("Proof signature rejected for %s on chain %d", proof.address, chain_id)
            return ProofVerification.fail(BadProofSignatureError(
                "Proof signature does not match its address",
                chain_id=chain_id,
            ))
        return ProofVerification.ok()

    async def verify_proof_string(
        self,
        proof_string: str,
        chain_id: int,
        now: Optional[int] = None,
    ) -> ProofVerification:
        try:
            proof = decode_proof(proof_string)
        except ProofError as e:
            return ProofVerification.fail(e)
        return await self.verify_proof(proof, chain_id, now)
