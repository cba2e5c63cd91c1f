"""
Auth proof models and types.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from ..errors import InvalidTTLError, ProofError


@dataclass(frozen=True)
class ProofClaims:
    """Claims carried by an auth proof."""
    app: str
    origin: Optional[str] = None
    nonce: Optional[int] = None
    typ: Optional[str] = None
    version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProofClaims":
        return cls(
            app=data.get("app", ""),
            origin=data.get("ogn", data.get("origin")),
            nonce=data.get("n", data.get("nonce")),
            typ=data.get("typ"),
            version=data.get("v", data.get("version")),
        )


@dataclass(frozen=True)
class AuthProof:
    """
    A self-issued, time-bounded claim by an address.

    Built unsigned; signing returns a new, signed proof.
    """
    address: str
    claims: ProofClaims
    issued_at: int
    expires_at: int
    signature: Optional[bytes] = None

    def __post_init__(self):
        if self.expires_at <= self.issued_at:
            raise InvalidTTLError(
                "Proof must expire after it is issued",
                details={"issued_at": self.issued_at, "expires_at": self.expires_at},
            )

    @property
    def is_signed(self) -> bool:
        return bool(self.signature)

    @property
    def ttl_seconds(self) -> int:
        return self.expires_at - self.issued_at

    def with_signature(self, signature: bytes) -> "AuthProof":
        return replace(self, signature=bytes(signature))

    def claims_dict(self) -> Dict[str, Any]:
        """Present claims keyed by their wire names, in canonical order."""
        values = (
            ("app", self.claims.app or None),
            ("iat", self.issued_at),
            ("exp", self.expires_at),
            ("n", self.claims.nonce),
            ("typ", self.claims.typ),
            ("ogn", self.claims.origin),
            ("v", self.claims.version),
        )
        return {key: value for key, value in values if value is not None}


@dataclass(frozen=True)
class ProofVerification:
    """Outcome of verifying a proof. Falsy when invalid."""
    valid: bool
    error: Optional[ProofError] = None

    @classmethod
    def ok(cls) -> "ProofVerification":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: ProofError) -> "ProofVerification":
        return cls(valid=False, error=error)

    @property
    def reason(self) -> Optional[str]:
        return self.error.message if self.error else None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def __bool__(self) -> bool:
        return self.valid
