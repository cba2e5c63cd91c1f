"""
Error Classification

Defines the error taxonomy for the wallet client. Every error carries an
ErrorCategory and a suggested remediation so callers can map each failure to
a distinct recovery path (re-auth, re-connect, fund the wallet, ...).

Nothing here is retried automatically: blind retries on signing requests would
prompt the user again.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors for remediation decisions."""

    CONNECTION = "connection"      # Authority connection failed
    SESSION = "session"            # Operation not valid in current session state
    CHAIN = "chain"                # Unknown network / bad registry
    SIGNING = "signing"            # Authority could not produce a signature
    PROOF = "proof"                # Auth proof failed validation
    TRANSACTION = "transaction"    # Batch estimation/submission/confirmation
    INSUFFICIENT_FUNDS = "insufficient_funds"
    TRANSACTION_REVERTED = "transaction_reverted"
    TIMEOUT = "timeout"
    AUTHORITY = "authority"        # Raw failure from the authority boundary


class AuthorityErrorCode(IntEnum):
    """EIP-1193 provider errors and JSON-RPC error codes."""

    USER_REJECTED = 4001
    UNAUTHORIZED = 4100
    UNSUPPORTED_METHOD = 4200
    DISCONNECTED = 4900
    CHAIN_DISCONNECTED = 4901
    SERVER_ERROR = -32000
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory
    suggested_action: Optional[str] = None
    chain_id: Optional[int] = None
    tx_hash: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class WalletError(Exception):
    """Base class for every error raised by walletkit."""

    category: ErrorCategory = ErrorCategory.AUTHORITY
    suggested_action: Optional[str] = None

    def __init__(
        self,
        message: str,
        *,
        chain_id: Optional[int] = None,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = ErrorContext(
            category=self.category,
            suggested_action=self.suggested_action,
            chain_id=chain_id,
            tx_hash=tx_hash,
            details=details or {},
        )


class AuthorityError(WalletError):
    """Failure reported by (or while reaching) the remote signing authority."""

    category = ErrorCategory.AUTHORITY

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message, details={"code": code, "data": data})
        self.code = code
        self.data = data

    @property
    def user_rejected(self) -> bool:
        return self.code == AuthorityErrorCode.USER_REJECTED

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# Connection
class WalletConnectionError(WalletError):
    category = ErrorCategory.CONNECTION
    suggested_action = "Reconnect to the wallet"


class ConnectionRejectedError(WalletConnectionError):
    """The authority declined the connection request."""


class ConnectionTimeoutError(WalletConnectionError):
    """No answer to the connection request within the configured wait."""

    category = ErrorCategory.TIMEOUT


class InvalidProofError(WalletConnectionError):
    """
    The connect proof did not validate.

    The session is left connected but unauthorized; callers decide whether to
    disconnect.
    """

    suggested_action = "Treat the session as unauthenticated or disconnect"

    def __init__(self, message: str, connect_details: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.connect_details = connect_details


# Session
class SessionError(WalletError):
    category = ErrorCategory.SESSION


class NotConnectedError(SessionError):
    suggested_action = "Call connect() first"


class AlreadyConnectingError(SessionError):
    suggested_action = "Wait for the pending connect() to finish"


class InvalidTransitionError(SessionError):
    """Raised when a session state transition is not allowed."""

    def __init__(self, from_state: Any, to_state: Any):
        super().__init__(
            f"Invalid session transition: {from_state} -> {to_state}",
            details={"from_state": str(from_state), "to_state": str(to_state)},
        )
        self.from_state = from_state
        self.to_state = to_state


# Chains
class ChainError(WalletError):
    category = ErrorCategory.CHAIN


class UnknownChainError(ChainError):
    suggested_action = "Pick one of the networks listed by the registry"

    def __init__(self, chain_id: Any):
        super().__init__(f"Unknown chain: {chain_id}", details={"requested": chain_id})


class NoDefaultNetworkError(ChainError):
    suggested_action = "Refresh the network list or configure default_network"


class InvalidNetworkTableError(ChainError):
    """The authority returned a network table that breaks registry invariants."""


# Signing
class SigningError(WalletError):
    category = ErrorCategory.SIGNING


class AuthorityUnavailableError(SigningError):
    suggested_action = "Check the wallet connection and try again"


class SignatureRejectedError(SigningError):
    suggested_action = "Ask the user to approve the signature request"


# Proofs
class ProofError(WalletError):
    category = ErrorCategory.PROOF
    suggested_action = "Request a fresh proof"


class ProofExpiredError(ProofError):
    pass


class ProofNotYetValidError(ProofError):
    pass


class BadProofSignatureError(ProofError):
    pass


class InvalidTTLError(ProofError):
    suggested_action = "Use a positive TTL within the configured maximum"


class MalformedProofError(ProofError):
    pass


# Transactions
class TransactionError(WalletError):
    category = ErrorCategory.TRANSACTION


class InsufficientFundsError(TransactionError):
    category = ErrorCategory.INSUFFICIENT_FUNDS
    suggested_action = "Add funds to wallet or reduce transaction amount"

    def __init__(
        self,
        message: str = "Insufficient funds",
        required: Optional[int] = None,
        available: Optional[int] = None,
        **kwargs: Any,
    ):
        details = {"required": required, "available": available}
        details.update(kwargs.pop("details", None) or {})
        super().__init__(message, details=details, **kwargs)
        self.required = required
        self.available = available


class TransactionRevertedError(TransactionError):
    category = ErrorCategory.TRANSACTION_REVERTED
    suggested_action = "Review transaction parameters"

    def __init__(
        self,
        intent_index: Optional[int],
        reason: Optional[str] = None,
        **kwargs: Any,
    ):
        where = f"intent {intent_index}" if intent_index is not None else "batch"
        message = f"Transaction reverted at {where}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            details={"intent_index": intent_index, "revert_reason": reason},
            **kwargs,
        )
        self.intent_index = intent_index
        self.reason = reason


class GasEstimationError(TransactionError):
    suggested_action = "The call would revert; review calldata and value"

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs: Any):
        super().__init__(message, details={"revert_reason": reason}, **kwargs)
        self.reason = reason


class SubmissionRejectedError(TransactionError):
    suggested_action = "Ask the user to approve the transaction"


class ConfirmationTimeoutError(TransactionError):
    category = ErrorCategory.TIMEOUT
    suggested_action = "Check the transaction hash on an explorer before resubmitting"


_FUNDS_PATTERNS = (
    "insufficient",
    "not enough",
    "balance too low",
    "exceeds balance",
)
_REVERT_PATTERNS = (
    "revert",
    "execution reverted",
    "transaction failed",
    "out of gas",
)


def classify_authority_error(
    error: AuthorityError,
    operation: str,
    *,
    chain_id: Optional[int] = None,
) -> WalletError:
    """
    Map a raw authority failure to the taxonomy for the given operation.

    operation is one of "connect", "sign", "estimate", "submit".
    """
    message = error.message
    lowered = message.lower()
    data = error.data if isinstance(error.data, dict) else {}

    if operation == "connect":
        return ConnectionRejectedError(
            f"Connection rejected: {message}",
            chain_id=chain_id,
            details={"code": error.code},
        )

    if operation == "sign":
        if error.user_rejected:
            return SignatureRejectedError(
                "Signature request rejected by user",
                chain_id=chain_id,
                details={"code": error.code},
            )
        return AuthorityUnavailableError(
            f"Authority could not sign: {message}",
            chain_id=chain_id,
            details={"code": error.code},
        )

    if operation == "estimate":
        reason = data.get("reason") or message
        return GasEstimationError(
            f"Failed to estimate gas: {reason}",
            reason=reason,
            chain_id=chain_id,
        )

    # submit
    if error.user_rejected or error.code == AuthorityErrorCode.UNAUTHORIZED:
        return SubmissionRejectedError(
            "Transaction batch rejected by user",
            chain_id=chain_id,
            details={"code": error.code},
        )
    if any(p in lowered for p in _FUNDS_PATTERNS):
        return InsufficientFundsError(
            f"Insufficient funds: {message}",
            chain_id=chain_id,
        )
    if any(p in lowered for p in _REVERT_PATTERNS):
        index = data.get("index")
        return TransactionRevertedError(
            int(index) if index is not None else None,
            data.get("reason") or message,
            chain_id=chain_id,
        )
    return SubmissionRejectedError(
        f"Transaction batch rejected: {message}",
        chain_id=chain_id,
        details={"code": error.code},
    )
