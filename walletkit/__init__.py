"""
walletkit: asynchronous multi-chain wallet client.

Usage:
    from walletkit import Wallet

    async with Wallet.from_settings() as wallet:
        details = await wallet.connect("Demo Dapp", authorize=True)
        signature = await wallet.sign_message("Hello world")
"""

from .config import Settings, settings
from .core.errors import (
    AlreadyConnectingError,
    AuthorityError,
    AuthorityUnavailableError,
    BadProofSignatureError,
    ChainError,
    ConfirmationTimeoutError,
    ConnectionRejectedError,
    ConnectionTimeoutError,
    GasEstimationError,
    InsufficientFundsError,
    InvalidProofError,
    InvalidTTLError,
    MalformedProofError,
    NoDefaultNetworkError,
    NotConnectedError,
    ProofError,
    ProofExpiredError,
    ProofNotYetValidError,
    SessionError,
    SignatureRejectedError,
    SigningError,
    SubmissionRejectedError,
    TransactionError,
    TransactionRevertedError,
    UnknownChainError,
    WalletConnectionError,
    WalletError,
)
from .logging_config import setup_logging
from .wallet import Wallet

__all__ = [
    # Facade
    "Wallet",
    "Settings",
    "settings",
    "setup_logging",
    # Errors
    "WalletError",
    "AuthorityError",
    "WalletConnectionError",
    "ConnectionRejectedError",
    "ConnectionTimeoutError",
    "InvalidProofError",
    "SessionError",
    "NotConnectedError",
    "AlreadyConnectingError",
    "ChainError",
    "UnknownChainError",
    "NoDefaultNetworkError",
    "SigningError",
    "AuthorityUnavailableError",
    "SignatureRejectedError",
    "ProofError",
    "ProofExpiredError",
    "ProofNotYetValidError",
    "BadProofSignatureError",
    "InvalidTTLError",
    "MalformedProofError",
    "TransactionError",
    "InsufficientFundsError",
    "TransactionRevertedError",
    "GasEstimationError",
    "SubmissionRejectedError",
    "ConfirmationTimeoutError",
]
