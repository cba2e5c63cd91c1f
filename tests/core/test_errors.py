"""
Tests for the error taxonomy and authority error classification.
"""

import pytest

from walletkit.core.errors import (
    AuthorityError,
    AuthorityErrorCode,
    AuthorityUnavailableError,
    ConnectionRejectedError,
    ErrorCategory,
    GasEstimationError,
    InsufficientFundsError,
    InvalidTransitionError,
    SignatureRejectedError,
    SubmissionRejectedError,
    TransactionRevertedError,
    UnknownChainError,
    WalletError,
    classify_authority_error,
)


class TestClassifyAuthorityError:
    def test_connect_failures_are_rejections(self):
        error = AuthorityError(AuthorityErrorCode.USER_REJECTED, "User rejected the request")

        classified = classify_authority_error(error, "connect")

        assert isinstance(classified, ConnectionRejectedError)
        assert classified.context.category == ErrorCategory.CONNECTION

    def test_sign_user_rejection(self):
        error = AuthorityError(AuthorityErrorCode.USER_REJECTED, "User rejected")

        assert isinstance(classify_authority_error(error, "sign", chain_id=1), SignatureRejectedError)

    def test_sign_other_failure(self):
        error = AuthorityError(AuthorityErrorCode.DISCONNECTED, "socket closed")

        assert isinstance(classify_authority_error(error, "sign"), AuthorityUnavailableError)

    def test_estimate_prefers_reason_from_data(self):
        error = AuthorityError(AuthorityErrorCode.SERVER_ERROR, "execution reverted", {"reason": "paused"})

        classified = classify_authority_error(error, "estimate", chain_id=137)

        assert isinstance(classified, GasEstimationError)
        assert classified.reason == "paused"
        assert classified.context.chain_id == 137

    @pytest.mark.parametrize("code,message,expected", [
        (AuthorityErrorCode.USER_REJECTED, "User rejected", SubmissionRejectedError),
        (AuthorityErrorCode.UNAUTHORIZED, "Not authorized", SubmissionRejectedError),
        (AuthorityErrorCode.SERVER_ERROR, "insufficient funds for gas * price + value", InsufficientFundsError),
        (AuthorityErrorCode.SERVER_ERROR, "execution reverted: nope", TransactionRevertedError),
        (AuthorityErrorCode.INTERNAL_ERROR, "relayer offline", SubmissionRejectedError),
    ])
    def test_submit_classification(self, code, message, expected):
        error = AuthorityError(code, message)

        assert isinstance(classify_authority_error(error, "submit"), expected)

    def test_submit_revert_index_from_data(self):
        error = AuthorityError(AuthorityErrorCode.SERVER_ERROR, "execution reverted", {"index": 2, "reason": "nope"})

        classified = classify_authority_error(error, "submit")

        assert classified.intent_index == 2
        assert classified.reason == "nope"


class TestErrorTypes:
    def test_every_error_is_a_wallet_error(self):
        for error in (
            UnknownChainError(10),
            InvalidTransitionError("disconnected", "connected"),
            InsufficientFundsError(required=2, available=1),
            TransactionRevertedError(0, "nope"),
        ):
            assert isinstance(error, WalletError)
            assert error.context.category is not None

    def test_insufficient_funds_details(self):
        error = InsufficientFundsError(required=2, available=1)

        assert error.context.details == {"required": 2, "available": 1}
        assert error.context.suggested_action

    def test_revert_message_names_intent(self):
        assert "intent 3" in str(TransactionRevertedError(3, "nope"))

    def test_authority_error_str(self):
        assert str(AuthorityError(4001, "User rejected")) == "[4001] User rejected"
