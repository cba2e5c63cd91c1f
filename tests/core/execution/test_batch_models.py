"""
Tests for transaction intent and batch result models.
"""

from datetime import timezone

import pytest
from eth_abi import encode as abi_encode

from walletkit.core.execution import (
    BatchStatus,
    IntentOutcome,
    TransactionBatchResult,
    TransactionIntent,
    decode_revert_reason,
    total_value,
)
from walletkit.core.execution.models import REVERT_PANIC_SELECTOR

from fakes import RECIPIENT, revert_data


class TestTransactionIntent:
    def test_from_wallet_dict(self):
        intent = TransactionIntent.from_dict({
            "to": RECIPIENT,
            "value": "0x10",
            "data": "0xa9059cbb",
            "gasLimit": 60000,
            "revertOnError": False,
        })

        assert intent.value == 16
        assert intent.data == bytes.fromhex("a9059cbb")
        assert intent.gas_limit == 60000
        assert intent.revert_on_error is False

    def test_to_dict(self):
        tx = TransactionIntent(to=RECIPIENT, value=255, gas_limit=21000).to_dict()

        assert tx["to"] == "0x000000000000000000000000000000000000bEEF"
        assert tx["value"] == "0xff"
        assert tx["data"] == "0x"
        assert tx["gasLimit"] == hex(21000)
        assert tx["revertOnError"] is True

    def test_to_call_omits_zero_value(self):
        call = TransactionIntent(to=RECIPIENT, data=b"\x01").to_call(RECIPIENT)

        assert "value" not in call
        assert call["data"] == "0x01"
        assert call["from"] == call["to"]

    @pytest.mark.parametrize("kwargs", [
        {"to": "0x1234"},
        {"to": RECIPIENT, "value": -1},
        {"to": RECIPIENT, "gas_limit": 0},
    ])
    def test_invalid_intents(self, kwargs):
        with pytest.raises(ValueError):
            TransactionIntent(**kwargs)

    def test_total_value(self):
        assert total_value([TransactionIntent(to=RECIPIENT, value=v) for v in (1, 2, 3)]) == 6


class TestTransactionBatchResult:
    def test_first_failure(self):
        result = TransactionBatchResult(
            tx_hash="0x01",
            chain_id=1,
            status=BatchStatus.REVERTED,
            outcomes=(IntentOutcome(success=True), IntentOutcome(success=False), IntentOutcome(success=False)),
        )

        assert result.first_failure() == 1
        assert result.is_final is True
        assert result.is_success is False

    def test_pending_defaults(self):
        result = TransactionBatchResult(tx_hash="0x01", chain_id=1)

        assert result.status == BatchStatus.PENDING
        assert result.first_failure() is None
        assert result.submitted_at.tzinfo == timezone.utc


class TestRevertReason:
    def test_error_string(self):
        assert decode_revert_reason(revert_data("insufficient allowance")) == "insufficient allowance"

    def test_hex_input(self):
        assert decode_revert_reason("0x" + revert_data("nope").hex()) == "nope"

    def test_panic(self):
        data = REVERT_PANIC_SELECTOR + abi_encode(["uint256"], [0x11])

        assert decode_revert_reason(data) == "panic code 0x11"

    def test_empty(self):
        assert decode_revert_reason(b"") is None
        assert decode_revert_reason(None) is None

    def test_custom_error_returned_as_hex(self):
        assert decode_revert_reason(bytes.fromhex("deadbeef")) == "0xdeadbeef"
