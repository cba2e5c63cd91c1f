"""
Execution Module

Atomic multi-call transaction batches: intents, gas estimation,
submission and confirmation.
"""

from .batcher import TransactionBatcher
from .models import (
    BatchStatus,
    IntentOutcome,
    TransactionBatchResult,
    TransactionIntent,
    decode_revert_reason,
    intents_from_dicts,
    total_value,
)

__all__ = [
    # Batcher
    "TransactionBatcher",
    # Models
    "BatchStatus",
    "IntentOutcome",
    "TransactionBatchResult",
    "TransactionIntent",
    # Helpers
    "decode_revert_reason",
    "intents_from_dicts",
    "total_value",
]
