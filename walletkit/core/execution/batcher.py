"""
Transaction batcher.

Handles the lifecycle of an atomic multi-call batch:
- Gas estimation
- Pre-flight balance check
- Submission through the authority
- Confirmation wait

Nothing is retried: a retried submission would prompt the user again.
"""

import asyncio
import logging
import math
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Union

from walletkit.config import Settings, settings as default_settings

from ..authority.base import WalletAuthority
from ..errors import (
    AuthorityError,
    ConfirmationTimeoutError,
    InsufficientFundsError,
    TransactionRevertedError,
    classify_authority_error,
)
from ..signer import Signer, SignerResolver
from .models import BatchStatus, TransactionBatchResult, TransactionIntent, total_value


logger = logging.getLogger(__name__)


class TransactionBatcher:
    """
    Submits ordered intents as one atomic batch.

    Usage:
        batcher = TransactionBatcher(authority, resolver)
        result = await batcher.send_batch(
            resolver.resolve(137),
            [TransactionIntent(to=recipient, value=10**15)],
            estimate=True,
        )
    """

    def __init__(
        self,
        authority: WalletAuthority,
        resolver: SignerResolver,
        *,
        settings: Optional[Settings] = None,
    ):
        self._authority = authority
        self._resolver = resolver
        self._settings = settings or default_settings

    async def estimate_gas(
        self,
        intent: Union[TransactionIntent, Dict[str, Any]],
        chain_id: Optional[int] = None,
    ) -> int:
        """
        Estimate gas for a single intent.

        Raises:
            GasEstimationError: The call would revert; carries the revert reason
        """
        intent = self._as_intent(intent)
        chain = self._resolver.resolve(chain_id).chain_id
        return await self._estimate(intent, chain)

    async def _estimate(self, intent: TransactionIntent, chain_id: int) -> int:
        try:
            return await self._authority.estimate_gas(intent, chain_id)
        except AuthorityError as e:
            logger.error(f"Gas estimation failed on chain {chain_id}: {e}")
            raise classify_authority_error(e, "estimate", chain_id=chain_id) from e

    async def send_batch(
        self,
        signer: Signer,
        intents: Iterable[Union[TransactionIntent, Dict[str, Any]]],
        *,
        wait: bool = True,
        estimate: bool = False,
        check_balance: bool = True,
        timeout: Optional[float] = None,
    ) -> TransactionBatchResult:
        """
        Submit intents as a single atomic batch.

        Args:
            signer: Chain-bound signer to submit through
            intents: Ordered intents; order is execution order
            wait: Wait for confirmation (otherwise return the pending result)
            estimate: Fill in missing gas limits first
            check_balance: Refuse batches whose total value exceeds the balance
            timeout: Confirmation timeout override

        Raises:
            ValueError: Empty batch
            InsufficientFundsError, TransactionRevertedError,
            SubmissionRejectedError, GasEstimationError, ConfirmationTimeoutError
        """
        batch = [self._as_intent(i) for i in intents]
        if not batch:
            raise ValueError("A batch needs at least one intent")

        # All-or-nothing: one failing call reverts the whole batch
        batch = [i if i.revert_on_error else replace(i, revert_on_error=True) for i in batch]

        if estimate:
            batch = await self._fill_gas_limits(batch, signer.chain_id)

        if check_balance:
            await self._check_balance(signer, batch)

        try:
            pending = await self._authority.send_transaction_batch(batch, signer.chain_id)
        except AuthorityError as e:
            logger.error(f"Batch submission failed on chain {signer.chain_id}: {e}")
            raise classify_authority_error(e, "submit", chain_id=signer.chain_id) from e

        logger.info(f"Batch submitted: {pending.tx_hash} ({len(batch)} intents, chain {signer.chain_id})")

        if not wait:
            return pending
        return await self.wait_for_batch(signer, pending.tx_hash, timeout=timeout)

    async def wait_for_batch(
        self,
        signer: Signer,
        tx_hash: str,
        timeout: Optional[float] = None,
    ) -> TransactionBatchResult:
        """Wait for a submitted batch and raise if it reverted."""
        wait = timeout if timeout is not None else self._settings.confirmation_timeout_seconds

        try:
            result = await asyncio.wait_for(
                self._authority.wait_for_batch(tx_hash, signer.chain_id),
                wait,
            )
        except asyncio.TimeoutError:
            raise ConfirmationTimeoutError(
                f"Batch {tx_hash} not confirmed within {wait}s",
                chain_id=signer.chain_id,
                tx_hash=tx_hash,
            ) from None
        except AuthorityError as e:
            raise classify_authority_error(e, "submit", chain_id=signer.chain_id) from e

        if result.status == BatchStatus.REVERTED:
            index = result.first_failure()
            reason = result.outcomes[index].revert_reason if index is not None else None
            logger.warning(f"Batch {tx_hash} reverted at intent {index}: {reason}")
            raise TransactionRevertedError(
                index,
                reason,
                chain_id=signer.chain_id,
                tx_hash=tx_hash,
            )

        logger.info(f"Batch confirmed: {tx_hash} (block {result.block_number})")
        return result

    async def get_balance(
        self,
        signer_or_address: Union[Signer, str],
        chain_id: Optional[int] = None,
    ) -> int:
        """Native balance of a signer (on its chain) or an address."""
        if isinstance(signer_or_address, Signer):
            address = signer_or_address.address
            chain = chain_id if chain_id is not None else signer_or_address.chain_id
        else:
            address = signer_or_address
            chain = self._resolver.resolve(chain_id).chain_id
        return await self._authority.get_balance(address, chain)

    async def _fill_gas_limits(
        self,
        batch: List[TransactionIntent],
        chain_id: int,
    ) -> List[TransactionIntent]:
        filled = []
        for intent in batch:
            if intent.gas_limit is None:
                gas = await self._estimate(intent, chain_id)
                intent = replace(intent, gas_limit=math.ceil(gas * self._settings.gas_multiplier))
            filled.append(intent)
        return filled

    async def _check_balance(self, signer: Signer, batch: List[TransactionIntent]) -> None:
        required = total_value(batch)
        if required == 0:
            return
        available = await self.get_balance(signer)
        if available < required:
            raise InsufficientFundsError(
                f"Batch needs {required} wei but {signer.address} holds {available}",
                required=required,
                available=available,
                chain_id=signer.chain_id,
            )

    @staticmethod
    def _as_intent(intent: Union[TransactionIntent, Dict[str, Any]]) -> TransactionIntent:
        if isinstance(intent, TransactionIntent):
            return intent
        return TransactionIntent.from_dict(intent)
