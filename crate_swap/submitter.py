"""Submission of validated swaps to the ledger."""

import asyncio
import logging
import time
from typing import Iterable, List, Optional

from crate_swap.config.schema import SwapSettings
from crate_swap.errors import SubmissionFailed, describe_simulation_error
from crate_swap.ledger import LedgerClient
from crate_swap.models import SubmissionHandle, SubmissionOutcome, ValidatedSwap
from crate_swap.wallet import Signer

logger = logging.getLogger(__name__)


class ExecutionSubmitter:
    """
    Sends validated swaps to the primary RPC endpoint.

    Only ValidatedSwap instances younger than ``max_validation_age_seconds``
    are accepted. Nothing is retried: resubmitting after the blockhash has
    expired is rejected by the ledger, so the caller must validate again.
    """

    def __init__(self, ledger: LedgerClient, max_validation_age_seconds: float = 60.0):
        self.ledger = ledger
        self.max_validation_age_seconds = max_validation_age_seconds

    @classmethod
    def from_settings(cls, settings: SwapSettings, ledger: LedgerClient) -> "ExecutionSubmitter":
        return cls(ledger, settings.max_validation_age_seconds)

    def _check(self, swap: ValidatedSwap, trader_address: Optional[str]) -> None:
        if not isinstance(swap, ValidatedSwap):
            raise SubmissionFailed(f"Only validated swaps can be submitted, got {type(swap).__name__}")
        if not trader_address:
            raise SubmissionFailed(f"No wallet connected; {swap.symbol} swap is read-only", swap.symbol)
        if trader_address != swap.trader_address:
            raise SubmissionFailed(
                f"{swap.symbol} swap was built for {swap.trader_address}, not {trader_address}",
                swap.symbol,
            )
        age = swap.age_seconds(time.time())
        if age > self.max_validation_age_seconds:
            raise SubmissionFailed(
                f"{swap.symbol} validation is {age:.0f}s old; validate again before submitting",
                swap.symbol,
                hint=describe_simulation_error("blockhash expired"),
            )

    async def submit(
        self,
        swap: ValidatedSwap,
        trader_address: Optional[str],
        signer: Optional[Signer] = None,
    ) -> SubmissionHandle:
        """
        Serialize and send one validated swap.

        Args:
            swap: Swap validated in the current run
            trader_address: Connected wallet; None means read-only mode
            signer: Optional hook that signs the transaction; without it the
                transaction is sent as-is (already signed externally)

        Raises:
            SubmissionFailed: gate checks failed, signing failed, or the
                ledger rejected or never received the transaction
        """
        self._check(swap, trader_address)

        transaction = swap.transaction
        if signer is not None:
            try:
                transaction = signer(transaction)
            except Exception as e:
                raise SubmissionFailed(f"Signing {swap.symbol} failed: {e}", swap.symbol) from e

        try:
            signature, endpoint = await self.ledger.send_raw_transaction(bytes(transaction))
        except asyncio.TimeoutError as e:
            logger.error(f"Submission of {swap.symbol} timed out")
            raise SubmissionFailed(
                f"Submission of {swap.symbol} timed out; status unknown, check before resubmitting",
                swap.symbol,
            ) from e
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(f"Submission of {swap.symbol} failed: {error}")
            raise SubmissionFailed(
                f"Submission of {swap.symbol} failed: {error}",
                swap.symbol,
                hint=describe_simulation_error(error),
            ) from e

        logger.info(f"Transaction sent via {endpoint} for {swap.symbol}: {signature[:16]}...")
        return SubmissionHandle(signature=signature, symbol=swap.symbol, endpoint=endpoint)

    async def submit_many(
        self,
        swaps: Iterable[ValidatedSwap],
        trader_address: Optional[str],
        signer: Optional[Signer] = None,
    ) -> List[SubmissionOutcome]:
        """Submit the selected swaps one after another; failures don't stop the rest."""
        outcomes = []
        for swap in swaps:
            try:
                handle = await self.submit(swap, trader_address, signer)
            except SubmissionFailed as e:
                outcomes.append(SubmissionOutcome(symbol=getattr(swap, "symbol", "?"), error=e))
                continue
            outcomes.append(SubmissionOutcome(symbol=swap.symbol, handle=handle))
        return outcomes
