"""Pre-submission gate: refresh the blockhash and simulate every prepared swap."""

import logging
from typing import Optional, Tuple

from solders.transaction import VersionedTransaction

from crate_swap.config.schema import SwapSettings
from crate_swap.errors import SimulationFailed, describe_simulation_error, is_retryable_error
from crate_swap.ledger import BlockhashInfo, LedgerClient, LedgerUnavailable, SimulationOutcome, with_recent_blockhash
from crate_swap.models import SwapQuote, ValidatedSwap
from crate_swap.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)


class _RetryableSimulation(Exception):
    """Simulation failed with a transient error (expired blockhash, account in use)."""

    def __init__(self, outcome: SimulationOutcome):
        super().__init__(outcome.err)
        self.outcome = outcome


class TransactionValidator:
    """
    Simulates prepared swap transactions before they may be submitted.

    Each attempt fetches the latest blockhash right before simulating, so a
    blockhash is never reused across validations. Transient ledger failures
    and simulation errors classified as retryable are retried with backoff;
    any other simulation error fails immediately.
    """

    def __init__(self, ledger: LedgerClient, retry_policy: Optional[RetryPolicy] = None):
        self.ledger = ledger
        self.retry_policy = retry_policy or RetryPolicy()

    @classmethod
    def from_settings(cls, settings: SwapSettings, ledger: LedgerClient) -> "TransactionValidator":
        return cls(ledger, RetryPolicy.from_settings(settings))

    async def _attempt(
        self, quote: SwapQuote
    ) -> Tuple[VersionedTransaction, BlockhashInfo, SimulationOutcome]:
        info = await self.ledger.get_latest_blockhash()
        transaction = with_recent_blockhash(quote.transaction, info.blockhash)
        outcome = await self.ledger.simulate(transaction)
        if not outcome.ok and is_retryable_error(outcome.err):
            raise _RetryableSimulation(outcome)
        return transaction, info, outcome

    async def validate(self, quote: SwapQuote, trader_address: str) -> ValidatedSwap:
        """
        Simulate ``quote``'s transaction against current chain state.

        Raises:
            SimulationFailed: the simulation reported an error (logs attached)
                or the ledger could not be reached
        """
        symbol = quote.symbol
        try:
            transaction, info, outcome = await retry_async(
                self._attempt,
                quote,
                policy=self.retry_policy,
                retry_on=(LedgerUnavailable, _RetryableSimulation),
                description=f"validate {symbol}",
            )
        except LedgerUnavailable as e:
            raise SimulationFailed(
                f"Ledger unavailable while validating {symbol}: {e}",
                symbol,
                error=str(e),
                hint="RPC endpoints unreachable; check network or endpoint configuration.",
            ) from e
        except _RetryableSimulation as e:
            outcome = e.outcome

        if not outcome.ok:
            hint = describe_simulation_error(outcome.err)
            for line in outcome.logs:
                logger.debug(f"[{symbol}] sim: {line}")
            raise SimulationFailed(
                f"Simulation failed for {symbol}: {outcome.err}",
                symbol,
                logs=outcome.logs,
                error=outcome.err,
                hint=hint,
            )

        logger.info(
            f"Validated {symbol} via {outcome.endpoint or info.endpoint} "
            f"({outcome.units_consumed or 0} CU, {len(outcome.logs)} log lines)"
        )
        return ValidatedSwap(
            quote=quote,
            transaction=transaction,
            simulation_logs=list(outcome.logs),
            blockhash=str(info.blockhash),
            trader_address=trader_address,
            last_valid_block_height=info.last_valid_block_height,
            units_consumed=outcome.units_consumed,
        )
