"""
Basket swap orchestration.

Splits a total input amount across a crate's holdings, then for every holding
concurrently quotes the swap and simulates its prepared transaction. All
pipelines are joined before a result is produced; one asset failing never
cancels or delays another.
"""

import asyncio
import logging
import math
from decimal import Decimal
from typing import List, Optional, Sequence

from crate_swap.allocation import plan_allocations
from crate_swap.config.schema import USDC_MINT, SwapSettings
from crate_swap.errors import (
    AssetPipelineError, ConfigurationError, InvalidAllocation, InvalidRequest, NoViableSwaps,
    QuoteUnavailable, SimulationFailed,
)
from crate_swap.jupiter import JupiterClient
from crate_swap.logging_config import CorrelationContext
from crate_swap.models import AssetOutcome, Basket, OrchestrationResult, PreviewResult, SwapPlan
from crate_swap.token_registry import TokenRegistry, get_registry
from crate_swap.validator import TransactionValidator

logger = logging.getLogger(__name__)

PER_ASSET_ERRORS = (AssetPipelineError, asyncio.TimeoutError)


def _check_amount(total_input_amount) -> None:
    if isinstance(total_input_amount, bool) or not isinstance(total_input_amount, (int, float, Decimal)):
        raise InvalidRequest(f"Input amount must be a number, got {type(total_input_amount).__name__}")
    if isinstance(total_input_amount, Decimal):
        finite = total_input_amount.is_finite()
    else:
        finite = math.isfinite(total_input_amount)
    if not finite or total_input_amount <= 0:
        raise InvalidRequest(f"Input amount must be a finite positive number, got {total_input_amount}")


class BasketSwapOrchestrator:
    """Drives allocation, quoting and validation over every holding of a crate."""

    def __init__(
        self,
        quote_acquirer: JupiterClient,
        validator: Optional[TransactionValidator] = None,
        registry: Optional[TokenRegistry] = None,
        *,
        input_mint: str = USDC_MINT,
        input_decimals: int = 6,
        slippage_bps: Optional[int] = None,
        unknown_symbol_policy: str = "fallback",
    ):
        self.quote_acquirer = quote_acquirer
        self.validator = validator
        self.registry = registry or get_registry()
        self.input_mint = input_mint
        self.input_decimals = input_decimals
        self.slippage_bps = slippage_bps
        self.unknown_symbol_policy = unknown_symbol_policy

    @classmethod
    def from_settings(
        cls,
        settings: SwapSettings,
        quote_acquirer: JupiterClient,
        validator: Optional[TransactionValidator] = None,
        registry: Optional[TokenRegistry] = None,
    ) -> "BasketSwapOrchestrator":
        return cls(
            quote_acquirer,
            validator,
            registry or get_registry(settings.token_list_path),
            input_mint=settings.input_mint,
            input_decimals=settings.input_decimals,
            slippage_bps=settings.slippage_bps,
            unknown_symbol_policy=settings.unknown_symbol_policy,
        )

    def plan(self, basket: Basket, total_input_amount) -> List[SwapPlan]:
        """
        Validate the request and build one SwapPlan per holding.

        Makes no external calls. Amounts stay in input-asset base units
        because ExactIn quotes are denominated in the input asset.

        Raises:
            InvalidRequest: missing basket, empty basket, bad amount, or an
                unknown symbol under the reject policy
            InvalidAllocation: total weight is not positive
        """
        if basket is None:
            raise InvalidRequest("Basket is required")
        if not basket.holdings:
            raise InvalidRequest(f"Crate {basket.id} has no holdings")
        _check_amount(total_input_amount)
        if basket.total_weight <= 0:
            raise InvalidAllocation(f"Crate {basket.id} has zero total weight")

        assets = [self.registry.resolve(h.symbol, self.unknown_symbol_policy) for h in basket.holdings]
        allocations = plan_allocations(
            basket.holdings, total_input_amount, self.input_decimals, self.input_decimals
        )
        return [
            SwapPlan(symbol=holding.symbol, amount=amount, input_mint=self.input_mint, asset=asset)
            for (holding, amount), asset in zip(allocations, assets)
        ]

    async def _swap_pipeline(self, plan: SwapPlan, trader_address: str) -> AssetOutcome:
        try:
            if plan.amount <= 0:
                raise QuoteUnavailable(f"Allocation for {plan.symbol} rounds to zero", plan.symbol)
            quote = await self.quote_acquirer.acquire(plan, trader_address, self.slippage_bps)
            swap = await self.validator.validate(quote, trader_address)
        except PER_ASSET_ERRORS as e:
            return AssetOutcome(plan.symbol, error=e)
        return AssetOutcome(plan.symbol, swap=swap)

    async def _quote_pipeline(self, plan: SwapPlan) -> AssetOutcome:
        try:
            if plan.amount <= 0:
                raise QuoteUnavailable(f"Allocation for {plan.symbol} rounds to zero", plan.symbol)
            price = await self.quote_acquirer.get_quote(
                plan.input_mint, plan.output_mint, plan.amount, self.slippage_bps, symbol=plan.symbol
            )
        except PER_ASSET_ERRORS as e:
            return AssetOutcome(plan.symbol, error=e)
        return AssetOutcome(plan.symbol, quote=price)

    async def _join(self, pipelines: Sequence) -> List[AssetOutcome]:
        """Await every pipeline; re-raise unexpected errors only once all have finished."""
        results = await asyncio.gather(*pipelines, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)

    def _log_failures(self, outcomes: List[AssetOutcome]) -> None:
        for outcome in outcomes:
            if outcome.ok:
                continue
            error = outcome.error
            if isinstance(error, asyncio.TimeoutError):
                logger.warning(f"Dropped {outcome.symbol}: timed out")
                continue
            logger.warning(f"Dropped {outcome.symbol}: {error}")
            if isinstance(error, SimulationFailed):
                if error.hint:
                    logger.warning(f"[{outcome.symbol}] hint: {error.hint}")
                for line in error.logs:
                    logger.info(f"[{outcome.symbol}] sim: {line}")

    async def orchestrate(
        self,
        basket: Basket,
        total_input_amount,
        trader_address: str,
    ) -> OrchestrationResult:
        """
        Quote and validate a swap for every holding of ``basket``.

        Args:
            basket: Crate to buy into
            total_input_amount: Total input in input-asset base units
            trader_address: Public key the swap transactions are built for

        Returns:
            OrchestrationResult with the validated swaps, in basket order

        Raises:
            InvalidRequest, InvalidAllocation: before any external call
            ConfigurationError: built without a validator
            NoViableSwaps: every asset failed
        """
        if not trader_address:
            raise InvalidRequest("Trader address is required to build swap transactions")
        if self.validator is None:
            raise ConfigurationError("Orchestrating swaps needs a TransactionValidator; use preview() for quotes only")
        plans = self.plan(basket, total_input_amount)

        with CorrelationContext(crate_id=basket.id):
            logger.info(
                f"Orchestrating crate {basket.id} ({basket.name}): "
                f"{total_input_amount} base units over {len(plans)} assets"
            )
            outcomes = await self._join([self._swap_pipeline(p, trader_address) for p in plans])
            self._log_failures(outcomes)

            swaps = [o.swap for o in outcomes if o.ok]
            if not swaps:
                logger.error(f"Crate {basket.id}: no viable swaps out of {len(plans)} assets")
                raise NoViableSwaps(requested=len(plans))

            result = OrchestrationResult(swaps=swaps, requested=len(plans))
            logger.info(f"Crate {basket.id}: {result.summary()}")
            return result

    async def preview(self, basket: Basket, total_input_amount) -> PreviewResult:
        """Read-only quotes for every holding; needs no trader identity."""
        plans = self.plan(basket, total_input_amount)

        with CorrelationContext(crate_id=basket.id):
            outcomes = await self._join([self._quote_pipeline(p) for p in plans])
            self._log_failures(outcomes)

            quotes = [o for o in outcomes if o.ok]
            if not quotes:
                raise NoViableSwaps(requested=len(plans))
            return PreviewResult(quotes=quotes, requested=len(plans))
