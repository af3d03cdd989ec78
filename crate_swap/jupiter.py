"""
Jupiter Aggregator client for crate swaps.

Quotes one (input mint, output mint, amount) triple and builds the prepared,
unsigned swap transaction for a trader.
"""

import asyncio
import base64
import binascii
import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp
from solders.transaction import VersionedTransaction

from crate_swap.config.schema import JUPITER_API_URL, SwapSettings
from crate_swap.errors import QuoteUnavailable
from crate_swap.models import PriceQuote, SwapPlan, SwapQuote
from crate_swap.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)

USER_AGENT = "crate-swap/0.1 (Jupiter client)"


class TransientAPIError(ConnectionError):
    """Retryable HTTP failure (rate limit, 5xx)."""


class RejectedRequest(Exception):
    """Non-retryable HTTP failure (4xx, error payload)."""


class JupiterClient:
    """
    Jupiter Aggregator API client.

    Features:
    - ExactIn quotes with configurable slippage (default 50 bps)
    - Swap transaction building with automatic SOL wrap/unwrap
    - Bounded retry with exponential backoff on transient failures only
    - Per-request timeout
    """

    RETRYABLE_STATUS = (429, 500, 502, 503, 504)
    DEFAULT_SLIPPAGE_BPS = 50

    def __init__(
        self,
        api_url: str = JUPITER_API_URL,
        *,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
        timeout_seconds: float = 10.0,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.slippage_bps = slippage_bps
        self.timeout_seconds = timeout_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self._session = session

    @classmethod
    def from_settings(cls, settings: SwapSettings) -> "JupiterClient":
        return cls(
            settings.jupiter_api_url,
            slippage_bps=settings.slippage_bps,
            timeout_seconds=settings.request_timeout_seconds,
            retry_policy=RetryPolicy.from_settings(settings),
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})
        return self._session

    async def close(self):
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "JupiterClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        session = await self._get_session()
        url = f"{self.api_url}/{path}"
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        if method == "GET":
            response_ctx = session.get(url, params=params, timeout=timeout)
        else:
            response_ctx = session.post(url, json=payload, timeout=timeout)

        async with response_ctx as resp:
            if resp.status in self.RETRYABLE_STATUS:
                raise TransientAPIError(f"HTTP {resp.status} from {path}")
            if resp.status != 200:
                body = await resp.text()
                raise RejectedRequest(f"HTTP {resp.status} from {path}: {body[:200]}")
            data = await resp.json()

        if not isinstance(data, dict):
            raise RejectedRequest(f"Unexpected {path} payload: {type(data).__name__}")
        if data.get("error"):
            raise RejectedRequest(f"{path} error: {data['error']}")
        return data

    async def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        return await retry_async(
            self._request_json,
            method,
            path,
            policy=self.retry_policy,
            retry_on=(TransientAPIError, asyncio.TimeoutError, aiohttp.ClientError),
            description=f"jupiter {path}",
            **kwargs,
        )

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: Optional[int] = None,
        *,
        symbol: Optional[str] = None,
    ) -> PriceQuote:
        """
        Get an ExactIn swap quote.

        Args:
            input_mint: Input token mint address
            output_mint: Output token mint address
            amount: Amount in input token base units
            slippage_bps: Slippage tolerance in basis points (50 = 0.5%)

        Raises:
            QuoteUnavailable: service failure or no viable route
        """
        label = symbol or output_mint[:8]
        slippage = self.slippage_bps if slippage_bps is None else slippage_bps
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": slippage,
            "swapMode": "ExactIn",
        }
        try:
            data = await self._call("GET", "quote", params=params)
            quote = PriceQuote.from_response(data, slippage)
        except (
            TransientAPIError, RejectedRequest, asyncio.TimeoutError, aiohttp.ClientError,
            KeyError, TypeError, ValueError,
        ) as e:
            raise QuoteUnavailable(f"Quote failed for {label}: {e}", symbol) from e

        if not quote.route_plan or quote.out_amount <= 0:
            raise QuoteUnavailable(f"No route for {label}", symbol)

        logger.debug(
            f"Quote {label}: {quote.in_amount} -> {quote.out_amount} "
            f"(impact {quote.price_impact_pct:.4f}%, {len(quote.route_plan)} hops)"
        )
        return quote

    async def get_swap_transaction(
        self,
        quote: PriceQuote,
        user_public_key: str,
        wrap_and_unwrap_sol: bool = True,
        *,
        symbol: Optional[str] = None,
    ) -> Tuple[VersionedTransaction, Optional[int]]:
        """
        Build the unsigned swap transaction for a quote.

        Returns:
            (transaction, lastValidBlockHeight assigned by the aggregator)

        Raises:
            QuoteUnavailable: service failure or undecodable transaction
        """
        label = symbol or quote.output_mint[:8]
        payload = {
            "quoteResponse": quote.quote_response,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": wrap_and_unwrap_sol,
            "dynamicComputeUnitLimit": True,
        }
        try:
            data = await self._call("POST", "swap", payload=payload)
        except (TransientAPIError, RejectedRequest, asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
            raise QuoteUnavailable(f"Swap transaction failed for {label}: {e}", symbol) from e

        encoded = data.get("swapTransaction")
        if not encoded:
            raise QuoteUnavailable(f"No swap transaction returned for {label}", symbol)

        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise QuoteUnavailable(f"Swap transaction for {label} is not base64: {e}", symbol) from e
        try:
            transaction = VersionedTransaction.from_bytes(raw)
        except Exception as e:
            raise QuoteUnavailable(f"Swap transaction for {label} is malformed: {e}", symbol) from e

        last_valid = data.get("lastValidBlockHeight")
        try:
            last_valid = int(last_valid) if last_valid is not None else None
        except (TypeError, ValueError) as e:
            raise QuoteUnavailable(f"Swap response for {label} has a bad lastValidBlockHeight: {e}", symbol) from e
        return transaction, last_valid

    async def acquire(
        self,
        plan: SwapPlan,
        trader_address: str,
        slippage_bps: Optional[int] = None,
    ) -> SwapQuote:
        """Quote a plan and build its prepared transaction for the trader."""
        if plan.amount <= 0:
            raise QuoteUnavailable(f"Allocation for {plan.symbol} rounds to zero", plan.symbol)

        price = await self.get_quote(
            plan.input_mint, plan.output_mint, plan.amount, slippage_bps, symbol=plan.symbol
        )
        transaction, last_valid = await self.get_swap_transaction(
            price, trader_address, wrap_and_unwrap_sol=True, symbol=plan.symbol
        )
        return SwapQuote(
            plan=plan,
            price=price,
            transaction=transaction,
            last_valid_block_height=last_valid,
        )
