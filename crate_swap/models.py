"""Data model for crate swaps: baskets, plans, quotes and results."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from solders.transaction import VersionedTransaction


@dataclass
class Holding:
    """One asset's relative weight within a basket."""
    id: str
    symbol: str
    name: str
    quantity: float
    crate_id: str
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Holding":
        return cls(
            id=str(data.get("id", "")),
            symbol=str(data.get("symbol", "")),
            name=str(data.get("name", "")),
            quantity=float(data.get("quantity", 0) or 0),
            crate_id=str(data.get("crateId", "")),
            created_at=str(data.get("createdAt", "")),
        )


@dataclass
class Basket:
    """A named crate of weighted holdings.

    Holding quantities are relative weights; their sum is the normalization
    denominator and need not equal 100.
    """
    id: str
    name: str
    holdings: List[Holding] = field(default_factory=list)
    image: str = ""
    creator_id: str = ""
    total_cost: float = 0.0
    upvotes: int = 0
    downvotes: int = 0
    created_at: str = ""
    updated_at: str = ""

    @property
    def total_weight(self) -> float:
        return sum(h.quantity for h in self.holdings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Basket":
        crate_id = str(data["id"])
        holdings = []
        for token in data.get("tokens") or []:
            holding = Holding.from_dict(token)
            # Holdings always belong to the crate they were fetched with
            holding.crate_id = crate_id
            holdings.append(holding)
        return cls(
            id=crate_id,
            name=str(data.get("name", "")),
            holdings=holdings,
            image=str(data.get("image") or ""),
            creator_id=str(data.get("creatorId") or ""),
            total_cost=float(data.get("totalCost") or 0),
            upvotes=int(data.get("upvotes") or 0),
            downvotes=int(data.get("downvotes") or 0),
            created_at=str(data.get("createdAt") or ""),
            updated_at=str(data.get("updatedAt") or ""),
        )


@dataclass(frozen=True)
class AssetRef:
    """A symbol resolved to its mint address."""
    symbol: str
    address: str
    decimals: int
    is_fallback: bool = False


@dataclass
class SwapPlan:
    """Per-asset unit of work for one run."""
    symbol: str
    amount: int                # input asset base units
    input_mint: str
    asset: AssetRef

    @property
    def output_mint(self) -> str:
        return self.asset.address


@dataclass
class PriceQuote:
    """Pricing terms returned by the aggregator's quote call."""
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    min_out_amount: int        # otherAmountThreshold after slippage
    price_impact_pct: float
    slippage_bps: int
    route_plan: List[Dict[str, Any]]
    quote_response: Dict[str, Any]  # raw response, sent back for the swap call

    @classmethod
    def from_response(cls, data: Dict[str, Any], slippage_bps: int) -> "PriceQuote":
        return cls(
            input_mint=str(data.get("inputMint", "")),
            output_mint=str(data.get("outputMint", "")),
            in_amount=int(data.get("inAmount", 0)),
            out_amount=int(data.get("outAmount", 0)),
            min_out_amount=int(data.get("otherAmountThreshold", 0) or 0),
            price_impact_pct=float(data.get("priceImpactPct", 0) or 0),
            slippage_bps=int(data.get("slippageBps", slippage_bps)),
            route_plan=list(data.get("routePlan") or []),
            quote_response=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_mint": self.input_mint,
            "output_mint": self.output_mint,
            "in_amount": self.in_amount,
            "out_amount": self.out_amount,
            "min_out_amount": self.min_out_amount,
            "price_impact_pct": self.price_impact_pct,
            "slippage_bps": self.slippage_bps,
            "route_hops": len(self.route_plan),
        }


@dataclass
class SwapQuote:
    """A priced quote plus its unsigned prepared transaction. Never cached."""
    plan: SwapPlan
    price: PriceQuote
    transaction: VersionedTransaction
    last_valid_block_height: Optional[int] = None

    @property
    def symbol(self) -> str:
        return self.plan.symbol


@dataclass
class ValidatedSwap:
    """A swap quote whose transaction passed simulation in this run."""
    quote: SwapQuote
    transaction: VersionedTransaction
    simulation_logs: List[str]
    blockhash: str
    trader_address: str
    last_valid_block_height: Optional[int] = None
    units_consumed: Optional[int] = None
    validated_at: float = field(default_factory=time.time)

    @property
    def symbol(self) -> str:
        return self.quote.symbol

    def age_seconds(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.validated_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "amount": self.quote.plan.amount,
            "output_mint": self.quote.plan.output_mint,
            "quote": self.quote.price.to_dict(),
            "blockhash": self.blockhash,
            "units_consumed": self.units_consumed,
            "simulation_logs": list(self.simulation_logs),
        }


@dataclass
class AssetOutcome:
    """Tagged per-asset result collected at the join."""
    symbol: str
    swap: Optional[ValidatedSwap] = None
    quote: Optional[PriceQuote] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class OrchestrationResult:
    """Validated swaps of one run, in basket order. Failures are only logged."""
    swaps: List[ValidatedSwap]
    requested: int

    @property
    def dropped(self) -> int:
        return self.requested - len(self.swaps)

    def summary(self) -> str:
        return f"{len(self.swaps)} of {self.requested} assets ready"

    def by_symbol(self, symbol: str) -> Optional[ValidatedSwap]:
        for swap in self.swaps:
            if swap.symbol.upper() == symbol.upper():
                return swap
        return None


@dataclass
class PreviewResult:
    """Read-only quotes for a basket (no transactions built)."""
    quotes: List[AssetOutcome]
    requested: int

    @property
    def dropped(self) -> int:
        return self.requested - len(self.quotes)

    def summary(self) -> str:
        return f"{len(self.quotes)} of {self.requested} assets quoted"


@dataclass
class SubmissionHandle:
    signature: str
    symbol: str
    endpoint: str
    submitted_at: float = field(default_factory=time.time)


@dataclass
class SubmissionOutcome:
    symbol: str
    handle: Optional[SubmissionHandle] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.handle is not None
