"""Custom exception hierarchy."""
from typing import Any, Dict, List, Optional


class CrateSwapError(Exception):
    """Base exception for all crate swap errors."""
    code: str = "SYS_001"

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class ConfigurationError(CrateSwapError):
    """Configuration error."""
    code = "CFG_001"


class InvalidRequest(CrateSwapError):
    """Malformed caller input. Raised before any external call."""
    code = "REQ_001"


class UnknownAsset(InvalidRequest):
    """Symbol missing from the token table while the reject policy is active."""
    code = "REQ_002"

    def __init__(self, symbol: str):
        super().__init__(f"Unknown asset symbol: {symbol}", {"symbol": symbol})
        self.symbol = symbol


class InvalidAllocation(CrateSwapError):
    """Degenerate basket weights (zero total weight, negative weights)."""
    code = "ALLOC_001"


class BasketFetchFailed(CrateSwapError):
    """Basket data endpoint error."""
    code = "EXT_001"

    def __init__(self, message: str, crate_id: str = None, status: Optional[int] = None):
        super().__init__(message, {"crate_id": crate_id, "status": status})
        self.crate_id = crate_id
        self.status = status


class AssetPipelineError(CrateSwapError):
    """Failure confined to a single asset of a basket run."""
    code = "ASSET_000"

    def __init__(self, message: str, symbol: str = None, details: Dict[str, Any] = None):
        payload = {"symbol": symbol}
        payload.update(details or {})
        super().__init__(message, payload)
        self.symbol = symbol


class QuoteUnavailable(AssetPipelineError):
    """No usable quote or prepared transaction for an asset."""
    code = "ASSET_001"


class SimulationFailed(AssetPipelineError):
    """The prepared transaction did not pass simulation."""
    code = "ASSET_002"

    def __init__(
        self,
        message: str,
        symbol: str = None,
        logs: Optional[List[str]] = None,
        error: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message, symbol, {"error": error, "hint": hint})
        self.logs = list(logs or [])
        self.error = error
        self.hint = hint


class NoViableSwaps(CrateSwapError):
    """Every per-asset pipeline of a run failed."""
    code = "SWAP_001"

    def __init__(self, requested: int):
        super().__init__(
            f"No viable swaps: all {requested} assets failed",
            {"requested": requested},
        )
        self.requested = requested


class SubmissionFailed(CrateSwapError):
    """Submitting a validated swap to the ledger failed. Never retried."""
    code = "SUBMIT_001"

    def __init__(self, message: str, symbol: str = None, hint: Optional[str] = None):
        super().__init__(message, {"symbol": symbol, "hint": hint})
        self.symbol = symbol
        self.hint = hint
