"""
Error handling and exception classes.

Per-asset failures derive from AssetPipelineError. The orchestrator turns
those into dropped assets; every other CrateSwapError reaches the caller.

Example usage:
    from crate_swap.errors import QuoteUnavailable, NoViableSwaps
"""

from crate_swap.errors.exceptions import (
    CrateSwapError, ConfigurationError, InvalidRequest, UnknownAsset,
    InvalidAllocation, BasketFetchFailed, AssetPipelineError,
    QuoteUnavailable, SimulationFailed, NoViableSwaps, SubmissionFailed,
)
from crate_swap.errors.classification import (
    classify_simulation_error, describe_simulation_error,
    is_blockhash_expired, is_retryable_error,
)

__all__ = [
    "CrateSwapError", "ConfigurationError", "InvalidRequest", "UnknownAsset",
    "InvalidAllocation", "BasketFetchFailed", "AssetPipelineError",
    "QuoteUnavailable", "SimulationFailed", "NoViableSwaps", "SubmissionFailed",
    "classify_simulation_error", "describe_simulation_error",
    "is_blockhash_expired", "is_retryable_error",
]
