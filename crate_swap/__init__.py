"""
crate-swap: buy a weighted crate of Solana tokens with one input amount.

Each holding is quoted through Jupiter, its prepared transaction simulated
before it may be sent, and each asset succeeds or fails on its own.
"""

from crate_swap.allocation import allocate, plan_allocations
from crate_swap.basket_api import BasketClient
from crate_swap.jupiter import JupiterClient
from crate_swap.ledger import LedgerClient
from crate_swap.orchestrator import BasketSwapOrchestrator
from crate_swap.submitter import ExecutionSubmitter
from crate_swap.token_registry import TokenRegistry, get_registry
from crate_swap.validator import TransactionValidator

__version__ = "0.1.0"

__all__ = [
    "allocate", "plan_allocations", "BasketClient", "JupiterClient", "LedgerClient",
    "BasketSwapOrchestrator", "ExecutionSubmitter", "TokenRegistry", "get_registry",
    "TransactionValidator",
]
