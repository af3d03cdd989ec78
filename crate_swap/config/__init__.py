"""Configuration for crate swaps."""

from crate_swap.config.schema import RpcEndpoint, SwapSettings, USDC_MINT
from crate_swap.config.loader import load_rpc_endpoints, load_settings

__all__ = ["RpcEndpoint", "SwapSettings", "USDC_MINT", "load_rpc_endpoints", "load_settings"]
