"""
Configuration validation with Pydantic.

Provides the models every component reads its settings from.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
PUBLIC_RPC_URL = "https://api.mainnet-beta.solana.com"
JUPITER_API_URL = "https://lite-api.jup.ag/swap/v1"


class RpcEndpoint(BaseModel):
    """A Solana RPC endpoint."""
    name: str
    url: str
    timeout_ms: int = Field(ge=100, default=10000)


class SwapSettings(BaseModel):
    """Settings for quoting, validating and submitting crate swaps."""
    backend_url: str = "http://localhost:3000"
    jupiter_api_url: str = JUPITER_API_URL
    rpc_endpoints: List[RpcEndpoint] = Field(
        default_factory=lambda: [RpcEndpoint(name="public_solana", url=PUBLIC_RPC_URL)]
    )

    input_mint: str = USDC_MINT
    input_decimals: int = Field(ge=0, le=18, default=6)
    slippage_bps: int = Field(ge=0, le=10000, default=50)

    request_timeout_seconds: float = Field(gt=0, le=120, default=10.0)
    retry_max_attempts: int = Field(ge=1, le=10, default=3)
    retry_base_delay: float = Field(ge=0, default=0.5)
    retry_max_delay: float = Field(ge=0, default=8.0)

    unknown_symbol_policy: Literal["fallback", "reject"] = "fallback"
    token_list_path: Optional[str] = None
    max_validation_age_seconds: float = Field(gt=0, default=60.0)

    log_level: str = "INFO"
    log_json: bool = False
    log_dir: Optional[str] = None

    @property
    def primary_endpoint(self) -> RpcEndpoint:
        return self.rpc_endpoints[0]
