"""Static symbol -> mint resolution table for crate holdings."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from crate_swap.errors import ConfigurationError, UnknownAsset
from crate_swap.models import AssetRef

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIST = Path(__file__).resolve().parent / "data" / "tokens.json"

# Wrapped SOL stands in for any symbol missing from the table
FALLBACK_ASSET = AssetRef(
    symbol="SOL",
    address="So11111111111111111111111111111111111111112",
    decimals=9,
    is_fallback=True,
)

_REGISTRIES: Dict[str, "TokenRegistry"] = {}


def _extract_token_list(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        tokens = payload.get("tokens")
        if isinstance(tokens, list):
            return tokens
    return []


class TokenRegistry:
    """
    Case-insensitive symbol lookup over a static token table.

    Resolution is total under the ``fallback`` policy: an unknown symbol
    resolves to wrapped SOL and logs a warning. Under ``reject`` an unknown
    symbol raises UnknownAsset.
    """

    def __init__(self, tokens: List[Dict[str, Any]], fallback: AssetRef = FALLBACK_ASSET):
        self.fallback = fallback
        self._by_symbol: Dict[str, AssetRef] = {}
        for token in tokens:
            symbol = str(token.get("symbol", "")).strip()
            address = token.get("address") or token.get("mint")
            if not symbol or not address:
                continue
            # First entry wins on duplicate symbols
            self._by_symbol.setdefault(
                symbol.upper(),
                AssetRef(symbol=symbol, address=str(address), decimals=int(token.get("decimals", 0))),
            )

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "TokenRegistry":
        token_path = Path(path).expanduser() if path else DEFAULT_TOKEN_LIST
        try:
            payload = json.loads(token_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load token list {token_path}: {e}")
        tokens = _extract_token_list(payload)
        if not tokens:
            raise ConfigurationError(f"Token list {token_path} is empty")
        registry = cls(tokens)
        logger.debug(f"Loaded {len(registry)} tokens from {token_path}")
        return registry

    def __len__(self) -> int:
        return len(self._by_symbol)

    def lookup(self, symbol: str) -> Optional[AssetRef]:
        return self._by_symbol.get(str(symbol).strip().upper())

    def resolve(self, symbol: str, policy: str = "fallback") -> AssetRef:
        asset = self.lookup(symbol)
        if asset is not None:
            return asset
        if policy == "reject":
            raise UnknownAsset(symbol)
        logger.warning(f"Token with symbol {symbol!r} not found. Using wrapped SOL as fallback.")
        return self.fallback

    def get_decimals(self, address: str, fallback: int = 9) -> int:
        for asset in self._by_symbol.values():
            if asset.address == address:
                return asset.decimals
        return fallback


def get_registry(path: Optional[Union[str, Path]] = None) -> TokenRegistry:
    """Process-wide registry, loaded once per path."""
    key = str(Path(path).expanduser()) if path else str(DEFAULT_TOKEN_LIST)
    registry = _REGISTRIES.get(key)
    if registry is None:
        registry = TokenRegistry.load(path)
        _REGISTRIES[key] = registry
    return registry
