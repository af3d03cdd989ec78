"""
Configuration loader.

Sources, lowest to highest priority:
- Model defaults
- .env file (loaded with python-dotenv, never overriding the process env)
- Environment variables
- RPC providers JSON file (CRATE_RPC_CONFIG)
- Explicit overrides passed by the caller

Usage:
    from crate_swap.config import load_settings

    settings = load_settings()
    rpc_url = settings.primary_endpoint.url
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from pydantic import ValidationError

from crate_swap.config.schema import RpcEndpoint, SwapSettings
from crate_swap.errors import ConfigurationError

logger = logging.getLogger(__name__)

# env var -> settings field
ENV_FIELDS = {
    "CRATE_BACKEND_URL": "backend_url",
    "JUPITER_API_URL": "jupiter_api_url",
    "CRATE_INPUT_MINT": "input_mint",
    "CRATE_INPUT_DECIMALS": "input_decimals",
    "CRATE_SLIPPAGE_BPS": "slippage_bps",
    "CRATE_REQUEST_TIMEOUT": "request_timeout_seconds",
    "CRATE_RETRY_ATTEMPTS": "retry_max_attempts",
    "CRATE_RETRY_BASE_DELAY": "retry_base_delay",
    "CRATE_RETRY_MAX_DELAY": "retry_max_delay",
    "CRATE_UNKNOWN_SYMBOL_POLICY": "unknown_symbol_policy",
    "CRATE_TOKEN_LIST_PATH": "token_list_path",
    "CRATE_MAX_VALIDATION_AGE": "max_validation_age_seconds",
    "CRATE_LOG_LEVEL": "log_level",
    "CRATE_LOG_JSON": "log_json",
    "CRATE_LOG_DIR": "log_dir",
}


def _substitute_env(value: str) -> Optional[str]:
    """Expand a single ``${VAR}`` reference; None when VAR is unset."""
    if "${" not in value:
        return value
    start = value.find("${")
    end = value.find("}", start + 2)
    if end == -1:
        return value
    env_name = value[start + 2:end]
    env_value = os.environ.get(env_name)
    if not env_value:
        return None
    return value.replace(f"${{{env_name}}}", env_value)


def load_rpc_endpoints(path: Union[str, Path]) -> List[RpcEndpoint]:
    """Load Solana RPC endpoints (primary first, then fallbacks) from a JSON file."""
    config_path = Path(path).expanduser()
    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to load RPC config {config_path}: {e}")

    solana_cfg = payload.get("solana", {}) or {}
    entries = []
    if solana_cfg.get("primary"):
        entries.append((solana_cfg["primary"], "primary"))
    for fallback in solana_cfg.get("fallback", []) or []:
        entries.append((fallback, "fallback"))

    endpoints: List[RpcEndpoint] = []
    for entry, default_name in entries:
        url = _substitute_env(str(entry.get("url", "")))
        if not url:
            logger.warning(f"Skipping RPC endpoint {entry.get('name', default_name)}: unresolved url")
            continue
        endpoints.append(
            RpcEndpoint(
                name=str(entry.get("name", default_name)),
                url=url,
                timeout_ms=int(entry.get("timeout_ms", 10000)),
            )
        )

    if not endpoints:
        raise ConfigurationError(f"No usable RPC endpoints in {config_path}")
    return endpoints


def load_settings(
    env_file: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> SwapSettings:
    """Build SwapSettings from .env, the environment and optional overrides."""
    env_path = Path(env_file) if env_file else Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
        logger.debug(f"Loaded .env from {env_path}")

    values: Dict[str, Any] = {}
    for env_name, field_name in ENV_FIELDS.items():
        raw = os.environ.get(env_name)
        if raw is not None and raw.strip() != "":
            values[field_name] = raw.strip()

    rpc_config = os.environ.get("CRATE_RPC_CONFIG", "").strip()
    rpc_url = os.environ.get("SOLANA_RPC_URL", "").strip()
    if rpc_config:
        values["rpc_endpoints"] = load_rpc_endpoints(rpc_config)
    elif rpc_url:
        values["rpc_endpoints"] = [RpcEndpoint(name="primary", url=rpc_url)]

    values.update(overrides or {})

    try:
        settings = SwapSettings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}")

    logger.debug(
        f"Settings loaded: {len(settings.rpc_endpoints)} RPC endpoints, "
        f"slippage {settings.slippage_bps} bps, policy {settings.unknown_symbol_policy}"
    )
    return settings
