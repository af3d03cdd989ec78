"""crate-swap CLI entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from crate_swap.allocation import from_base_units, to_base_units
from crate_swap.basket_api import BasketClient
from crate_swap.config import SwapSettings, load_settings
from crate_swap.errors import CrateSwapError
from crate_swap.jupiter import JupiterClient
from crate_swap.ledger import LedgerClient
from crate_swap.logging_config import setup_logging
from crate_swap.models import PriceQuote
from crate_swap.orchestrator import BasketSwapOrchestrator
from crate_swap.submitter import ExecutionSubmitter
from crate_swap.token_registry import get_registry
from crate_swap.validator import TransactionValidator
from crate_swap.wallet import Signer, keypair_signer, load_keypair


def _print_json(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _quote_amounts(price: PriceQuote, input_decimals: int, output_decimals: int) -> Dict[str, str]:
    """Quoted amounts in whole-token units for display."""
    return {
        "amount_in": str(from_base_units(price.in_amount, input_decimals)),
        "expected_out": str(from_base_units(price.out_amount, output_decimals)),
        "minimum_out": str(from_base_units(price.min_out_amount, output_decimals)),
    }


async def _preview(settings: SwapSettings, args: argparse.Namespace) -> Dict[str, Any]:
    async with BasketClient.from_settings(settings) as baskets, JupiterClient.from_settings(settings) as jupiter:
        basket = await baskets.fetch_basket(args.crate_id)
        orchestrator = BasketSwapOrchestrator.from_settings(settings, jupiter)
        amount = to_base_units(args.amount, settings.input_decimals)
        result = await orchestrator.preview(basket, amount)
        registry = orchestrator.registry
        return {
            "crate": {"id": basket.id, "name": basket.name},
            "amount_base_units": amount,
            "summary": result.summary(),
            "quotes": [
                {
                    "symbol": o.symbol,
                    **o.quote.to_dict(),
                    **_quote_amounts(
                        o.quote, settings.input_decimals, registry.get_decimals(o.quote.output_mint)
                    ),
                }
                for o in result.quotes
            ],
        }


async def _buy(
    settings: SwapSettings, args: argparse.Namespace, signer: Optional[Signer] = None
) -> Dict[str, Any]:
    async with BasketClient.from_settings(settings) as baskets, JupiterClient.from_settings(settings) as jupiter:
        basket = await baskets.fetch_basket(args.crate_id)
        ledger = LedgerClient.from_settings(settings)
        orchestrator = BasketSwapOrchestrator.from_settings(
            settings, jupiter, TransactionValidator.from_settings(settings, ledger)
        )
        amount = to_base_units(args.amount, settings.input_decimals)
        result = await orchestrator.orchestrate(basket, amount, args.wallet)

        payload: Dict[str, Any] = {
            "crate": {"id": basket.id, "name": basket.name},
            "amount_base_units": amount,
            "summary": result.summary(),
            "swaps": [
                {
                    **swap.to_dict(),
                    **_quote_amounts(
                        swap.quote.price, settings.input_decimals, swap.quote.plan.asset.decimals
                    ),
                }
                for swap in result.swaps
            ],
        }

        selected: List[str] = []
        if args.submit_all:
            selected = [swap.symbol for swap in result.swaps]
        elif args.submit:
            selected = args.submit
        if not selected:
            return payload

        swaps = [result.by_symbol(symbol) for symbol in selected]
        missing = [symbol for symbol, swap in zip(selected, swaps) if swap is None]
        submitter = ExecutionSubmitter.from_settings(settings, ledger)
        outcomes = await submitter.submit_many([s for s in swaps if s is not None], args.wallet, signer)
        payload["submissions"] = [
            {
                "symbol": o.symbol,
                "signature": o.handle.signature if o.handle else None,
                "error": str(o.error) if o.error else None,
            }
            for o in outcomes
        ] + [{"symbol": symbol, "signature": None, "error": "not among ready swaps"} for symbol in missing]
        return payload


def cmd_preview(args: argparse.Namespace) -> int:
    settings = load_settings(args.env_file)
    _setup(settings, args)
    _print_json(asyncio.run(_preview(settings, args)))
    return 0


def cmd_buy(args: argparse.Namespace) -> int:
    if (args.submit or args.submit_all) and not args.keypair:
        print("[ERROR] --submit requires --keypair (transactions must be signed)", file=sys.stderr)
        return 2

    signer = None
    if args.keypair:
        keypair = load_keypair(args.keypair)
        if str(keypair.pubkey()) != args.wallet:
            print(
                f"[ERROR] --keypair belongs to {keypair.pubkey()}, not --wallet {args.wallet}",
                file=sys.stderr,
            )
            return 2
        signer = keypair_signer(keypair)

    settings = load_settings(args.env_file)
    _setup(settings, args)
    payload = asyncio.run(_buy(settings, args, signer))
    _print_json(payload)
    failed = [s for s in payload.get("submissions", []) if s["error"]]
    return 1 if failed else 0


def _setup(settings: SwapSettings, args: argparse.Namespace) -> None:
    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_dir=settings.log_dir,
        json_format=settings.log_json,
    )
    get_registry(settings.token_list_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crate-swap", description="Buy a crate of Solana tokens.")
    parser.add_argument("--env-file", default=None, help="Path to a .env file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    preview_parser = subparsers.add_parser("preview", help="Quote every holding of a crate (read-only).")
    preview_parser.add_argument("crate_id")
    preview_parser.add_argument("--amount", type=float, required=True, help="Total input, e.g. 25 (USDC).")
    preview_parser.set_defaults(func=cmd_preview)

    buy_parser = subparsers.add_parser("buy", help="Quote and simulate swaps, optionally submit.")
    buy_parser.add_argument("crate_id")
    buy_parser.add_argument("--amount", type=float, required=True, help="Total input, e.g. 25 (USDC).")
    buy_parser.add_argument("--wallet", required=True, help="Trader public key.")
    buy_parser.add_argument("--keypair", help="Keypair file used to sign submitted swaps.")
    buy_parser.add_argument("--submit", nargs="+", metavar="SYMBOL", help="Submit these ready swaps.")
    buy_parser.add_argument("--submit-all", action="store_true", help="Submit every ready swap.")
    buy_parser.set_defaults(func=cmd_buy)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except CrateSwapError as e:
        print(f"[ERROR] {e.code}: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
