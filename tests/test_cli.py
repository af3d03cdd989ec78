"""Tests for the crate-swap command line."""

import argparse
import json
from decimal import Decimal
from unittest.mock import patch

import pytest
from solders.keypair import Keypair

from crate_cli.main import _preview, _quote_amounts, build_parser, main
from crate_swap.basket_api import BasketClient
from crate_swap.config import SwapSettings, USDC_MINT
from crate_swap.errors import BasketFetchFailed
from crate_swap.jupiter import JupiterClient
from crate_swap.models import PriceQuote
from tests.conftest import BONK_MINT, SOL_MINT, FakeResponse, quote_payload


def test_preview_arguments():
    args = build_parser().parse_args(["preview", "crate-1", "--amount", "25"])
    assert args.command == "preview"
    assert args.crate_id == "crate-1"
    assert args.amount == 25.0


def test_buy_arguments():
    args = build_parser().parse_args([
        "buy", "crate-1", "--amount", "10", "--wallet", "Trader1",
        "--keypair", "id.json", "--submit", "SOL", "JUP",
    ])
    assert args.wallet == "Trader1"
    assert args.submit == ["SOL", "JUP"]
    assert args.submit_all is False


def test_command_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_submit_without_keypair_exits_2(capsys):
    code = main(["buy", "crate-1", "--amount", "10", "--wallet", "Trader1", "--submit-all"])
    assert code == 2
    assert "--keypair" in capsys.readouterr().err


def test_keypair_must_match_wallet(tmp_path, capsys):
    signer = Keypair()
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(bytes(signer))))
    wallet = str(Keypair().pubkey())

    with patch("crate_cli.main.load_settings") as load_settings:
        code = main(["buy", "crate-1", "--amount", "10", "--wallet", wallet, "--keypair", str(path)])

    assert code == 2
    assert str(signer.pubkey()) in capsys.readouterr().err
    load_settings.assert_not_called()


def test_unreadable_keypair_exits_1(tmp_path, capsys):
    code = main([
        "buy", "crate-1", "--amount", "10", "--wallet", "Trader1", "--keypair", str(tmp_path / "missing.json"),
    ])
    assert code == 1
    assert "CFG_001" in capsys.readouterr().err


def test_domain_errors_exit_1(capsys):
    with patch("crate_cli.main.load_settings", side_effect=BasketFetchFailed("HTTP 404", "crate-1", 404)):
        code = main(["preview", "crate-1", "--amount", "1"])

    assert code == 1
    assert "EXT_001" in capsys.readouterr().err


def test_quote_amounts_in_token_units():
    price = PriceQuote.from_response(
        quote_payload(USDC_MINT, BONK_MINT, amount=2_500_000, out_amount=123_456_789), 50
    )

    amounts = _quote_amounts(price, input_decimals=6, output_decimals=5)

    assert Decimal(amounts["amount_in"]) == Decimal("2.5")
    assert Decimal(amounts["expected_out"]) == Decimal("1234.56789")
    assert Decimal(amounts["minimum_out"]) < Decimal(amounts["expected_out"])


CRATE = {
    "id": "crate-1",
    "name": "Majors",
    "tokens": [
        {"id": "t1", "symbol": "SOL", "name": "Solana", "quantity": 60},
        {"id": "t2", "symbol": "BONK", "name": "Bonk", "quantity": 40},
    ],
}


@pytest.mark.asyncio
async def test_preview_quotes_without_touching_the_ledger(fake_session, fast_retry):
    fake_session.add("GET", "/crates/crate-1", FakeResponse(payload=CRATE))
    fake_session.add(
        "GET", "/quote",
        FakeResponse(payload=quote_payload(output_mint=BONK_MINT, amount=400_000, out_amount=250_000_000)),
        when={"outputMint": BONK_MINT},
    )
    fake_session.add(
        "GET", "/quote",
        FakeResponse(payload=quote_payload(output_mint=SOL_MINT, amount=600_000, out_amount=4_000_000)),
    )
    settings = SwapSettings()
    args = argparse.Namespace(crate_id="crate-1", amount=1.0)

    with patch("crate_cli.main.BasketClient.from_settings",
               return_value=BasketClient("http://backend.test", session=fake_session)), \
            patch("crate_cli.main.JupiterClient.from_settings",
                  return_value=JupiterClient("https://jup.test/swap/v1", session=fake_session,
                                             retry_policy=fast_retry)), \
            patch("crate_cli.main.LedgerClient") as ledger:
        payload = await _preview(settings, args)

    ledger.assert_not_called()
    assert payload["amount_base_units"] == 1_000_000
    assert payload["summary"] == "2 of 2 assets quoted"
    quotes = {q["symbol"]: q for q in payload["quotes"]}
    # SOL has 9 decimals, BONK 5
    assert Decimal(quotes["SOL"]["expected_out"]) == Decimal("0.004")
    assert Decimal(quotes["BONK"]["expected_out"]) == Decimal("2500")
    assert Decimal(quotes["SOL"]["amount_in"]) == Decimal("0.6")
