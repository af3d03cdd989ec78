"""Tests for keypair loading and signing hooks."""

import json

import base58
import pytest
from solders.message import to_bytes_versioned

from crate_swap.errors import ConfigurationError
from crate_swap.wallet import keypair_signer, load_keypair
from tests.conftest import make_unsigned_tx


def test_load_solana_keygen_json(tmp_path, trader):
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(bytes(trader))))
    assert load_keypair(path).pubkey() == trader.pubkey()


def test_load_base58_secret(tmp_path, trader):
    path = tmp_path / "id.b58"
    path.write_text(base58.b58encode(bytes(trader)).decode() + "\n")
    assert load_keypair(path).pubkey() == trader.pubkey()


def test_missing_keypair_file(tmp_path):
    with pytest.raises(ConfigurationError, match="Cannot read"):
        load_keypair(tmp_path / "missing.json")


@pytest.mark.parametrize("content", ["[1, 2, 3]", "not-base58-0OIl", "[\"x\"]"])
def test_invalid_keypair_file(tmp_path, content):
    path = tmp_path / "id.json"
    path.write_text(content)
    with pytest.raises(ConfigurationError):
        load_keypair(path)


def test_signer_signs_current_message(trader):
    tx = make_unsigned_tx(trader.pubkey())
    signed = keypair_signer(trader)(tx)

    assert signed.message == tx.message
    assert signed.signatures[0] == trader.sign_message(to_bytes_versioned(tx.message))
    assert signed.signatures[0] != tx.signatures[0]
