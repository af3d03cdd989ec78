"""Signing hooks for submitting validated swaps.

Key custody is outside this package: callers hand in a keypair (or any
callable that signs a VersionedTransaction).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Union

import base58
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from crate_swap.errors import ConfigurationError

Signer = Callable[[VersionedTransaction], VersionedTransaction]


def load_keypair(path: Union[str, Path]) -> Keypair:
    """Load a keypair from a solana-keygen JSON array or a base58 secret file."""
    key_path = Path(path).expanduser()
    try:
        content = key_path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigurationError(f"Cannot read keypair {key_path}: {e}")

    try:
        if content.startswith("["):
            return Keypair.from_bytes(bytes(json.loads(content)))
        return Keypair.from_bytes(base58.b58decode(content))
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Invalid keypair file {key_path}: {e}")


def keypair_signer(keypair: Keypair) -> Signer:
    """Signer that signs a transaction's current message with ``keypair``."""

    def sign(transaction: VersionedTransaction) -> VersionedTransaction:
        return VersionedTransaction(transaction.message, [keypair])

    return sign
