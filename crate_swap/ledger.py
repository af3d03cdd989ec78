"""Solana RPC access: blockhash, simulation and raw submission with endpoint failover."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.message import Message, MessageV0
from solders.transaction import VersionedTransaction

from crate_swap.config.schema import RpcEndpoint, SwapSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerUnavailable(ConnectionError):
    """Every configured RPC endpoint failed for a call."""


@dataclass
class BlockhashInfo:
    blockhash: Hash
    last_valid_block_height: int
    endpoint: str = ""


@dataclass
class SimulationOutcome:
    err: Optional[str]
    logs: List[str] = field(default_factory=list)
    units_consumed: Optional[int] = None
    endpoint: str = ""

    @property
    def ok(self) -> bool:
        return self.err is None


def with_recent_blockhash(transaction: VersionedTransaction, blockhash: Hash) -> VersionedTransaction:
    """Return a copy of ``transaction`` whose message references ``blockhash``.

    Existing signatures are carried over unchanged; they no longer match the
    new message, so the transaction must be (re)signed before submission.
    """
    message = transaction.message
    if isinstance(message, MessageV0):
        new_message = MessageV0(
            message.header,
            message.account_keys,
            blockhash,
            message.instructions,
            message.address_table_lookups,
        )
    else:
        header = message.header
        new_message = Message.new_with_compiled_instructions(
            header.num_required_signatures,
            header.num_readonly_signed_accounts,
            header.num_readonly_unsigned_accounts,
            message.account_keys,
            blockhash,
            message.instructions,
        )
    return VersionedTransaction.populate(new_message, list(transaction.signatures))


class LedgerClient:
    """
    Stateless Solana RPC adapter shared by concurrent pipelines.

    Reads (blockhash, simulation) try endpoints in order, primary first.
    Submission goes to the primary endpoint only and is never retried.
    """

    def __init__(
        self,
        endpoints: List[RpcEndpoint],
        *,
        timeout_seconds: float = 10.0,
        client_factory: Callable[..., Any] = AsyncClient,
    ):
        if not endpoints:
            raise ValueError("LedgerClient needs at least one RPC endpoint")
        self.endpoints = list(endpoints)
        self.timeout_seconds = timeout_seconds
        self._client_factory = client_factory

    @classmethod
    def from_settings(cls, settings: SwapSettings) -> "LedgerClient":
        return cls(settings.rpc_endpoints, timeout_seconds=settings.request_timeout_seconds)

    def _client(self, endpoint: RpcEndpoint):
        timeout = min(endpoint.timeout_ms / 1000, self.timeout_seconds)
        return self._client_factory(endpoint.url, timeout=timeout)

    async def _with_failover(
        self,
        operation: str,
        call: Callable[[Any], Awaitable[T]],
    ) -> Tuple[T, RpcEndpoint]:
        last_error = None
        for endpoint in self.endpoints:
            try:
                async with self._client(endpoint) as client:
                    result = await asyncio.wait_for(call(client), timeout=self.timeout_seconds)
                return result, endpoint
            except asyncio.TimeoutError:
                last_error = "timeout"
                logger.warning(f"{operation} timed out on {endpoint.name}")
            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.warning(f"{operation} failed on {endpoint.name}: {last_error}")
        raise LedgerUnavailable(f"{operation} failed on all endpoints: {last_error}")

    async def get_latest_blockhash(self) -> BlockhashInfo:
        resp, endpoint = await self._with_failover(
            "getLatestBlockhash", lambda client: client.get_latest_blockhash()
        )
        if resp is None or resp.value is None:
            raise LedgerUnavailable(f"getLatestBlockhash returned no value from {endpoint.name}")
        logger.debug(f"Got blockhash from {endpoint.name}: {str(resp.value.blockhash)[:16]}...")
        return BlockhashInfo(
            blockhash=resp.value.blockhash,
            last_valid_block_height=resp.value.last_valid_block_height,
            endpoint=endpoint.name,
        )

    async def simulate(self, transaction: VersionedTransaction) -> SimulationOutcome:
        """Dry-run a transaction. Signatures are not verified."""
        resp, endpoint = await self._with_failover(
            "simulateTransaction",
            lambda client: client.simulate_transaction(transaction, sig_verify=False),
        )
        value = resp.value if resp is not None else None
        if value is None:
            raise LedgerUnavailable(f"simulateTransaction returned no value from {endpoint.name}")
        return SimulationOutcome(
            err=str(value.err) if value.err is not None else None,
            logs=list(value.logs or []),
            units_consumed=value.units_consumed,
            endpoint=endpoint.name,
        )

    async def send_raw_transaction(self, raw: bytes) -> Tuple[str, str]:
        """Send serialized bytes to the primary endpoint.

        Returns:
            (signature, endpoint name)
        """
        endpoint = self.endpoints[0]
        opts = TxOpts(skip_preflight=False, preflight_commitment=Confirmed, max_retries=0)
        async with self._client(endpoint) as client:
            resp = await asyncio.wait_for(
                client.send_raw_transaction(raw, opts=opts), timeout=self.timeout_seconds
            )
        if resp is None or resp.value is None:
            raise LedgerUnavailable(f"sendTransaction returned no signature from {endpoint.name}")
        return str(resp.value), endpoint.name
