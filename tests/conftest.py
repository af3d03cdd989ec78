"""
crate-swap test configuration

Shared fakes for the Jupiter HTTP API, the crate endpoint and the Solana RPC
client, plus a factory for real (unsigned) solders transactions.
"""

import asyncio
import base64
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from crate_swap.config import RpcEndpoint, USDC_MINT
from crate_swap.models import AssetRef, Basket, Holding, PriceQuote, SwapPlan, SwapQuote
from crate_swap.retry import RetryPolicy
from crate_swap.token_registry import TokenRegistry

SOL_MINT = "So11111111111111111111111111111111111111112"
JUP_MINT = "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


# ==============================================================================
# Transactions
# ==============================================================================

def make_unsigned_tx(payer: Optional[Pubkey] = None) -> VersionedTransaction:
    payer = payer or Keypair().pubkey()
    ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Keypair().pubkey(), lamports=1_000))
    message = MessageV0.try_compile(payer, [ix], [], Hash.default())
    return VersionedTransaction.populate(message, [Signature.default()])


def encode_tx(tx: VersionedTransaction) -> str:
    return base64.b64encode(bytes(tx)).decode()


@pytest.fixture
def trader() -> Keypair:
    return Keypair()


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, jitter=0)


# ==============================================================================
# Fake aiohttp session
# ==============================================================================

class FakeResponse:
    def __init__(self, status: int = 200, payload: Any = None, text: str = ""):
        self.status = status
        self._payload = payload
        self._text = text
        self.headers: Dict[str, str] = {}

    async def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _RaisingContext:
    def __init__(self, exc: BaseException):
        self._exc = exc

    async def __aenter__(self):
        raise self._exc

    async def __aexit__(self, *exc):
        return False


class _DelayedContext:
    def __init__(self, delay: float, response: FakeResponse):
        self._delay = delay
        self._response = response

    async def __aenter__(self):
        await asyncio.sleep(self._delay)
        return self._response

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """
    Minimal stand-in for aiohttp.ClientSession.

    Responses are queued per (method, url suffix), optionally narrowed by
    ``when``: a subset of the query params or JSON body the request must
    carry. Routes are tried in the order added. The last queued item is
    reused once the queue has a single entry left. Items may be FakeResponse,
    an exception (raised on enter), or ("delay", seconds, FakeResponse).
    """

    def __init__(self):
        self.routes: List[List[Any]] = []
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def add(self, method: str, suffix: str, *items, when: Optional[Dict[str, Any]] = None) -> "FakeSession":
        self.routes.append([method, suffix, list(items), when or {}])
        return self

    def _dispatch(self, method: str, url: str, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        sent = kwargs.get("params") or kwargs.get("json") or {}
        for route_method, suffix, queue, when in self.routes:
            if route_method != method or not url.endswith(suffix):
                continue
            if all(sent.get(key) == value for key, value in when.items()):
                item = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(item, BaseException):
                    return _RaisingContext(item)
                if isinstance(item, tuple) and item[0] == "delay":
                    return _DelayedContext(item[1], item[2])
                return item
        raise AssertionError(f"Unexpected request {method} {url}")

    def get(self, url, **kwargs):
        return self._dispatch("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._dispatch("POST", url, **kwargs)

    def calls_to(self, suffix: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["url"].endswith(suffix)]

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


def quote_payload(
    input_mint: str = USDC_MINT,
    output_mint: str = SOL_MINT,
    amount: int = 1_000_000,
    out_amount: int = 5_000_000,
    routes: int = 1,
) -> Dict[str, Any]:
    return {
        "inputMint": input_mint,
        "outputMint": output_mint,
        "inAmount": str(amount),
        "outAmount": str(out_amount),
        "otherAmountThreshold": str(int(out_amount * 0.995)),
        "swapMode": "ExactIn",
        "slippageBps": 50,
        "priceImpactPct": "0.0012",
        "routePlan": [
            {"swapInfo": {"ammKey": f"amm{i}", "label": "Whirlpool"}, "percent": 100}
            for i in range(routes)
        ],
    }


def swap_payload(tx: VersionedTransaction, last_valid: int = 250_000_000) -> Dict[str, Any]:
    return {"swapTransaction": encode_tx(tx), "lastValidBlockHeight": last_valid}


# ==============================================================================
# Fake Solana RPC client
# ==============================================================================

def blockhash_resp(blockhash: Optional[Hash] = None, height: int = 250_000_150):
    return SimpleNamespace(
        value=SimpleNamespace(blockhash=blockhash or Hash.new_unique(), last_valid_block_height=height)
    )


def sim_resp(err: Any = None, logs=None, units: Optional[int] = 42_000):
    return SimpleNamespace(
        value=SimpleNamespace(err=err, logs=list(logs or []), units_consumed=units)
    )


def send_resp(signature: Optional[Signature] = None):
    return SimpleNamespace(value=signature or Signature.new_unique())


class FakeRpcClient:
    """Stand-in for solana.rpc.async_api.AsyncClient with queued results."""

    def __init__(self, blockhashes=None, simulations=None, sends=None):
        self.blockhashes = list(blockhashes or [blockhash_resp()])
        self.simulations = list(simulations or [sim_resp()])
        self.sends = list(sends or [send_resp()])
        self.simulated: List[VersionedTransaction] = []
        self.sent: List[bytes] = []
        self.send_opts: List[Any] = []
        self.blockhash_calls = 0

    @staticmethod
    def _next(queue):
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def get_latest_blockhash(self):
        self.blockhash_calls += 1
        return self._next(self.blockhashes)

    async def simulate_transaction(self, tx, sig_verify=False, commitment=None):
        self.simulated.append(tx)
        return self._next(self.simulations)

    async def send_raw_transaction(self, raw, opts=None):
        self.sent.append(raw)
        self.send_opts.append(opts)
        return self._next(self.sends)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeRpcFactory:
    """client_factory for LedgerClient: maps endpoint url -> FakeRpcClient."""

    def __init__(self, clients: Dict[str, FakeRpcClient]):
        self.clients = clients
        self.opened: List[str] = []

    def __call__(self, url, timeout=None):
        self.opened.append(url)
        return self.clients[url]


PRIMARY = RpcEndpoint(name="primary", url="https://rpc.primary.test")
FALLBACK = RpcEndpoint(name="fallback", url="https://rpc.fallback.test")


# ==============================================================================
# Domain objects
# ==============================================================================

@pytest.fixture
def registry() -> TokenRegistry:
    return TokenRegistry.load()


def make_basket(weights: Dict[str, float], crate_id: str = "crate-1") -> Basket:
    holdings = [
        Holding(id=f"h{i}", symbol=symbol, name=symbol.title(), quantity=weight, crate_id=crate_id)
        for i, (symbol, weight) in enumerate(weights.items())
    ]
    return Basket(id=crate_id, name="Test Crate", holdings=holdings)


def make_plan(symbol: str = "SOL", amount: int = 600_000, address: str = SOL_MINT, decimals: int = 9) -> SwapPlan:
    return SwapPlan(
        symbol=symbol,
        amount=amount,
        input_mint=USDC_MINT,
        asset=AssetRef(symbol=symbol, address=address, decimals=decimals),
    )


def make_swap_quote(symbol: str = "SOL", amount: int = 600_000, tx: Optional[VersionedTransaction] = None) -> SwapQuote:
    plan = make_plan(symbol, amount)
    price = PriceQuote.from_response(quote_payload(output_mint=plan.output_mint, amount=amount), 50)
    return SwapQuote(plan=plan, price=price, transaction=tx or make_unsigned_tx(), last_valid_block_height=1)
