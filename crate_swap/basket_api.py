"""Client for the crate (basket) data endpoint."""

import asyncio
import logging
from typing import Optional

import aiohttp

from crate_swap.config.schema import SwapSettings
from crate_swap.errors import BasketFetchFailed
from crate_swap.models import Basket

logger = logging.getLogger(__name__)


class BasketClient:
    """Fetches crate definitions from ``GET {backend_url}/crates/{id}``. No retries."""

    def __init__(
        self,
        backend_url: str,
        *,
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.backend_url = backend_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session

    @classmethod
    def from_settings(cls, settings: SwapSettings) -> "BasketClient":
        return cls(settings.backend_url, timeout_seconds=settings.request_timeout_seconds)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BasketClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def fetch_basket(self, crate_id: str) -> Basket:
        """
        Fetch one crate.

        Raises:
            BasketFetchFailed: non-200 response, transport error, timeout or
                a payload that is not a crate
        """
        if not crate_id:
            raise BasketFetchFailed("Crate id is required", crate_id)

        session = await self._get_session()
        url = f"{self.backend_url}/crates/{crate_id}"
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with session.get(url, timeout=timeout) as resp:
                if resp.status != 200:
                    raise BasketFetchFailed(
                        f"Failed to fetch crate {crate_id}: HTTP {resp.status}", crate_id, resp.status
                    )
                data = await resp.json()
        except asyncio.TimeoutError as e:
            raise BasketFetchFailed(f"Timed out fetching crate {crate_id}", crate_id) from e
        except aiohttp.ClientError as e:
            raise BasketFetchFailed(f"Failed to fetch crate {crate_id}: {e}", crate_id) from e
        except ValueError as e:
            raise BasketFetchFailed(f"Crate {crate_id} response is not JSON: {e}", crate_id) from e

        if not isinstance(data, dict):
            raise BasketFetchFailed(f"Crate {crate_id} response is not an object", crate_id, 200)
        try:
            basket = Basket.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise BasketFetchFailed(f"Crate {crate_id} response is malformed: {e}", crate_id, 200) from e

        logger.info(f"Fetched crate {basket.id} ({basket.name}) with {len(basket.holdings)} holdings")
        return basket
