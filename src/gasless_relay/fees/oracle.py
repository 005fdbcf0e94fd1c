"""
ETH/USD Price and Gas Price Oracle

``PriceOracle`` answers the three questions the fee calculator asks: the ETH
price in USD, the current gas price in wei and the gas limit of one relay.

Price lookup tries an ordered chain of providers, each under the same
timeout:

    1. ``ChainlinkPriceProvider``: on-chain aggregator ``latestRoundData``
    2. ``CoinGeckoPriceProvider``: public ``simple/price`` HTTP API

A successful answer is cached for ``cache_ttl`` seconds. When every provider
fails the last cached price is returned, else ``FALLBACK_ETH_USD``. The
oracle never raises.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence, Tuple

import httpx
from web3 import AsyncWeb3

from ..adapters.evm.abi import get_price_feed_abi
from ..engine.exceptions import PriceUnavailableError
from ..logs import get_logger, log_event

LOGGER = get_logger(__name__)

FALLBACK_ETH_USD: float = 3000.0
DEFAULT_GAS_PRICE_WEI: int = 20_000_000_000  # 20 gwei

#: Static relay gas heuristic: ERC-20 transfer + permit + buffer.
BASE_TRANSFER_GAS: int = 65_000
PERMIT_GAS: int = 50_000
GAS_BUFFER: int = 20_000

CHAINLINK_DECIMALS: int = 8
CHAINLINK_MAX_AGE: int = 3600

COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/price"


class PriceProvider(ABC):
    """One source of the ETH/USD price."""

    name: str = "provider"

    @abstractmethod
    async def get_eth_usd(self) -> float:
        """
        Returns:
            Positive ETH price in USD.

        Raises:
            PriceUnavailableError: The source has no usable answer.
        """


class ChainlinkPriceProvider(PriceProvider):
    """Reads a Chainlink ETH/USD aggregator (8 decimal answer)."""

    name = "chainlink"

    def __init__(
        self,
        web3: AsyncWeb3,
        feed_address: str,
        max_age: int = CHAINLINK_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._contract = web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(feed_address),
            abi=get_price_feed_abi(),
        )
        self.max_age = max_age
        self._clock = clock

    async def get_eth_usd(self) -> float:
        _, answer, _, updated_at, _ = await self._contract.functions.latestRoundData().call()
        if int(self._clock()) - int(updated_at) > self.max_age:
            raise PriceUnavailableError(f"Chainlink answer is stale (updatedAt={updated_at})")
        if answer <= 0:
            raise PriceUnavailableError(f"Chainlink answer is not positive ({answer})")
        return answer / 10**CHAINLINK_DECIMALS


class CoinGeckoPriceProvider(PriceProvider):
    """Queries the CoinGecko ``simple/price`` endpoint."""

    name = "coingecko"

    def __init__(self, client: Optional[httpx.AsyncClient] = None, url: str = COINGECKO_URL) -> None:
        self._client = client
        self.url = url

    async def get_eth_usd(self) -> float:
        params = {"ids": "ethereum", "vs_currencies": "usd"}
        headers = {"Accept": "application/json"}
        if self._client is not None:
            response = await self._client.get(self.url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(self.url, params=params, headers=headers)

        if response.status_code != 200:
            raise PriceUnavailableError(f"CoinGecko API error: {response.status_code}")
        try:
            price = float(response.json()["ethereum"]["usd"])
        except (KeyError, TypeError, ValueError) as e:
            raise PriceUnavailableError(f"Unexpected CoinGecko payload: {e}") from e
        if price <= 0:
            raise PriceUnavailableError(f"CoinGecko price is not positive ({price})")
        return price


class PriceOracle:
    """
    Cached ETH/USD price, gas price and gas limit source.

    Attributes:
        providers: Price providers in the order they are tried.
        cache_ttl: Seconds a fetched price stays fresh.
        timeout: Per-provider timeout in seconds.
    """

    def __init__(
        self,
        providers: Sequence[PriceProvider] = (),
        web3: Optional[AsyncWeb3] = None,
        *,
        cache_ttl: float = 30.0,
        timeout: float = 10.0,
        fallback_price: float = FALLBACK_ETH_USD,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.providers: List[PriceProvider] = list(providers)
        self.cache_ttl = cache_ttl
        self.timeout = timeout
        self.fallback_price = fallback_price
        self._web3 = web3
        self._clock = clock
        self._cache: Optional[Tuple[float, float]] = None  # (price, cached_at)

    async def get_eth_to_usd_price(self) -> float:
        """Current ETH price in USD; cached, with stale-cache and constant fallbacks."""
        now = self._clock()
        if self._cache is not None and now - self._cache[1] < self.cache_ttl:
            return self._cache[0]

        for provider in self.providers:
            try:
                price = await asyncio.wait_for(provider.get_eth_usd(), timeout=self.timeout)
            except Exception as e:
                log_event(LOGGER, logging.WARNING, "Price provider failed",
                          provider=provider.name, error=str(e) or type(e).__name__)
                continue
            self._cache = (price, self._clock())
            return price

        if self._cache is not None:
            log_event(LOGGER, logging.WARNING, "All price providers failed, using cached price",
                      price=self._cache[0])
            return self._cache[0]

        log_event(LOGGER, logging.ERROR, "All price providers failed, using fallback price",
                  price=self.fallback_price)
        return self.fallback_price

    async def get_token_to_usd_price(self, token_address: str) -> float:
        """USD price of one whole token. Supported tokens are USD stablecoins."""
        return 1.0

    async def get_gas_price(self) -> int:
        """Node gas price in wei, or 20 gwei without a node or on failure."""
        if self._web3 is None:
            return DEFAULT_GAS_PRICE_WEI
        try:
            gas_price = await asyncio.wait_for(self._web3.eth.gas_price, timeout=self.timeout)
        except Exception as e:
            log_event(LOGGER, logging.WARNING, "Failed to get gas price", error=str(e) or type(e).__name__)
            return DEFAULT_GAS_PRICE_WEI
        return int(gas_price) or DEFAULT_GAS_PRICE_WEI

    async def estimate_gas_limit(self, token_address: str, transfer_amount: int) -> int:
        """Static gas limit of one relay; independent of token and amount."""
        return BASE_TRANSFER_GAS + PERMIT_GAS + GAS_BUFFER
