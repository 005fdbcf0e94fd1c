"""
Test suite for PriceOracle and its price providers.
Tests: 1) Provider fallback order 2) Cache and fallbacks 3) Chainlink / CoinGecko parsing 4) Gas price
"""
import asyncio
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from gasless_relay.config import DEFAULT_ETH_USD_FEED
from gasless_relay.engine.exceptions import PriceUnavailableError
from gasless_relay.fees import (
    DEFAULT_GAS_PRICE_WEI,
    FALLBACK_ETH_USD,
    ChainlinkPriceProvider,
    CoinGeckoPriceProvider,
    PriceOracle,
    PriceProvider,
)

from test_mocks import FakeClock, MOCK_NOW, MOCK_USDC_SEPOLIA


class StaticProvider(PriceProvider):

    def __init__(self, price=None, error=None, delay=0.0, name="static"):
        self.price = price
        self.error = error
        self.delay = delay
        self.name = name
        self.calls = 0

    async def get_eth_usd(self) -> float:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.price


# ============================================================================
# Provider chain
# ============================================================================

@pytest.mark.asyncio
async def test_first_successful_provider_wins():
    first, second = StaticProvider(2500.0), StaticProvider(2600.0)
    oracle = PriceOracle([first, second], clock=FakeClock())

    assert await oracle.get_eth_to_usd_price() == 2500.0
    assert second.calls == 0


@pytest.mark.asyncio
async def test_failing_provider_falls_through():
    first = StaticProvider(error=PriceUnavailableError("stale"))
    second = StaticProvider(2600.0)
    oracle = PriceOracle([first, second], clock=FakeClock())

    assert await oracle.get_eth_to_usd_price() == 2600.0
    assert first.calls == 1


@pytest.mark.asyncio
async def test_slow_provider_times_out():
    slow = StaticProvider(2500.0, delay=1.0)
    fast = StaticProvider(2600.0)
    oracle = PriceOracle([slow, fast], timeout=0.05, clock=FakeClock())

    assert await oracle.get_eth_to_usd_price() == 2600.0


# ============================================================================
# Cache and fallbacks
# ============================================================================

@pytest.mark.asyncio
async def test_price_is_cached_for_ttl():
    clock = FakeClock()
    provider = StaticProvider(2500.0)
    oracle = PriceOracle([provider], cache_ttl=30, clock=clock)

    await oracle.get_eth_to_usd_price()
    clock.advance(29)
    provider.price = 2700.0
    assert await oracle.get_eth_to_usd_price() == 2500.0
    assert provider.calls == 1

    clock.advance(1)
    assert await oracle.get_eth_to_usd_price() == 2700.0
    assert provider.calls == 2


@pytest.mark.asyncio
async def test_stale_cache_used_when_all_providers_fail():
    clock = FakeClock()
    provider = StaticProvider(2500.0)
    oracle = PriceOracle([provider], cache_ttl=30, clock=clock)
    await oracle.get_eth_to_usd_price()

    clock.advance(600)
    provider.error = RuntimeError("down")

    assert await oracle.get_eth_to_usd_price() == 2500.0


@pytest.mark.asyncio
async def test_constant_fallback_without_cache():
    oracle = PriceOracle([StaticProvider(error=RuntimeError("down"))], clock=FakeClock())

    assert await oracle.get_eth_to_usd_price() == FALLBACK_ETH_USD == 3000.0


@pytest.mark.asyncio
async def test_token_price_and_gas_limit_are_static():
    oracle = PriceOracle()

    assert await oracle.get_token_to_usd_price(MOCK_USDC_SEPOLIA) == 1.0
    assert await oracle.estimate_gas_limit(MOCK_USDC_SEPOLIA, 1) == 135_000
    assert await oracle.estimate_gas_limit(MOCK_USDC_SEPOLIA, 10**30) == 135_000


# ============================================================================
# Gas price
# ============================================================================

def create_mock_web3(gas_price=None, error=None):
    async def _gas_price():
        if error is not None:
            raise error
        return gas_price

    web3 = Mock()
    web3.eth.gas_price = _gas_price()
    return web3


@pytest.mark.asyncio
async def test_gas_price_from_node():
    oracle = PriceOracle(web3=create_mock_web3(gas_price=35 * 10**9))

    assert await oracle.get_gas_price() == 35 * 10**9


@pytest.mark.asyncio
async def test_gas_price_fallbacks():
    assert await PriceOracle().get_gas_price() == DEFAULT_GAS_PRICE_WEI
    assert await PriceOracle(web3=create_mock_web3(error=ConnectionError())).get_gas_price() == 20 * 10**9
    assert await PriceOracle(web3=create_mock_web3(gas_price=0)).get_gas_price() == 20 * 10**9


# ============================================================================
# Chainlink
# ============================================================================

def create_chainlink(answer, updated_at, clock=None):
    contract = Mock()
    contract.functions.latestRoundData.return_value.call = AsyncMock(
        return_value=(110, answer, updated_at, updated_at, 110)
    )
    web3 = Mock()
    web3.eth.contract.return_value = contract
    return ChainlinkPriceProvider(web3, DEFAULT_ETH_USD_FEED, clock=clock or FakeClock())


@pytest.mark.asyncio
async def test_chainlink_scales_eight_decimals():
    provider = create_chainlink(2_512_34000000, MOCK_NOW - 60)

    assert await provider.get_eth_usd() == pytest.approx(2512.34)


@pytest.mark.asyncio
async def test_chainlink_rejects_stale_answer():
    provider = create_chainlink(2_500_00000000, MOCK_NOW - 3601)

    with pytest.raises(PriceUnavailableError):
        await provider.get_eth_usd()


@pytest.mark.asyncio
async def test_chainlink_rejects_non_positive_answer():
    provider = create_chainlink(0, MOCK_NOW)

    with pytest.raises(PriceUnavailableError):
        await provider.get_eth_usd()


# ============================================================================
# CoinGecko
# ============================================================================

def create_coingecko(status_code=200, body=None):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=body if body is not None else {})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CoinGeckoPriceProvider(client), requests


@pytest.mark.asyncio
async def test_coingecko_parses_price():
    provider, requests = create_coingecko(body={"ethereum": {"usd": 2488.12}})

    assert await provider.get_eth_usd() == 2488.12
    assert requests[0].url.params["ids"] == "ethereum"
    assert requests[0].url.params["vs_currencies"] == "usd"


@pytest.mark.asyncio
async def test_coingecko_errors():
    for status_code, body in [(429, {}), (200, {"bitcoin": {}}), (200, {"ethereum": {"usd": 0}})]:
        provider, _ = create_coingecko(status_code, body)
        with pytest.raises(PriceUnavailableError):
            await provider.get_eth_usd()
