from .oracle import (
    PriceOracle,
    PriceProvider,
    ChainlinkPriceProvider,
    CoinGeckoPriceProvider,
    FALLBACK_ETH_USD,
    DEFAULT_GAS_PRICE_WEI,
)
from .calculator import FeeCalculator, percentage_fee

__all__ = [
    "PriceOracle",
    "PriceProvider",
    "ChainlinkPriceProvider",
    "CoinGeckoPriceProvider",
    "FALLBACK_ETH_USD",
    "DEFAULT_GAS_PRICE_WEI",
    "FeeCalculator",
    "percentage_fee",
]
