"""
Relay Fee Calculator

The required fee for one relay is the sum of two independently rounded parts:

    gas component         floor(gas_limit * gas_price / 1e18 * eth_usd * 10**decimals)
    percentage component  floor(transfer_amount * bps / 10000)

Gas cost is converted to token units assuming the token is a USD stablecoin
(1 token == 1 USD). USD figures are informational; settlement uses token
units only.
"""

import asyncio
import logging
from decimal import ROUND_FLOOR, Decimal

from ..engine.exceptions import CalculationError
from ..logs import get_logger, log_event
from ..schemas.fees import FeeBreakdown, FeeValidation, GasEstimation
from .oracle import PriceOracle

LOGGER = get_logger(__name__)

WEI_PER_ETH = Decimal(10) ** 18
BPS_DENOMINATOR = 10_000
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def percentage_fee(transfer_amount: int, bps: int) -> int:
    """``floor(transfer_amount * bps / 10000)`` in exact integer arithmetic."""
    return transfer_amount * bps // BPS_DENOMINATOR


class FeeCalculator:
    """
    Computes the fee a relay must carry.

    Example:
        calculator = FeeCalculator(PriceOracle())
        breakdown = await calculator.calculate_required_fee(token, 1_000_000, 6)
        breakdown.total_fee_token_units
    """

    def __init__(self, oracle: PriceOracle, percentage_fee_bps: int = 100) -> None:
        self.oracle = oracle
        self.percentage_fee_bps = percentage_fee_bps

    async def calculate_required_fee(
        self,
        token_address: str,
        transfer_amount: int,
        token_decimals: int = 6,
    ) -> FeeBreakdown:
        """
        Fee breakdown for moving ``transfer_amount`` smallest units of a token.

        Raises:
            CalculationError: An oracle input could not be obtained.
        """
        try:
            eth_usd, gas_price, gas_limit = await asyncio.gather(
                self.oracle.get_eth_to_usd_price(),
                self.oracle.get_gas_price(),
                self.oracle.estimate_gas_limit(token_address, transfer_amount),
            )
        except Exception as e:
            log_event(LOGGER, logging.ERROR, "Error calculating fees", exc_info=True,
                      tokenAddress=token_address, transferAmount=str(transfer_amount))
            raise CalculationError(f"Failed to calculate fees: {e}") from e

        unit = Decimal(10) ** token_decimals
        gas_cost_usd_exact = Decimal(gas_limit * gas_price) / WEI_PER_ETH * Decimal(str(eth_usd))
        gas_cost_token_units = int((gas_cost_usd_exact * unit).to_integral_value(rounding=ROUND_FLOOR))

        percentage_fee_token_units = percentage_fee(transfer_amount, self.percentage_fee_bps)
        percentage_fee_usd = float(Decimal(percentage_fee_token_units) / unit)

        gas_cost_usd = float(gas_cost_usd_exact)
        return FeeBreakdown(
            gas_cost_usd=gas_cost_usd,
            gas_cost_token_units=gas_cost_token_units,
            percentage_fee_usd=percentage_fee_usd,
            percentage_fee_token_units=percentage_fee_token_units,
            total_fee_usd=gas_cost_usd + percentage_fee_usd,
            total_fee_token_units=gas_cost_token_units + percentage_fee_token_units,
        )

    async def estimate_gas_cost(self, transfer_amount: int) -> GasEstimation:
        """Gas limit, gas price and their product for one relay."""
        try:
            gas_price, gas_limit = await asyncio.gather(
                self.oracle.get_gas_price(),
                self.oracle.estimate_gas_limit(ZERO_ADDRESS, transfer_amount),
            )
        except Exception as e:
            raise CalculationError(f"Failed to estimate gas cost: {e}",
                                   public_message="Failed to estimate gas cost") from e

        gas_cost_wei = gas_limit * gas_price
        return GasEstimation(
            gas_limit=gas_limit,
            gas_price=gas_price,
            gas_cost_wei=gas_cost_wei,
            gas_cost_eth=float(Decimal(gas_cost_wei) / WEI_PER_ETH),
        )

    async def validate_transfer_fee(
        self,
        provided_fee: int,
        transfer_amount: int,
        token_decimals: int = 6,
    ) -> FeeValidation:
        """Compare ``provided_fee`` with the required fee."""
        breakdown = await self.calculate_required_fee(ZERO_ADDRESS, transfer_amount, token_decimals)
        required = breakdown.total_fee_token_units
        return FeeValidation(
            is_valid=provided_fee >= required,
            required_fee=required,
            shortfall=max(required - provided_fee, 0),
            breakdown=breakdown,
        )
