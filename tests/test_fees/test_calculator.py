"""
Test suite for FeeCalculator.
Tests: 1) Gas and percentage components 2) Rounding boundaries 3) Fee validation
"""
from unittest.mock import AsyncMock

import pytest

from gasless_relay.engine.exceptions import CalculationError
from gasless_relay.fees import FeeCalculator, percentage_fee

from test_mocks import MOCK_USDC_SEPOLIA, create_mock_oracle


@pytest.mark.asyncio
async def test_required_fee_breakdown():
    calculator = FeeCalculator(create_mock_oracle(), percentage_fee_bps=100)

    breakdown = await calculator.calculate_required_fee(MOCK_USDC_SEPOLIA, 1_000_000, 6)

    # 135000 gas * 20 gwei = 0.0027 ETH = $8.10 at $3000
    assert breakdown.gas_cost_token_units == 8_100_000
    assert breakdown.percentage_fee_token_units == 10_000
    assert breakdown.total_fee_token_units == 8_110_000
    assert breakdown.gas_cost_usd == pytest.approx(8.1)
    assert breakdown.percentage_fee_usd == pytest.approx(0.01)
    assert breakdown.total_fee_usd == pytest.approx(8.11)


@pytest.mark.asyncio
async def test_breakdown_serializes_units_as_strings():
    calculator = FeeCalculator(create_mock_oracle())

    breakdown = await calculator.calculate_required_fee(MOCK_USDC_SEPOLIA, 1_000_000, 6)
    body = breakdown.to_json_dict()

    assert body["totalFeeTokenUnits"] == "8110000"
    assert body["gasCostTokenUnits"] == "8100000"
    assert isinstance(body["totalFeeUsd"], float)


@pytest.mark.asyncio
async def test_gas_component_is_floored():
    # 1 gas * 1 wei at $3000 with 6 decimals = 3e-9 token units
    calculator = FeeCalculator(create_mock_oracle(gas_price=1, gas_limit=1), percentage_fee_bps=0)

    breakdown = await calculator.calculate_required_fee(MOCK_USDC_SEPOLIA, 1_000_000, 6)

    assert breakdown.gas_cost_token_units == 0
    assert breakdown.total_fee_token_units == 0


@pytest.mark.asyncio
async def test_decimals_scale_gas_component():
    calculator = FeeCalculator(create_mock_oracle(), percentage_fee_bps=0)

    breakdown = await calculator.calculate_required_fee(MOCK_USDC_SEPOLIA, 10**18, 18)

    assert breakdown.gas_cost_token_units == 8_100_000 * 10**12


def test_percentage_fee_boundaries():
    assert percentage_fee(99, 100) == 0
    assert percentage_fee(100, 100) == 1
    assert percentage_fee(199, 100) == 1
    assert percentage_fee(10**30, 100) == 10**28
    assert percentage_fee(12345, 0) == 0


@pytest.mark.asyncio
async def test_oracle_failure_raises_calculation_error():
    oracle = create_mock_oracle()
    oracle.get_gas_price = AsyncMock(side_effect=RuntimeError("rpc down"))
    calculator = FeeCalculator(oracle)

    with pytest.raises(CalculationError) as exc_info:
        await calculator.calculate_required_fee(MOCK_USDC_SEPOLIA, 1_000_000, 6)

    assert exc_info.value.status_code == 500
    assert exc_info.value.public_message == "Failed to calculate fees"


@pytest.mark.asyncio
async def test_estimate_gas_cost():
    calculator = FeeCalculator(create_mock_oracle())

    estimate = await calculator.estimate_gas_cost(1_000_000)

    assert estimate.gas_limit == 135_000
    assert estimate.gas_price == 20 * 10**9
    assert estimate.gas_cost_wei == 2_700_000_000_000_000
    assert estimate.gas_cost_eth == pytest.approx(0.0027)


@pytest.mark.asyncio
async def test_validate_transfer_fee():
    calculator = FeeCalculator(create_mock_oracle())

    short = await calculator.validate_transfer_fee(8_000_000, 1_000_000, 6)
    exact = await calculator.validate_transfer_fee(8_110_000, 1_000_000, 6)

    assert not short.is_valid
    assert short.required_fee == 8_110_000
    assert short.shortfall == 110_000
    assert exact.is_valid
    assert exact.shortfall == 0


@pytest.mark.asyncio
async def test_percentage_component_doubling():
    calculator = FeeCalculator(create_mock_oracle(), percentage_fee_bps=100)

    for amount in (50, 150, 1_000_000, 123_456_789):
        single = await calculator.calculate_required_fee(MOCK_USDC_SEPOLIA, amount, 6)
        double = await calculator.calculate_required_fee(MOCK_USDC_SEPOLIA, 2 * amount, 6)
        assert double.percentage_fee_token_units >= 2 * single.percentage_fee_token_units

    assert percentage_fee(50, 100) == 0 and percentage_fee(100, 100) == 1
    assert percentage_fee(150, 100) == 1 and percentage_fee(300, 100) == 3
