"""
Fee Schema Models

Derived, never-persisted fee values produced by ``FeeCalculator``. Token-unit
fields are integers in Python and decimal strings on the wire.
"""

from pydantic import Field

from .bases import CanonicalModel, TokenUnits


class FeeBreakdown(CanonicalModel):
    """
    Required relay fee split into its gas and percentage components.

    The USD totals and the token-unit totals are summed independently from
    separately rounded components; only the token-unit values are meant for
    settlement.
    """

    gas_cost_usd: float
    gas_cost_token_units: TokenUnits
    percentage_fee_usd: float
    percentage_fee_token_units: TokenUnits
    total_fee_usd: float
    total_fee_token_units: TokenUnits


class GasEstimation(CanonicalModel):
    """Gas cost estimate for one relay submission."""

    gas_limit: TokenUnits
    gas_price: TokenUnits
    gas_cost_wei: TokenUnits
    gas_cost_eth: float


class FeeValidation(CanonicalModel):
    """Outcome of comparing a user-supplied fee against the required fee."""

    is_valid: bool
    required_fee: TokenUnits
    shortfall: TokenUnits = Field(0, ge=0)
    breakdown: FeeBreakdown
