"""
HTTP Request/Response Schema Models

Envelopes and payloads for the read endpoints and the fee quote. Every
response has the shape ``{"success": bool, "data"?: ..., "error"?: str}``
except ``/calculate-fee`` which carries ``feeBreakdown`` instead of ``data``.
"""

from typing import Literal, Optional

from pydantic import Field

from .bases import Address, CanonicalModel, TokenUnits
from .fees import FeeBreakdown


class ErrorResponse(CanonicalModel):
    success: bool = False
    error: str


# ============================================================================
# GET /status
# ============================================================================

class StatusData(CanonicalModel):
    contract_address: str
    chain_id: int
    is_paused: bool
    max_transfer_amount: TokenUnits
    max_fee_amount: TokenUnits
    fee_wallet: str


# ============================================================================
# GET /token/{address}
# ============================================================================

class TokenInfoData(CanonicalModel):
    address: str
    is_whitelisted: bool
    user_balance: Optional[TokenUnits] = None
    user_allowance: Optional[TokenUnits] = None


# ============================================================================
# GET /user/{address}
# ============================================================================

class UsageStatsData(CanonicalModel):
    request_count: int
    gas_used: TokenUnits
    reset_time: float = Field(..., description="Unix time (seconds) the request window resets")
    gas_reset_time: float = Field(..., description="Unix time (seconds) the gas window resets")


class UserInfoData(CanonicalModel):
    nonce: TokenUnits
    usage_stats: Optional[UsageStatsData] = None
    is_banned: bool


# ============================================================================
# GET /tx/{hash}
# ============================================================================

class TransactionData(CanonicalModel):
    hash: str
    status: Literal["pending", "confirmed", "failed"]
    block_number: Optional[int] = None
    gas_used: Optional[TokenUnits] = None
    confirmations: Optional[int] = None


# ============================================================================
# POST /calculate-fee
# ============================================================================

class FeeQuoteRequest(CanonicalModel):
    """Body of ``POST /calculate-fee``."""

    token_address: Address
    transfer_amount: int = Field(..., description="Smallest token units; must be positive")
    token_decimals: int = Field(..., ge=0, le=36)


class FeeQuoteResponse(CanonicalModel):
    success: bool = True
    fee_breakdown: FeeBreakdown
