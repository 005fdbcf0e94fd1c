from .bases import (
    CanonicalModel,
    Address,
    TxHash,
    UintString,
    TokenUnits,
    ADDRESS_PATTERN,
    TX_HASH_PATTERN,
    is_address,
    is_tx_hash,
)
from .relay import MetaTransfer, PermitData, RelayRequest, RelayResponse, MAX_UINT256
from .fees import FeeBreakdown, GasEstimation, FeeValidation
from .https import (
    ErrorResponse,
    StatusData,
    TokenInfoData,
    UsageStatsData,
    UserInfoData,
    TransactionData,
    FeeQuoteRequest,
    FeeQuoteResponse,
)

__all__ = [
    "CanonicalModel",
    "Address",
    "TxHash",
    "UintString",
    "TokenUnits",
    "ADDRESS_PATTERN",
    "TX_HASH_PATTERN",
    "is_address",
    "is_tx_hash",
    "MetaTransfer",
    "PermitData",
    "RelayRequest",
    "RelayResponse",
    "MAX_UINT256",
    "FeeBreakdown",
    "GasEstimation",
    "FeeValidation",
    "ErrorResponse",
    "StatusData",
    "TokenInfoData",
    "UsageStatsData",
    "UserInfoData",
    "TransactionData",
    "FeeQuoteRequest",
    "FeeQuoteResponse",
]
