"""
Relayer contract adapters.

``RelayerContract`` is the boundary the admission pipeline talks to;
``EVMRelayerContract`` implements it over web3.py.
"""

from .bases import RelayerContract, ContractLimits, TokenInfo, TransactionStatusInfo
from .evm import EVMRelayerContract

__all__ = [
    "RelayerContract",
    "ContractLimits",
    "TokenInfo",
    "TransactionStatusInfo",
    "EVMRelayerContract",
]
