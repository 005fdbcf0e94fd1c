"""
Abstract Base Class for the Relayer Contract Boundary

Defines the interface the admission pipeline and the HTTP endpoints use to
talk to the deployed relayer contract. The EVM implementation lives in
``adapters.evm.relayer``; tests substitute an in-memory fake.

Core Classes:
    - RelayerContract: Read, verify and submit operations against the relayer
    - ContractLimits / TokenInfo / TransactionStatusInfo: Read results
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal, Optional

from ..schemas.relay import MetaTransfer, PermitData

TransactionState = Literal["pending", "confirmed", "failed"]


@dataclass(frozen=True)
class ContractLimits:
    """Per-transfer maxima configured on the relayer contract (token units)."""
    max_transfer: int
    max_fee: int


@dataclass(frozen=True)
class TokenInfo:
    """Owner's token balance and allowance towards the relayer contract."""
    balance: int
    allowance: int


@dataclass(frozen=True)
class TransactionStatusInfo:
    hash: str
    status: TransactionState
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    confirmations: Optional[int] = None


class RelayerContract(ABC):
    """
    Abstract Base Class for relayer contract access.

    Every method raises ``NotConfiguredError`` when the connection parameters
    it needs are missing. Read failures raise ``BlockchainInteractionError``;
    submission failures raise ``TransactionExecutionError``.

    Example Implementation:
        class EVMRelayerContract(RelayerContract):
            # web3.py implementation
            pass
    """

    @property
    @abstractmethod
    def address(self) -> Optional[str]:
        """Relayer contract address, if configured."""

    @property
    @abstractmethod
    def chain_id(self) -> int:
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """True when the contract can be both read and submitted to."""

    @abstractmethod
    async def is_paused(self) -> bool:
        ...

    @abstractmethod
    async def is_token_whitelisted(self, token: str) -> bool:
        ...

    @abstractmethod
    async def is_recipient_allowed(self, recipient: str) -> bool:
        """
        Externally owned accounts (no code) are always allowed; contracts
        must be explicitly allowed by the relayer.
        """

    @abstractmethod
    async def get_limits(self) -> ContractLimits:
        ...

    @abstractmethod
    async def get_user_nonce(self, owner: str) -> int:
        ...

    @abstractmethod
    async def get_token_info(self, token: str, owner: str) -> TokenInfo:
        """Balance of ``owner`` and its allowance towards the relayer contract."""

    @abstractmethod
    async def get_fee_wallet(self) -> str:
        ...

    @abstractmethod
    def verify_signature(self, meta_transfer: MetaTransfer, signature: str) -> bool:
        """
        Recover the EIP-712 signer of ``meta_transfer`` and compare it with
        the owner (case-insensitive).

        Returns:
            False on mismatch or on any decoding failure; never raises.
        """

    @abstractmethod
    async def execute_meta_transfer(
        self,
        meta_transfer: MetaTransfer,
        permit_data: PermitData,
        signature: str,
    ) -> str:
        """
        Submit ``executeMetaTransfer`` and return the pending transaction hash.

        Does not wait for inclusion.
        """

    @abstractmethod
    async def get_transaction_status(self, tx_hash: str) -> Optional[TransactionStatusInfo]:
        """Status of a submitted transaction, or None when the node does not know it."""
