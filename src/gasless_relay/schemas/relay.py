"""
Relay Request/Response Schema Models

Wire models for ``POST /relay``. Integer quantities travel as decimal-digit
strings (uint256 does not fit a JSON number); the ``*_value`` properties give
the parsed integers.

Flow:
    1. Client signs a ``MetaTransfer`` (EIP-712) and an EIP-2612 permit for
       ``amount + fee`` towards the relayer contract
    2. Client posts a ``RelayRequest``
    3. Server answers with a ``RelayResponse`` carrying the pending tx hash
"""

from typing import Any, Dict, Optional

from pydantic import Field, field_validator

from .bases import Address, Bytes32Hex, CanonicalModel, HexString, TxHash, UintString

MAX_UINT256 = 2**256 - 1


def _check_uint256(value: str) -> str:
    if int(value) > MAX_UINT256:
        raise ValueError("value exceeds uint256 range")
    return value


class MetaTransfer(CanonicalModel):
    """
    Off-chain signed instruction letting the relayer move ``amount`` of
    ``token`` from ``owner`` to ``recipient`` and collect ``fee``.

    Attributes:
        owner: Token owner and signer of the meta-transfer.
        token: ERC-20 token contract address.
        recipient: Destination address.
        amount: Transfer amount in the token's smallest unit (must be > 0).
        fee: Relay fee in the token's smallest unit.
        deadline: Unix timestamp after which the instruction is void.
        nonce: Owner's relayer-contract nonce the signature commits to.
    """

    owner: Address
    token: Address
    recipient: Address
    amount: UintString
    fee: UintString
    deadline: UintString
    nonce: UintString

    @field_validator("amount", "fee", "deadline", "nonce")
    @classmethod
    def _within_uint256(cls, value: str) -> str:
        return _check_uint256(value)

    @field_validator("amount")
    @classmethod
    def _positive_amount(cls, value: str) -> str:
        if int(value) <= 0:
            raise ValueError("amount must be greater than 0")
        return value

    @property
    def amount_value(self) -> int:
        return int(self.amount)

    @property
    def fee_value(self) -> int:
        return int(self.fee)

    @property
    def deadline_value(self) -> int:
        return int(self.deadline)

    @property
    def nonce_value(self) -> int:
        return int(self.nonce)

    @property
    def total_value(self) -> int:
        """Amount the permit must cover: ``amount + fee``."""
        return self.amount_value + self.fee_value

    def to_message(self) -> Dict[str, Any]:
        """EIP-712 message dict with integer fields."""
        return {
            "owner": self.owner,
            "token": self.token,
            "recipient": self.recipient,
            "amount": self.amount_value,
            "fee": self.fee_value,
            "deadline": self.deadline_value,
            "nonce": self.nonce_value,
        }


class PermitData(CanonicalModel):
    """
    EIP-2612 permit signed by the owner for the relayer contract.

    Attributes:
        value: Approved amount (``amount + fee``).
        deadline: Permit expiry (Unix timestamp).
        v: ECDSA recovery ID (27 or 28).
        r: Signature r component (32 bytes hex).
        s: Signature s component (32 bytes hex).
    """

    value: UintString
    deadline: UintString
    v: int = Field(..., ge=27, le=28)
    r: Bytes32Hex
    s: Bytes32Hex

    @field_validator("value", "deadline")
    @classmethod
    def _within_uint256(cls, value: str) -> str:
        return _check_uint256(value)

    @field_validator("v", mode="before")
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("v must be an integer")
        return value

    def to_struct(self) -> tuple:
        """ABI tuple ``(value, deadline, v, r, s)`` for the contract call."""
        return (
            int(self.value),
            int(self.deadline),
            self.v,
            bytes.fromhex(self.r[2:]),
            bytes.fromhex(self.s[2:]),
        )


class RelayRequest(CanonicalModel):
    """Body of ``POST /relay``."""

    meta_transfer: MetaTransfer
    permit_data: PermitData
    signature: HexString
    recaptcha_token: str = Field(..., min_length=1)


class RelayResponse(CanonicalModel):
    """Result of ``POST /relay``."""

    success: bool
    tx_hash: Optional[TxHash] = None
    error: Optional[str] = None
