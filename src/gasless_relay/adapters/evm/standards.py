from dataclasses import dataclass, field
from typing import Any, Dict, List

#: EIP-712 domain name and version of the relayer contract.
RELAYER_DOMAIN_NAME = "GaslessRelayer"
RELAYER_DOMAIN_VERSION = "1"

_EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Used to prevent signature replay across domains.
    """
    name: str
    version: str
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


def relayer_domain(chain_id: int, relayer_contract: str) -> EIP712Domain:
    """Domain the relayer contract verifies meta-transfer signatures against."""
    return EIP712Domain(
        name=RELAYER_DOMAIN_NAME,
        version=RELAYER_DOMAIN_VERSION,
        chainId=chain_id,
        verifyingContract=relayer_contract,
    )


# -----------------------------
# MetaTransfer (relayer contract)
# -----------------------------

@dataclass
class MetaTransferMessage:
    """
    Message payload of the relayer's ``MetaTransfer`` primary type.

    All integer fields are uint256 and must be Python ints for signing.
    """
    owner: str
    token: str
    recipient: str
    amount: int
    fee: int
    deadline: int
    nonce: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "token": self.token,
            "recipient": self.recipient,
            "amount": self.amount,
            "fee": self.fee,
            "deadline": self.deadline,
            "nonce": self.nonce,
        }


@dataclass
class MetaTransferTypedData:
    """
    Container for relayer ``MetaTransfer`` typed data usable with EIP-712
    signing routines.

    ``to_dict()`` produces the ``{types, primaryType, domain, message}``
    layout accepted by ``eth_account`` and ``eth_signTypedData_v4``.
    """
    domain: EIP712Domain
    message: MetaTransferMessage

    primary_type: str = "MetaTransfer"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "EIP712Domain": list(_EIP712_DOMAIN_TYPE),
            "MetaTransfer": [
                {"name": "owner", "type": "address"},
                {"name": "token", "type": "address"},
                {"name": "recipient", "type": "address"},
                {"name": "amount", "type": "uint256"},
                {"name": "fee", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
                {"name": "nonce", "type": "uint256"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }


# -----------------------------
# Permit Message (EIP-2612)
# -----------------------------

@dataclass
class PermitMessage:
    """
    Permit message as defined in EIP-2612.
    Represents token allowance authorization.
    """
    owner: str
    spender: str
    value: int
    nonce: int
    deadline: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "spender": self.spender,
            "value": self.value,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }


@dataclass
class PermitTypedData:
    """EIP-2612 ``Permit`` typed data; the domain is the token's own."""
    domain: EIP712Domain
    message: PermitMessage

    primary_type: str = "Permit"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "EIP712Domain": list(_EIP712_DOMAIN_TYPE),
            "Permit": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }
