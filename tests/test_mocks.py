"""
Relay Test Mocks Module

Shared constants, factories and fakes for the relay test suite. Signatures
are produced with real ``eth_account`` keys so the admission pipeline runs
genuine EIP-712 recovery without a node.

Key Components:
    - Test keys, addresses and chain configuration
    - FakeClock: controllable Unix time source
    - FakeRelayerContract: in-memory ``RelayerContract`` that records calls
    - Factories for signed ``MetaTransfer`` payloads and stub oracles

Usage:
    from test_mocks import FakeRelayerContract, make_relay_payload

    contract = FakeRelayerContract()
    payload = make_relay_payload(amount=1_000_000, fee=10_000)
"""

import itertools
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, Mock

from eth_account import Account
from web3 import AsyncWeb3

from gasless_relay.adapters.bases import (
    ContractLimits,
    RelayerContract,
    TokenInfo,
    TransactionStatusInfo,
)
from gasless_relay.adapters.evm.signatures import (
    recover_meta_transfer_signer,
    sign_meta_transfer,
    sign_permit,
)
from gasless_relay.config import RelaySettings
from gasless_relay.engine.events import Dependencies
from gasless_relay.fees.calculator import FeeCalculator
from gasless_relay.ratelimit.limiter import RateLimiter
from gasless_relay.schemas.relay import MetaTransfer
from gasless_relay.servers.captcha import AllowAllCaptchaVerifier


# ========================================================================
# Mock Blockchain Constants
# ========================================================================

# Test private keys (do not use in production!)
MOCK_OWNER_PRIVATE_KEY = "0x1234567890123456789012345678901234567890123456789012345678901234"
MOCK_OTHER_PRIVATE_KEY = "0x2234567890123456789012345678901234567890123456789012345678901234"
MOCK_RELAYER_PRIVATE_KEY = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcd"

MOCK_OWNER_ADDRESS = Account.from_key(MOCK_OWNER_PRIVATE_KEY).address
MOCK_OTHER_ADDRESS = Account.from_key(MOCK_OTHER_PRIVATE_KEY).address
MOCK_RELAYER_WALLET = Account.from_key(MOCK_RELAYER_PRIVATE_KEY).address

MOCK_RELAYER_CONTRACT = "0x1234567890123456789012345678901234567890"
MOCK_RECIPIENT_ADDRESS = "0x9876543210987654321098765432109876543210"
MOCK_FEE_WALLET = "0x5555555555555555555555555555555555555555"
MOCK_USDC_SEPOLIA = AsyncWeb3.to_checksum_address("0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238")

MOCK_CHAIN_ID_SEPOLIA = 11155111
MOCK_TOKEN_NAME = "USDC"
MOCK_TOKEN_VERSION = "2"

#: Fixed "now" for deterministic deadline and window checks.
MOCK_NOW = 1_700_000_000

MOCK_TX_HASH = "0x" + "ab" * 32


# ========================================================================
# Clock
# ========================================================================

class FakeClock:
    """Callable Unix clock that only moves when told to."""

    def __init__(self, now: float = MOCK_NOW) -> None:
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ========================================================================
# Fake Relayer Contract
# ========================================================================

class FakeRelayerContract(RelayerContract):
    """
    In-memory relayer contract.

    Signature verification is real (EIP-712 recovery); every other read
    comes from plain attributes. Successful submissions bump the owner's
    nonce, so replaying a payload fails the nonce check. ``calls`` records
    the order in which reads happened.
    """

    def __init__(
        self,
        address: Optional[str] = MOCK_RELAYER_CONTRACT,
        chain_id: int = MOCK_CHAIN_ID_SEPOLIA,
    ) -> None:
        self._address = address
        self._chain_id = chain_id
        self.paused = False
        self.whitelisted_tokens = {MOCK_USDC_SEPOLIA.lower()}
        self.contract_recipients: set = set()
        self.allowed_contracts: set = set()
        self.max_transfer = 10**12
        self.max_fee = 10**9
        self.nonces: Dict[str, int] = {}
        self.balances: Dict[Tuple[str, str], int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.fee_wallet = MOCK_FEE_WALLET
        self.transactions: Dict[str, TransactionStatusInfo] = {}
        self.submission_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self.submitted: List[MetaTransfer] = []
        self.calls: List[str] = []
        self._tx_counter = itertools.count(1)

    # ---- test helpers ----

    def fund(self, owner: str, amount: int, token: str = MOCK_USDC_SEPOLIA, allowance: Optional[int] = None) -> None:
        key = (token.lower(), owner.lower())
        self.balances[key] = amount
        self.allowances[key] = amount if allowance is None else allowance

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.read_error is not None:
            raise self.read_error

    # ---- RelayerContract ----

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def chain_id(self) -> int:
        return self._chain_id

    def is_configured(self) -> bool:
        return self._address is not None

    async def is_paused(self) -> bool:
        self._record("is_paused")
        return self.paused

    async def is_token_whitelisted(self, token: str) -> bool:
        self._record("is_token_whitelisted")
        return token.lower() in self.whitelisted_tokens

    async def is_recipient_allowed(self, recipient: str) -> bool:
        self._record("is_recipient_allowed")
        recipient = recipient.lower()
        return recipient not in self.contract_recipients or recipient in self.allowed_contracts

    async def get_limits(self) -> ContractLimits:
        self._record("get_limits")
        return ContractLimits(max_transfer=self.max_transfer, max_fee=self.max_fee)

    async def get_user_nonce(self, owner: str) -> int:
        self._record("get_user_nonce")
        return self.nonces.get(owner.lower(), 0)

    async def get_token_info(self, token: str, owner: str) -> TokenInfo:
        self._record("get_token_info")
        key = (token.lower(), owner.lower())
        return TokenInfo(balance=self.balances.get(key, 0), allowance=self.allowances.get(key, 0))

    async def get_fee_wallet(self) -> str:
        self._record("get_fee_wallet")
        return self.fee_wallet

    def verify_signature(self, meta_transfer: MetaTransfer, signature: str) -> bool:
        self.calls.append("verify_signature")
        try:
            signer = recover_meta_transfer_signer(
                meta_transfer, signature, chain_id=self._chain_id, relayer_contract=self._address
            )
        except Exception:
            return False
        return signer.lower() == meta_transfer.owner.lower()

    async def execute_meta_transfer(self, meta_transfer, permit_data, signature) -> str:
        self.calls.append("execute_meta_transfer")
        if self.submission_error is not None:
            raise self.submission_error
        owner = meta_transfer.owner.lower()
        self.nonces[owner] = self.nonces.get(owner, 0) + 1
        self.submitted.append(meta_transfer)
        tx_hash = "0x" + f"{next(self._tx_counter):064x}"
        self.transactions[tx_hash] = TransactionStatusInfo(hash=tx_hash, status="pending")
        return tx_hash

    async def get_transaction_status(self, tx_hash: str) -> Optional[TransactionStatusInfo]:
        self._record("get_transaction_status")
        return self.transactions.get(tx_hash)


# ========================================================================
# Factories
# ========================================================================

def create_meta_transfer(
    owner: str = MOCK_OWNER_ADDRESS,
    token: str = MOCK_USDC_SEPOLIA,
    recipient: str = MOCK_RECIPIENT_ADDRESS,
    amount: int = 1_000_000,
    fee: int = 10_000,
    deadline: int = MOCK_NOW + 3600,
    nonce: int = 0,
) -> MetaTransfer:
    return MetaTransfer(
        owner=owner,
        token=token,
        recipient=recipient,
        amount=str(amount),
        fee=str(fee),
        deadline=str(deadline),
        nonce=str(nonce),
    )


def make_relay_payload(
    private_key: str = MOCK_OWNER_PRIVATE_KEY,
    *,
    chain_id: int = MOCK_CHAIN_ID_SEPOLIA,
    relayer_contract: str = MOCK_RELAYER_CONTRACT,
    recaptcha_token: str = "captcha-token",
    **meta_overrides: Any,
) -> Dict[str, Any]:
    """
    JSON body of ``POST /relay`` signed by ``private_key``.

    ``meta_overrides`` are passed to ``create_meta_transfer``; the owner
    defaults to the key's address.
    """
    meta_overrides.setdefault("owner", Account.from_key(private_key).address)
    meta_transfer = create_meta_transfer(**meta_overrides)
    signature = sign_meta_transfer(
        private_key=private_key,
        meta_transfer=meta_transfer,
        chain_id=chain_id,
        relayer_contract=relayer_contract,
    )
    permit = sign_permit(
        private_key=private_key,
        token=meta_transfer.token,
        chain_id=chain_id,
        owner=meta_transfer.owner,
        spender=relayer_contract,
        value=meta_transfer.total_value,
        nonce=0,
        deadline=meta_transfer.deadline_value,
        token_name=MOCK_TOKEN_NAME,
        token_version=MOCK_TOKEN_VERSION,
    )
    return {
        "metaTransfer": meta_transfer.to_json_dict(),
        "permitData": permit.to_json_dict(),
        "signature": signature,
        "recaptchaToken": recaptcha_token,
    }


def create_mock_oracle(
    eth_usd: float = 3000.0,
    gas_price: int = 20 * 10**9,
    gas_limit: int = 135_000,
) -> Mock:
    """``PriceOracle`` stand-in with fixed answers."""
    oracle = Mock()
    oracle.get_eth_to_usd_price = AsyncMock(return_value=eth_usd)
    oracle.get_gas_price = AsyncMock(return_value=gas_price)
    oracle.estimate_gas_limit = AsyncMock(return_value=gas_limit)
    return oracle


def create_dependencies(
    contract: Optional[RelayerContract] = None,
    rate_limiter: Optional[RateLimiter] = None,
    captcha: Any = None,
    clock: Optional[FakeClock] = None,
    fee_calculator: Optional[FeeCalculator] = None,
) -> Dependencies:
    clock = clock or FakeClock()
    return Dependencies(
        contract=contract or FakeRelayerContract(),
        rate_limiter=rate_limiter or RateLimiter(clock=clock),
        captcha=captcha or AllowAllCaptchaVerifier(),
        fee_calculator=fee_calculator or FeeCalculator(create_mock_oracle()),
        settings=RelaySettings(),
        clock=clock,
    )
