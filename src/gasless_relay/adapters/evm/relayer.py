"""
EVM Relayer Contract Adapter

web3.py implementation of ``RelayerContract``. Reads admission state from the
deployed relayer contract and its tokens, verifies meta-transfer signatures
locally and submits ``executeMetaTransfer`` signed with the relayer wallet.

Key Features:
    - EIP-712 ``MetaTransfer`` signature recovery (``eth_account``)
    - Contract reads: pause flag, token whitelist, recipient allowlist,
      limits, nonces, fee wallet
    - ERC20 balance/allowance queries towards the relayer contract
    - Gas-estimated, locally signed submission; returns the pending hash
    - Transaction status lookup with confirmation count

Dependencies:
    - web3.py: For blockchain RPC interaction
    - eth_account: For signature recovery and transaction signing
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional

from eth_account import Account
from web3 import AsyncWeb3
from web3.exceptions import ContractCustomError, TransactionNotFound

from ...config import RelaySettings
from ...engine.exceptions import (
    BlockchainInteractionError,
    NotConfiguredError,
    TransactionExecutionError,
)
from ...logs import get_logger, log_event
from ...schemas.relay import MetaTransfer, PermitData
from ..bases import ContractLimits, RelayerContract, TokenInfo, TransactionStatusInfo
from .abi import get_erc20_abi, get_relayer_abi
from .signatures import recover_meta_transfer_signer

LOGGER = get_logger(__name__)

#: Added on top of the node's gas estimate for submission.
GAS_LIMIT_BUFFER: int = 50_000


def _error_selectors() -> dict:
    selectors = {}
    for entry in get_relayer_abi():
        if entry["type"] == "error":
            signature = f"{entry['name']}({','.join(i['type'] for i in entry['inputs'])})"
            selectors["0x" + bytes(AsyncWeb3.keccak(text=signature))[:4].hex()] = entry["name"]
    return selectors


_ERROR_SELECTORS = _error_selectors()


def decode_revert_reason(exc: Exception) -> Optional[str]:
    """Name of the relayer custom error carried by ``exc``, if recognisable."""
    data = getattr(exc, "data", None)
    if not isinstance(data, str) or not data.startswith("0x") or len(data) < 10:
        return None
    return _ERROR_SELECTORS.get(data[:10].lower())


class EVMRelayerContract(RelayerContract):
    """
    Relayer contract adapter over ``AsyncWeb3``.

    Connection parameters are optional at construction so the service can
    start unconfigured (the read endpoints then answer 503). Each method
    checks for the parameters it needs and raises ``NotConfiguredError``.

    Attributes:
        account: Relayer wallet (None without a private key)

    Example:
        contract = EVMRelayerContract.from_settings(RelaySettings.from_env())
        if not await contract.is_paused():
            tx_hash = await contract.execute_meta_transfer(mt, permit, signature)
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        contract_address: Optional[str] = None,
        private_key: Optional[str] = None,
        chain_id: int = 11155111,
        request_timeout: int = 60,
        web3: Optional[AsyncWeb3] = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._chain_id = chain_id
        self._address = AsyncWeb3.to_checksum_address(contract_address) if contract_address else None
        self.account = Account.from_key(private_key) if private_key else None

        if web3 is None and rpc_url:
            web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": request_timeout},
            ))
        self._web3 = web3
        self._contract = (
            web3.eth.contract(address=self._address, abi=get_relayer_abi())
            if web3 is not None and self._address
            else None
        )

    @classmethod
    def from_settings(cls, settings: RelaySettings, web3: Optional[AsyncWeb3] = None) -> "EVMRelayerContract":
        """Build the adapter, ignoring placeholder values from the sample env file."""
        return cls(
            rpc_url=settings.chain_rpc_url if settings.has_rpc() else None,
            contract_address=settings.relayer_contract if settings.has_contract() else None,
            private_key=settings.private_key if settings.has_signer() else None,
            chain_id=settings.chain_id,
            request_timeout=settings.rpc_timeout,
            web3=web3,
        )

    # ==================== Configuration ====================

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def web3(self) -> Optional[AsyncWeb3]:
        return self._web3

    def is_configured(self) -> bool:
        return self._contract is not None and self.account is not None

    def _require_web3(self) -> AsyncWeb3:
        if self._web3 is None:
            raise NotConfiguredError("RPC endpoint not configured")
        return self._web3

    def _require_contract(self):
        if self._contract is None:
            raise NotConfiguredError("Relayer contract not configured")
        return self._contract

    async def _read(self, what: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except Exception as e:
            log_event(LOGGER, logging.ERROR, f"Error {what}", error=str(e))
            raise BlockchainInteractionError(f"Failed {what}: {e}") from e

    # ==================== Reads ====================

    async def is_paused(self) -> bool:
        contract = self._require_contract()
        return bool(await self._read("checking pause status", contract.functions.paused().call()))

    async def is_token_whitelisted(self, token: str) -> bool:
        contract = self._require_contract()
        return bool(await self._read(
            "checking token whitelist",
            contract.functions.isTokenWhitelisted(AsyncWeb3.to_checksum_address(token)).call(),
        ))

    async def is_recipient_allowed(self, recipient: str) -> bool:
        contract = self._require_contract()
        web3 = self._require_web3()
        recipient = AsyncWeb3.to_checksum_address(recipient)

        code = await self._read("checking recipient code", web3.eth.get_code(recipient))
        if not code:
            return True
        return bool(await self._read(
            "checking recipient allowance",
            contract.functions.isRecipientContractAllowed(recipient).call(),
        ))

    async def get_limits(self) -> ContractLimits:
        contract = self._require_contract()
        max_transfer, max_fee = await self._read("getting contract limits", asyncio.gather(
            contract.functions.maxTransferAmount().call(),
            contract.functions.maxFeeAmount().call(),
        ))
        return ContractLimits(max_transfer=int(max_transfer), max_fee=int(max_fee))

    async def get_user_nonce(self, owner: str) -> int:
        contract = self._require_contract()
        return int(await self._read(
            "getting user nonce",
            contract.functions.getNonce(AsyncWeb3.to_checksum_address(owner)).call(),
        ))

    async def get_token_info(self, token: str, owner: str) -> TokenInfo:
        web3 = self._require_web3()
        if self._address is None:
            raise NotConfiguredError("Relayer contract not configured")

        owner = AsyncWeb3.to_checksum_address(owner)
        erc20 = web3.eth.contract(address=AsyncWeb3.to_checksum_address(token), abi=get_erc20_abi())
        balance, allowance = await self._read("getting token information", asyncio.gather(
            erc20.functions.balanceOf(owner).call(),
            erc20.functions.allowance(owner, self._address).call(),
        ))
        return TokenInfo(balance=int(balance), allowance=int(allowance))

    async def get_fee_wallet(self) -> str:
        contract = self._require_contract()
        return await self._read("getting fee wallet", contract.functions.feeWallet().call())

    # ==================== Signature ====================

    def verify_signature(self, meta_transfer: MetaTransfer, signature: str) -> bool:
        if self._address is None:
            raise NotConfiguredError("Relayer contract not configured")
        try:
            recovered = recover_meta_transfer_signer(
                meta_transfer,
                signature,
                chain_id=self._chain_id,
                relayer_contract=self._address,
            )
        except Exception as e:
            log_event(LOGGER, logging.WARNING, "Error verifying signature", error=str(e))
            return False
        return recovered.lower() == meta_transfer.owner.lower()

    # ==================== Submission ====================

    async def execute_meta_transfer(
        self,
        meta_transfer: MetaTransfer,
        permit_data: PermitData,
        signature: str,
    ) -> str:
        contract = self._require_contract()
        web3 = self._require_web3()
        if self.account is None:
            raise NotConfiguredError("Relayer private key not configured")

        meta_struct = (
            AsyncWeb3.to_checksum_address(meta_transfer.owner),
            AsyncWeb3.to_checksum_address(meta_transfer.token),
            AsyncWeb3.to_checksum_address(meta_transfer.recipient),
            meta_transfer.amount_value,
            meta_transfer.fee_value,
            meta_transfer.deadline_value,
            meta_transfer.nonce_value,
        )
        tx_fn = contract.functions.executeMetaTransfer(
            meta_struct,
            permit_data.to_struct(),
            bytes.fromhex(signature[2:]),
        )
        sender = self.account.address

        try:
            gas_estimate = await tx_fn.estimate_gas({"from": sender})
            gas_price, tx_nonce = await asyncio.gather(
                web3.eth.gas_price,
                web3.eth.get_transaction_count(sender, "pending"),
            )
            tx_dict = await tx_fn.build_transaction({
                "from": sender,
                "gas": gas_estimate + GAS_LIMIT_BUFFER,
                "gasPrice": gas_price,
                "nonce": tx_nonce,
                "chainId": self._chain_id,
            })
            signed_tx = self.account.sign_transaction(tx_dict)
            tx_hash = await web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except ContractCustomError as e:
            reason = decode_revert_reason(e)
            log_event(LOGGER, logging.ERROR, "Contract rejected meta transfer", revertReason=reason, error=str(e))
            raise TransactionExecutionError(
                f"Contract error: {reason or 'unknown'}", revert_reason=reason
            ) from e
        except Exception as e:
            log_event(LOGGER, logging.ERROR, "Error executing meta transfer", error=str(e))
            raise TransactionExecutionError(f"Failed to execute meta transfer: {e}") from e

        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        log_event(LOGGER, logging.INFO, "Transaction submitted", txHash=tx_hash_hex)
        return tx_hash_hex

    # ==================== Status ====================

    async def get_transaction_status(self, tx_hash: str) -> Optional[TransactionStatusInfo]:
        web3 = self._require_web3()
        try:
            receipt = await web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            receipt = None
        except Exception as e:
            raise BlockchainInteractionError(f"Failed getting transaction receipt: {e}") from e

        if receipt is None:
            try:
                await web3.eth.get_transaction(tx_hash)
            except TransactionNotFound:
                return None
            except Exception as e:
                raise BlockchainInteractionError(f"Failed getting transaction: {e}") from e
            return TransactionStatusInfo(hash=tx_hash, status="pending")

        current_block = await self._read("getting block number", web3.eth.block_number)
        block_number = receipt["blockNumber"]
        return TransactionStatusInfo(
            hash=tx_hash,
            status="confirmed" if receipt.get("status") == 1 else "failed",
            block_number=block_number,
            gas_used=receipt["gasUsed"],
            confirmations=current_block - block_number + 1,
        )
