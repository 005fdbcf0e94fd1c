"""
Gasless Relay HTTP Client

``RelayClient`` extends ``httpx.AsyncClient`` with typed helpers for every
relay endpoint and with the client half of the relay flow:

    1. Read the relayer contract and the owner's nonce from the service
    2. Quote the fee (unless one is given)
    3. Sign the ``MetaTransfer`` (EIP-712) and the EIP-2612 permit for
       ``amount + fee`` towards the relayer contract
    4. Post the request and poll ``/tx/{hash}`` until it settles
"""

import asyncio
import time
from typing import Any, Dict, Optional

import httpx
from eth_account import Account

from ..adapters.evm.signatures import sign_meta_transfer, sign_permit
from ..engine.exceptions import RelayAPIError
from ..schemas.fees import FeeBreakdown
from ..schemas.https import StatusData, TokenInfoData, TransactionData, UserInfoData
from ..schemas.relay import MetaTransfer, RelayRequest, RelayResponse


class RelayClient(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient for the gasless relay service.

    Fully compatible with httpx.AsyncClient; pass ``base_url`` pointing at
    the service and any other httpx arguments.

    Usage:
        ```python
        async with RelayClient(base_url="http://localhost:3001") as client:
            request = await client.build_relay_request(
                private_key=key, token=usdc, recipient=to,
                amount=1_000_000, token_decimals=6,
                token_name="USD Coin", token_version="2", permit_nonce=0,
            )
            tx_hash = await client.relay(request)
            final = await client.wait_for_transaction(tx_hash)
        ```
    """

    def __init__(self, recaptcha_token: str = "disabled", **kwargs):
        """
        Args:
            recaptcha_token: Token sent with relay requests when none is given
            **kwargs: All standard httpx.AsyncClient arguments
        """
        super().__init__(**kwargs)
        self.recaptcha_token = recaptcha_token

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def get_status(self) -> StatusData:
        body = await self._call("GET", "/status")
        return StatusData.model_validate(body["data"])

    async def get_token_info(self, token: str, user: Optional[str] = None) -> TokenInfoData:
        params = {"user": user} if user else None
        body = await self._call("GET", f"/token/{token}", params=params)
        return TokenInfoData.model_validate(body["data"])

    async def get_user_info(self, address: str) -> UserInfoData:
        body = await self._call("GET", f"/user/{address}")
        return UserInfoData.model_validate(body["data"])

    async def get_transaction(self, tx_hash: str) -> TransactionData:
        body = await self._call("GET", f"/tx/{tx_hash}")
        return TransactionData.model_validate(body["data"])

    async def calculate_fee(self, token: str, amount: int, token_decimals: int) -> FeeBreakdown:
        body = await self._call("POST", "/calculate-fee", json={
            "tokenAddress": token,
            "transferAmount": str(amount),
            "tokenDecimals": token_decimals,
        })
        return FeeBreakdown.model_validate(body["feeBreakdown"])

    async def relay(self, request: RelayRequest) -> str:
        """Submit a signed relay request and return the pending tx hash."""
        body = await self._call("POST", "/relay", json=request.to_json_dict())
        return RelayResponse.model_validate(body).tx_hash

    # =========================================================================
    # Relay Flow
    # =========================================================================

    async def build_relay_request(
        self,
        *,
        private_key: str,
        token: str,
        recipient: str,
        amount: int,
        token_name: str,
        permit_nonce: int,
        token_version: str = "1",
        token_decimals: int = 6,
        fee: Optional[int] = None,
        deadline: Optional[int] = None,
        ttl: int = 3600,
        recaptcha_token: Optional[str] = None,
    ) -> RelayRequest:
        """
        Sign a relay request for ``amount`` of ``token`` to ``recipient``.

        The relayer contract, chain ID and the owner's relayer nonce come from
        the service. The permit approves ``amount + fee`` for the relayer
        contract and shares the meta-transfer deadline.

        Args:
            private_key: Owner key signing both messages
            permit_nonce: Owner's current EIP-2612 nonce on the token
            fee: Relay fee in token units (default: quoted ``totalFeeTokenUnits``)
            deadline: Unix timestamp (default: now + ``ttl``)
        """
        owner = Account.from_key(private_key).address
        status, user = await asyncio.gather(self.get_status(), self.get_user_info(owner))
        if fee is None:
            quote = await self.calculate_fee(token, amount, token_decimals)
            fee = quote.total_fee_token_units
        if deadline is None:
            deadline = int(time.time()) + ttl

        meta_transfer = MetaTransfer(
            owner=owner,
            token=token,
            recipient=recipient,
            amount=str(amount),
            fee=str(fee),
            deadline=str(deadline),
            nonce=str(user.nonce),
        )
        signature = sign_meta_transfer(
            private_key=private_key,
            meta_transfer=meta_transfer,
            chain_id=status.chain_id,
            relayer_contract=status.contract_address,
        )
        permit_data = sign_permit(
            private_key=private_key,
            token=token,
            chain_id=status.chain_id,
            owner=owner,
            spender=status.contract_address,
            value=meta_transfer.total_value,
            nonce=permit_nonce,
            deadline=deadline,
            token_name=token_name,
            token_version=token_version,
        )
        return RelayRequest(
            meta_transfer=meta_transfer,
            permit_data=permit_data,
            signature=signature,
            recaptcha_token=recaptcha_token or self.recaptcha_token,
        )

    async def wait_for_transaction(
        self,
        tx_hash: str,
        timeout: float = 300.0,
        poll_interval: float = 2.0,
    ) -> TransactionData:
        """
        Poll ``/tx/{hash}`` until the transaction is confirmed or failed.

        A 404 while polling means the node has not seen the transaction yet.

        Raises:
            TimeoutError: Still pending after ``timeout`` seconds.
        """
        deadline = time.monotonic() + timeout
        while True:
            try:
                info = await self.get_transaction(tx_hash)
            except RelayAPIError as e:
                if e.status_code != 404:
                    raise
            else:
                if info.status != "pending":
                    return info

            if time.monotonic() >= deadline:
                raise TimeoutError(f"Transaction {tx_hash} still pending after {timeout}s")
            await asyncio.sleep(poll_interval)

    # =========================================================================
    # Utility Methods
    # =========================================================================

    async def _call(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send a request and unwrap the ``{success, ...}`` envelope."""
        response = await self.request(method, url, **kwargs)
        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_success and body.get("success"):
            return body

        retry_after = response.headers.get("retry-after")
        raise RelayAPIError(
            response.status_code,
            body.get("error") or response.reason_phrase,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
        )
