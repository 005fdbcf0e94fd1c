"""
EVM Off-Chain Signing Utilities

Local EIP-712 helpers for the relayer ``MetaTransfer`` and the EIP-2612
``Permit`` that funds it. All cryptographic operations are performed
in-process using ``eth_account``; no RPC calls are made.

Exported helpers
----------------
build_meta_transfer_typed_data
    Wrap a ``MetaTransfer`` in its EIP-712 envelope without signing. Useful
    when signing happens elsewhere (browser wallet, hardware wallet).

sign_meta_transfer
    Sign a ``MetaTransfer`` and return the 65-byte signature as 0x hex.

recover_meta_transfer_signer
    Recover the address that signed a ``MetaTransfer``.

sign_permit
    Sign an EIP-2612 permit and return a ``PermitData`` with v, r, s.
"""

from eth_account import Account
from eth_account.messages import encode_typed_data

from ...schemas.relay import MetaTransfer, PermitData
from .standards import (
    EIP712Domain,
    MetaTransferMessage,
    MetaTransferTypedData,
    PermitMessage,
    PermitTypedData,
    relayer_domain,
)


def _hex32(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


# ---------------------------------------------------------------------------
# MetaTransfer
# ---------------------------------------------------------------------------

def build_meta_transfer_typed_data(
    meta_transfer: MetaTransfer,
    *,
    chain_id: int,
    relayer_contract: str,
) -> MetaTransferTypedData:
    """
    Wrap ``meta_transfer`` in a ``MetaTransferTypedData`` envelope.

    Args:
        meta_transfer:    The instruction to sign or verify.
        chain_id:         EVM network ID of the relayer deployment.
        relayer_contract: Relayer contract address (``verifyingContract``).

    Example::

        typed_data = build_meta_transfer_typed_data(mt, chain_id=11155111,
                                                    relayer_contract="0x...")
        payload = typed_data.to_dict()   # hand off to eth_signTypedData_v4
    """
    return MetaTransferTypedData(
        domain=relayer_domain(chain_id, relayer_contract),
        message=MetaTransferMessage(**meta_transfer.to_message()),
    )


def sign_meta_transfer(
    *,
    private_key: str,
    meta_transfer: MetaTransfer,
    chain_id: int,
    relayer_contract: str,
) -> str:
    """
    Sign ``meta_transfer`` with the owner's key.

    Returns:
        0x-prefixed hex of the packed 65-byte signature (r || s || v).
    """
    typed_data = build_meta_transfer_typed_data(
        meta_transfer, chain_id=chain_id, relayer_contract=relayer_contract
    )
    signed = Account.sign_typed_data(private_key, full_message=typed_data.to_dict())
    return "0x" + bytes(signed.signature).hex()


def recover_meta_transfer_signer(
    meta_transfer: MetaTransfer,
    signature: str,
    *,
    chain_id: int,
    relayer_contract: str,
) -> str:
    """
    Recover the signer address of ``meta_transfer``.

    Raises:
        ValueError: And other decoding errors from ``eth_account`` when the
            signature is malformed.
    """
    typed_data = build_meta_transfer_typed_data(
        meta_transfer, chain_id=chain_id, relayer_contract=relayer_contract
    )
    signable = encode_typed_data(full_message=typed_data.to_dict())
    return Account.recover_message(signable, signature=signature)


# ---------------------------------------------------------------------------
# EIP-2612 permit
# ---------------------------------------------------------------------------

def sign_permit(
    *,
    private_key: str,
    token: str,
    chain_id: int,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
    token_name: str,
    token_version: str = "1",
) -> PermitData:
    """
    Sign an EIP-2612 permit letting ``spender`` pull ``value`` from ``owner``.

    Args:
        private_key:   Owner's secp256k1 key (with or without ``0x``).
        token:         Token contract address (``verifyingContract``).
        chain_id:      EVM network ID.
        owner:         Token owner address.
        spender:       Relayer contract address.
        value:         Approved amount; for a relay this is ``amount + fee``.
        nonce:         Owner's current permit nonce on the token.
        deadline:      Permit expiry (Unix timestamp).
        token_name:    EIP-712 domain ``name`` registered in the token.
        token_version: EIP-712 domain ``version`` of the token.

    Returns:
        ``PermitData`` with ``r`` and ``s`` zero-padded to 32 bytes.
    """
    typed_data = PermitTypedData(
        domain=EIP712Domain(
            name=token_name,
            version=token_version,
            chainId=chain_id,
            verifyingContract=token,
        ),
        message=PermitMessage(
            owner=owner,
            spender=spender,
            value=value,
            nonce=nonce,
            deadline=deadline,
        ),
    )
    signed = Account.sign_typed_data(private_key, full_message=typed_data.to_dict())

    return PermitData(
        value=str(value),
        deadline=str(deadline),
        v=signed.v,
        r=_hex32(signed.r),
        s=_hex32(signed.s),
    )
