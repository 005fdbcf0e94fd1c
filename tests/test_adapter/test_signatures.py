"""
Test suite for EIP-712 signing helpers.
Tests: 1) MetaTransfer sign/recover 2) Domain binding 3) EIP-2612 permit signatures
"""
import re

from eth_account import Account
from eth_account.messages import encode_typed_data

from gasless_relay.adapters.evm import (
    EIP712Domain,
    PermitMessage,
    PermitTypedData,
    RELAYER_DOMAIN_NAME,
    build_meta_transfer_typed_data,
    recover_meta_transfer_signer,
    sign_meta_transfer,
    sign_permit,
)

from test_mocks import (
    MOCK_CHAIN_ID_SEPOLIA,
    MOCK_NOW,
    MOCK_OWNER_ADDRESS,
    MOCK_OWNER_PRIVATE_KEY,
    MOCK_RELAYER_CONTRACT,
    MOCK_TOKEN_NAME,
    MOCK_TOKEN_VERSION,
    MOCK_USDC_SEPOLIA,
    create_meta_transfer,
)


def sign(meta_transfer, chain_id=MOCK_CHAIN_ID_SEPOLIA, relayer=MOCK_RELAYER_CONTRACT):
    return sign_meta_transfer(
        private_key=MOCK_OWNER_PRIVATE_KEY,
        meta_transfer=meta_transfer,
        chain_id=chain_id,
        relayer_contract=relayer,
    )


def recover(meta_transfer, signature, chain_id=MOCK_CHAIN_ID_SEPOLIA, relayer=MOCK_RELAYER_CONTRACT):
    return recover_meta_transfer_signer(
        meta_transfer, signature, chain_id=chain_id, relayer_contract=relayer
    )


def test_typed_data_layout():
    typed_data = build_meta_transfer_typed_data(
        create_meta_transfer(), chain_id=MOCK_CHAIN_ID_SEPOLIA, relayer_contract=MOCK_RELAYER_CONTRACT
    ).to_dict()

    assert typed_data["primaryType"] == "MetaTransfer"
    assert typed_data["domain"] == {
        "name": RELAYER_DOMAIN_NAME,
        "version": "1",
        "chainId": MOCK_CHAIN_ID_SEPOLIA,
        "verifyingContract": MOCK_RELAYER_CONTRACT,
    }
    assert [f["name"] for f in typed_data["types"]["MetaTransfer"]] == [
        "owner", "token", "recipient", "amount", "fee", "deadline", "nonce"
    ]
    assert typed_data["message"]["amount"] == 1_000_000


def test_sign_and_recover_round_trip():
    meta_transfer = create_meta_transfer()

    signature = sign(meta_transfer)

    assert re.fullmatch(r"0x[0-9a-f]{130}", signature)
    assert recover(meta_transfer, signature) == MOCK_OWNER_ADDRESS


def test_tampered_message_recovers_other_signer():
    signature = sign(create_meta_transfer(amount=1_000_000))

    assert recover(create_meta_transfer(amount=2_000_000), signature) != MOCK_OWNER_ADDRESS


def test_signature_is_bound_to_domain():
    meta_transfer = create_meta_transfer()
    signature = sign(meta_transfer)

    assert recover(meta_transfer, signature, chain_id=1) != MOCK_OWNER_ADDRESS
    assert recover(meta_transfer, signature, relayer="0x" + "9" * 40) != MOCK_OWNER_ADDRESS


def test_sign_permit_components():
    deadline = MOCK_NOW + 3600
    permit = sign_permit(
        private_key=MOCK_OWNER_PRIVATE_KEY,
        token=MOCK_USDC_SEPOLIA,
        chain_id=MOCK_CHAIN_ID_SEPOLIA,
        owner=MOCK_OWNER_ADDRESS,
        spender=MOCK_RELAYER_CONTRACT,
        value=1_010_000,
        nonce=0,
        deadline=deadline,
        token_name=MOCK_TOKEN_NAME,
        token_version=MOCK_TOKEN_VERSION,
    )

    assert permit.value == "1010000"
    assert permit.deadline == str(deadline)
    assert permit.v in (27, 28)
    assert re.fullmatch(r"0x[0-9a-f]{64}", permit.r)
    assert re.fullmatch(r"0x[0-9a-f]{64}", permit.s)

    typed_data = PermitTypedData(
        domain=EIP712Domain(
            name=MOCK_TOKEN_NAME,
            version=MOCK_TOKEN_VERSION,
            chainId=MOCK_CHAIN_ID_SEPOLIA,
            verifyingContract=MOCK_USDC_SEPOLIA,
        ),
        message=PermitMessage(
            owner=MOCK_OWNER_ADDRESS,
            spender=MOCK_RELAYER_CONTRACT,
            value=1_010_000,
            nonce=0,
            deadline=deadline,
        ),
    )
    signable = encode_typed_data(full_message=typed_data.to_dict())
    recovered = Account.recover_message(
        signable, vrs=(permit.v, int(permit.r, 16), int(permit.s, 16))
    )
    assert recovered == MOCK_OWNER_ADDRESS
