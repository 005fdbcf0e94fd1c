from .relayer import EVMRelayerContract, decode_revert_reason, GAS_LIMIT_BUFFER
from .signatures import (
    build_meta_transfer_typed_data,
    sign_meta_transfer,
    recover_meta_transfer_signer,
    sign_permit,
)
from .standards import (
    EIP712Domain,
    MetaTransferMessage,
    MetaTransferTypedData,
    PermitMessage,
    PermitTypedData,
    relayer_domain,
    RELAYER_DOMAIN_NAME,
    RELAYER_DOMAIN_VERSION,
)

__all__ = [
    "EVMRelayerContract",
    "decode_revert_reason",
    "GAS_LIMIT_BUFFER",
    "build_meta_transfer_typed_data",
    "sign_meta_transfer",
    "recover_meta_transfer_signer",
    "sign_permit",
    "EIP712Domain",
    "MetaTransferMessage",
    "MetaTransferTypedData",
    "PermitMessage",
    "PermitTypedData",
    "relayer_domain",
    "RELAYER_DOMAIN_NAME",
    "RELAYER_DOMAIN_VERSION",
]
