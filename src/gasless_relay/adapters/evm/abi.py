"""
Relayer, ERC20 and Chainlink Smart Contract ABI Module

Minimal ABI fragments for the contract calls the relay service makes.

Usage:
    from .abi import get_relayer_abi, get_erc20_abi, get_price_feed_abi

    relayer = web3.eth.contract(address=relayer_address, abi=get_relayer_abi())
    nonce = await relayer.functions.getNonce(owner).call()
"""

from typing import Any, Dict, List


def _view(name: str, inputs: List[Dict[str, str]], outputs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": outputs,
    }


_ADDRESS_IN = [{"name": "account", "type": "address"}]
_UINT_OUT = [{"name": "", "type": "uint256"}]
_BOOL_OUT = [{"name": "", "type": "bool"}]


def get_erc20_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 ``balanceOf(account)`` and ``allowance(owner, spender)``.

    Example:
        contract = web3.eth.contract(address=token_address, abi=get_erc20_abi())
        balance = await contract.functions.balanceOf(owner).call()
    """
    return [
        _view("balanceOf", _ADDRESS_IN, _UINT_OUT),
        _view(
            "allowance",
            [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
            _UINT_OUT,
        ),
    ]


def get_price_feed_abi() -> List[Dict[str, Any]]:
    """Get ABI for Chainlink aggregator ``latestRoundData()``."""
    return [
        _view(
            "latestRoundData",
            [],
            [
                {"name": "roundId", "type": "uint80"},
                {"name": "answer", "type": "int256"},
                {"name": "startedAt", "type": "uint256"},
                {"name": "updatedAt", "type": "uint256"},
                {"name": "answeredInRound", "type": "uint80"},
            ],
        )
    ]


#: ``MetaTransfer`` struct as declared by the relayer contract.
META_TRANSFER_COMPONENTS = [
    {"name": "owner", "type": "address"},
    {"name": "token", "type": "address"},
    {"name": "recipient", "type": "address"},
    {"name": "amount", "type": "uint256"},
    {"name": "fee", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
]

#: ``PermitData`` struct as declared by the relayer contract.
PERMIT_COMPONENTS = [
    {"name": "value", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
    {"name": "v", "type": "uint8"},
    {"name": "r", "type": "bytes32"},
    {"name": "s", "type": "bytes32"},
]


def get_relayer_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the gasless relayer contract.

    Covers the read methods used during admission (``paused``,
    ``isTokenWhitelisted``, ``isRecipientContractAllowed``,
    ``maxTransferAmount``, ``maxFeeAmount``, ``getNonce``, ``feeWallet``), the
    ``executeMetaTransfer`` entry point and the custom errors it may revert
    with.

    Example:
        relayer = web3.eth.contract(address=relayer_address, abi=get_relayer_abi())
        tx_fn = relayer.functions.executeMetaTransfer(meta_tuple, permit_tuple, signature)
    """
    return [
        _view("paused", [], _BOOL_OUT),
        _view("isTokenWhitelisted", [{"name": "token", "type": "address"}], _BOOL_OUT),
        _view("isRecipientContractAllowed", [{"name": "recipient", "type": "address"}], _BOOL_OUT),
        _view("maxTransferAmount", [], _UINT_OUT),
        _view("maxFeeAmount", [], _UINT_OUT),
        _view("getNonce", [{"name": "user", "type": "address"}], _UINT_OUT),
        _view("feeWallet", [], [{"name": "", "type": "address"}]),
        {
            "name": "executeMetaTransfer",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "metaTx", "type": "tuple", "components": META_TRANSFER_COMPONENTS},
                {"name": "permitData", "type": "tuple", "components": PERMIT_COMPONENTS},
                {"name": "signature", "type": "bytes"},
            ],
            "outputs": [],
        },
        {"name": "ContractPaused", "type": "error", "inputs": []},
        {"name": "DeadlineExpired", "type": "error", "inputs": []},
        {"name": "InvalidNonce", "type": "error", "inputs": []},
        {"name": "InvalidSignature", "type": "error", "inputs": []},
        {"name": "TokenNotWhitelisted", "type": "error", "inputs": []},
        {"name": "RecipientNotAllowed", "type": "error", "inputs": []},
        {"name": "AmountExceedsLimit", "type": "error", "inputs": []},
        {"name": "FeeExceedsLimit", "type": "error", "inputs": []},
    ]
