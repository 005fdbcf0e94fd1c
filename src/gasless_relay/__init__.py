"""
gasless_relay: EIP-712 meta-transfer relay service.

Users sign a ``MetaTransfer`` and an EIP-2612 permit off-chain; the relay
admits the request through an ordered pipeline and submits it to the relayer
contract, paying gas on their behalf.
"""

from .config import RelaySettings
from .engine.exceptions import GaslessRelayError
from .servers import RelayServer
from .clients import RelayClient

__version__ = "0.1.0"

__all__ = ["RelaySettings", "GaslessRelayError", "RelayServer", "RelayClient", "__version__"]
