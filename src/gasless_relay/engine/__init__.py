from .exceptions import GaslessRelayError

__all__ = ["GaslessRelayError"]
