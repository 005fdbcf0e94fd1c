"""
Client module for the gasless relay service.

Provides a typed httpx client that signs meta-transfers and permits locally
and submits them to the relay.
"""

from .http_client import RelayClient

__all__ = ["RelayClient"]
