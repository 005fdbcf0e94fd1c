"""
Relay Service Configuration

Loads deployment settings from environment variables (optionally via a
``.env`` file) into a validated ``RelaySettings`` model.

Environment Variables:
    - PRIVATE_KEY: Relayer wallet private key used to sign submissions
    - CHAIN_RPC_URL: JSON-RPC endpoint of the target chain
    - RELAYER_CONTRACT: Deployed relayer contract address
    - CHAIN_ID: EVM chain ID (default 11155111, Sepolia)
    - MAX_REQUESTS_PER_MINUTE / MAX_GAS_PER_HOUR: Rate limiter caps
    - RECAPTCHA_ENABLED / RECAPTCHA_SECRET: CAPTCHA verification
    - ETH_USD_FEED_ADDRESS: Chainlink ETH/USD aggregator
    - PRICE_CACHE_TTL / ORACLE_TIMEOUT / RPC_TIMEOUT: Timing knobs (seconds)
    - TRACK_GAS_USAGE: Charge submitted relays against the hourly gas budget
    - LOG_LEVEL / LOG_FORMAT / ENVIRONMENT: Logging output
"""

import os
from typing import Optional, Mapping

import dotenv
from pydantic import BaseModel, Field

#: Chainlink ETH/USD price feed on Sepolia.
DEFAULT_ETH_USD_FEED = "0x694AA1769357215DE4FAC081bf1f309aDC325306"

#: Values shipped in the sample env file; treated as "not configured".
_PLACEHOLDER_MARKERS = (
    "your_relayer_wallet_private_key_here",
    "your_project_id",
    "your_deployed_contract_address_here",
)


def _is_placeholder(value: Optional[str]) -> bool:
    return not value or any(marker in value for marker in _PLACEHOLDER_MARKERS)


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class RelaySettings(BaseModel):
    """Runtime settings for the relay service."""

    private_key: Optional[str] = Field(None, description="Relayer wallet private key")
    chain_rpc_url: Optional[str] = Field(None, description="JSON-RPC endpoint URL")
    relayer_contract: Optional[str] = Field(None, description="Relayer contract address")
    chain_id: int = Field(11155111, description="EVM chain ID")

    max_requests_per_minute: int = Field(10, ge=1)
    max_gas_per_hour: int = Field(1_000_000, ge=0)
    rate_limit_window: float = Field(60.0, gt=0, description="Request window (seconds)")
    gas_window: float = Field(3600.0, gt=0, description="Gas usage window (seconds)")
    sweep_interval: float = Field(300.0, gt=0, description="Rate limiter sweep period (seconds)")

    recaptcha_enabled: bool = False
    recaptcha_secret: Optional[str] = None

    eth_usd_feed_address: str = DEFAULT_ETH_USD_FEED
    price_cache_ttl: float = Field(30.0, ge=0)
    oracle_timeout: float = Field(10.0, gt=0)
    rpc_timeout: int = Field(60, gt=0)
    percentage_fee_bps: int = Field(100, ge=0, le=10_000, description="Relay fee in basis points")

    track_gas_usage: bool = False

    log_level: str = "INFO"
    log_format: str = Field("json", pattern="^(json|pretty)$")

    def has_rpc(self) -> bool:
        return not _is_placeholder(self.chain_rpc_url)

    def has_contract(self) -> bool:
        return not _is_placeholder(self.relayer_contract)

    def has_signer(self) -> bool:
        return not _is_placeholder(self.private_key)

    def is_configured(self) -> bool:
        """True when the relayer can both read from and submit to the chain."""
        return self.has_rpc() and self.has_contract() and self.has_signer()

    @classmethod
    def from_env(
        cls,
        env_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "RelaySettings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional path of a ``.env`` file to load first. When
                omitted, ``python-dotenv`` searches for ``.env`` upwards from
                the working directory. Existing variables are never overridden.
            environ: Mapping to read instead of ``os.environ`` (testing).

        Returns:
            RelaySettings populated from the environment, with defaults for
            anything unset.
        """
        if environ is None:
            dotenv.load_dotenv(env_file or dotenv.find_dotenv(usecwd=True))
            environ = os.environ

        def get(key: str) -> Optional[str]:
            value = environ.get(key)
            return value if value not in (None, "") else None

        values = {
            "private_key": get("PRIVATE_KEY"),
            "chain_rpc_url": get("CHAIN_RPC_URL"),
            "relayer_contract": get("RELAYER_CONTRACT"),
            "chain_id": get("CHAIN_ID"),
            "max_requests_per_minute": get("MAX_REQUESTS_PER_MINUTE"),
            "max_gas_per_hour": get("MAX_GAS_PER_HOUR"),
            "recaptcha_enabled": _env_bool(get("RECAPTCHA_ENABLED")),
            "recaptcha_secret": get("RECAPTCHA_SECRET"),
            "eth_usd_feed_address": get("ETH_USD_FEED_ADDRESS"),
            "price_cache_ttl": get("PRICE_CACHE_TTL"),
            "oracle_timeout": get("ORACLE_TIMEOUT"),
            "rpc_timeout": get("RPC_TIMEOUT"),
            "track_gas_usage": _env_bool(get("TRACK_GAS_USAGE")),
            "log_level": get("LOG_LEVEL"),
            "log_format": get("LOG_FORMAT")
            or ("pretty" if get("ENVIRONMENT") == "development" else None),
        }
        return cls.model_validate({k: v for k, v in values.items() if v is not None})
