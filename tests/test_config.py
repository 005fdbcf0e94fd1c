"""
Test suite for RelaySettings and structured logging.
"""
import json
import logging

import pytest
from pydantic import ValidationError

from gasless_relay.config import DEFAULT_ETH_USD_FEED, RelaySettings
from gasless_relay.logs import JsonFormatter, get_logger, log_event, redact


def test_defaults_from_empty_environment():
    settings = RelaySettings.from_env(environ={})

    assert settings.chain_id == 11155111
    assert settings.max_requests_per_minute == 10
    assert settings.max_gas_per_hour == 1_000_000
    assert settings.recaptcha_enabled is False
    assert settings.eth_usd_feed_address == DEFAULT_ETH_USD_FEED
    assert settings.price_cache_ttl == 30.0
    assert settings.log_format == "json"
    assert not settings.is_configured()


def test_values_from_environment():
    settings = RelaySettings.from_env(environ={
        "PRIVATE_KEY": "0x" + "11" * 32,
        "CHAIN_RPC_URL": "https://rpc.sepolia.org",
        "RELAYER_CONTRACT": "0x1234567890123456789012345678901234567890",
        "CHAIN_ID": "1",
        "MAX_REQUESTS_PER_MINUTE": "5",
        "RECAPTCHA_ENABLED": "true",
        "RECAPTCHA_SECRET": "shh",
        "TRACK_GAS_USAGE": "1",
        "ENVIRONMENT": "development",
    })

    assert settings.is_configured()
    assert settings.chain_id == 1
    assert settings.max_requests_per_minute == 5
    assert settings.recaptcha_enabled is True
    assert settings.track_gas_usage is True
    assert settings.log_format == "pretty"


def test_placeholders_count_as_unconfigured():
    settings = RelaySettings.from_env(environ={
        "PRIVATE_KEY": "your_relayer_wallet_private_key_here",
        "CHAIN_RPC_URL": "https://sepolia.infura.io/v3/your_project_id",
        "RELAYER_CONTRACT": "your_deployed_contract_address_here",
    })

    assert not settings.has_signer()
    assert not settings.has_rpc()
    assert not settings.has_contract()


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        RelaySettings.from_env(environ={"MAX_REQUESTS_PER_MINUTE": "0"})
    with pytest.raises(ValidationError):
        RelaySettings.from_env(environ={"LOG_FORMAT": "xml"})


def test_redact_sensitive_fields():
    redacted = redact({
        "signature": "0xabcdef",
        "metaTransfer": {"owner": "0x1", "private_key": "0xkey"},
        "recaptchaToken": "tok",
        "amount": "100",
    })

    assert redacted["signature"] == "<redacted:8 chars>"
    assert redacted["metaTransfer"]["private_key"] == "<redacted:5 chars>"
    assert redacted["metaTransfer"]["owner"] == "0x1"
    assert redacted["recaptchaToken"] == "<redacted:3 chars>"
    assert redacted["amount"] == "100"


def test_json_formatter_emits_meta(caplog):
    logger = get_logger("tests.logging")

    with caplog.at_level(logging.INFO, logger="gasless_relay"):
        log_event(logger, logging.INFO, "Relay attempt started", userAddress="0xabc", signature="0x12")

    record = caplog.records[-1]
    entry = json.loads(JsonFormatter().format(record))
    assert entry["message"] == "Relay attempt started"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "gasless_relay.tests.logging"
    assert entry["meta"] == {"userAddress": "0xabc", "signature": "<redacted:4 chars>"}
