"""
Structured Logging

Thin layer over the standard ``logging`` module. Structured fields travel on
the log record (``extra={"meta": {...}}``) and are rendered either as one
JSON object per line (production) or as a readable line followed by the
metadata (development).

Sensitive values (signatures, keys, secrets, CAPTCHA tokens) are redacted
before they reach any handler.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_ROOT_LOGGER = "gasless_relay"

_SENSITIVE_EXACT_KEYS = {
    "signature",
    "private_key",
    "privatekey",
    "secret",
    "recaptcha_token",
    "recaptchatoken",
    "authorization",
}
_SENSITIVE_SUFFIXES = ("_private_key", "_secret", "_signature", "_token")


def _should_redact(key: str) -> bool:
    key_lower = key.lower()
    if key_lower in _SENSITIVE_EXACT_KEYS:
        return True
    return key_lower.endswith(_SENSITIVE_SUFFIXES)


def redact(value: Any, *, sensitive: bool = False) -> Any:
    """Recursively replace sensitive values with a length marker."""
    if isinstance(value, dict):
        return {
            key: redact(item, sensitive=(sensitive or _should_redact(str(key))))
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(item, sensitive=sensitive) for item in value)
    if isinstance(value, str):
        return f"<redacted:{len(value)} chars>" if sensitive else value
    if isinstance(value, (bytes, bytearray)):
        return f"<redacted:bytes:{len(value)}>" if sensitive else "0x" + bytes(value).hex()
    return value


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, meta."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        meta = getattr(record, "meta", None)
        if meta:
            entry["meta"] = meta
        if record.exc_info:
            entry["stack"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class PrettyFormatter(logging.Formatter):
    """Human readable output for local development."""

    def __init__(self) -> None:
        super().__init__("[%(asctime)s] %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        meta = getattr(record, "meta", None)
        if meta:
            line += "\nMeta: " + json.dumps(meta, default=str, indent=2)
        return line


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install a single stream handler on the package logger (idempotent)."""
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    handler = next((h for h in logger.handlers if getattr(h, "_relay_handler", False)), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler._relay_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    handler.setFormatter(PrettyFormatter() if fmt == "pretty" else JsonFormatter())


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger below the package root logger."""
    if not name or name == _ROOT_LOGGER:
        return logging.getLogger(_ROOT_LOGGER)
    if name.startswith(_ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")


def log_event(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    exc_info: Any = False,
    **fields: Any,
) -> None:
    """Emit ``message`` with redacted structured ``fields``."""
    meta = redact({k: v for k, v in fields.items() if v is not None})
    logger.log(level, message, extra={"meta": meta}, exc_info=exc_info)


# ==================== Relay Events ====================

def relay_attempt(logger: logging.Logger, owner: str, token: str, amount: str, **meta: Any) -> None:
    log_event(logger, logging.INFO, "Relay attempt started",
              userAddress=owner, tokenAddress=token, amount=amount, **meta)


def relay_success(logger: logging.Logger, tx_hash: str, owner: str, token: str, amount: str,
                  gas_used: Optional[int] = None) -> None:
    log_event(logger, logging.INFO, "Relay transaction successful",
              txHash=tx_hash, userAddress=owner, tokenAddress=token, amount=amount,
              gasUsed=str(gas_used) if gas_used is not None else None)


def relay_failure(logger: logging.Logger, owner: str, token: str, amount: str, error: str,
                  **meta: Any) -> None:
    log_event(logger, logging.ERROR, "Relay transaction failed",
              userAddress=owner, tokenAddress=token, amount=amount, error=error, **meta)


def rate_limit_hit(logger: logging.Logger, identifier: str, endpoint: str, **meta: Any) -> None:
    log_event(logger, logging.WARNING, "Rate limit exceeded",
              identifier=identifier, endpoint=endpoint, **meta)


def security_violation(logger: logging.Logger, kind: str, identifier: str, **details: Any) -> None:
    log_event(logger, logging.ERROR, "Security violation detected",
              type=kind, identifier=identifier, details=details)


def captcha_failure(logger: logging.Logger, identifier: str) -> None:
    log_event(logger, logging.WARNING, "reCAPTCHA verification failed", identifier=identifier)


def validation_error(logger: logging.Logger, endpoint: str, errors: Any,
                     identifier: Optional[str] = None) -> None:
    log_event(logger, logging.WARNING, "Validation error",
              endpoint=endpoint, errors=errors, identifier=identifier)
