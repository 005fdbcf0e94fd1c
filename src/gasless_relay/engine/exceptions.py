"""
Exception and Error Definitions Module

Defines the error taxonomy for relay admission, fee calculation and
blockchain interaction. Every exception carries the HTTP status it maps to
and a caller-safe ``public_message``; internal details stay in ``str(exc)``
and the logs.

Exception Hierarchy:
    GaslessRelayError (root, 500)
    ├── RelayValidationError (400)
    ├── RateLimitedError (429)
    ├── CaptchaVerificationError (400)
    ├── AdmissionError (400)
    │   ├── DeadlineExpiredError
    │   ├── InvalidSignatureError
    │   ├── TokenNotAllowedError
    │   ├── RecipientNotAllowedError
    │   ├── LimitExceededError
    │   ├── InvalidNonceError
    │   ├── InsufficientFundsError
    │   └── InsufficientAllowanceError
    ├── ServiceUnavailableError (503)
    │   └── NotConfiguredError
    ├── NotFoundError (404)
    ├── InternalError (500)
    ├── RelayAPIError (status of the failed response)
    ├── CalculationError (500)
    ├── PriceUnavailableError (500)
    └── BlockchainInteractionError (500)
        └── TransactionExecutionError
"""

from typing import Optional


class GaslessRelayError(Exception):
    """
    Root exception class for all project-specific exceptions.

    Attributes:
        status_code: HTTP status the error maps to.
        public_message: Message safe to return to API callers.
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, public_message: Optional[str] = None):
        super().__init__(message or public_message or self.default_message)
        self.public_message = public_message or self.default_message

    @property
    def is_client_error(self) -> bool:
        return self.status_code < 500 or self.status_code == 503


class RelayValidationError(GaslessRelayError):
    """Raised when a request body or path parameter is malformed."""
    status_code = 400
    default_message = "Invalid request format"


class RateLimitedError(GaslessRelayError):
    """
    Raised when an identifier is over its request budget or banned.

    Attributes:
        retry_after: Seconds until the caller may retry, if known.
    """
    status_code = 429
    default_message = "Rate limit exceeded"

    def __init__(self, message: Optional[str] = None, *, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class CaptchaVerificationError(GaslessRelayError):
    """Raised when the CAPTCHA token is rejected."""
    status_code = 400
    default_message = "reCAPTCHA verification failed"


class AdmissionError(GaslessRelayError):
    """
    Base class for deterministic admission rejections.

    These are raised before any transaction is submitted and leave no side
    effect other than the rate-limit counter.
    """
    status_code = 400
    default_message = "Request rejected"


class DeadlineExpiredError(AdmissionError):
    default_message = "Transaction deadline expired"


class InvalidSignatureError(AdmissionError):
    default_message = "Invalid signature"


class TokenNotAllowedError(AdmissionError):
    default_message = "Token not whitelisted"


class RecipientNotAllowedError(AdmissionError):
    default_message = "Recipient contract not allowed"


class LimitExceededError(AdmissionError):
    """Raised when amount or fee exceeds the contract-configured maximum."""
    default_message = "Amount exceeds maximum allowed"


class InvalidNonceError(AdmissionError):
    """
    Raised when the signed nonce differs from the owner's on-chain nonce.

    Attributes:
        expected_nonce: Nonce currently stored on-chain
        provided_nonce: Nonce in the meta-transfer
    """
    default_message = "Invalid nonce"

    def __init__(self, message: Optional[str] = None, *, expected_nonce: Optional[int] = None,
                 provided_nonce: Optional[int] = None):
        super().__init__(message)
        self.expected_nonce = expected_nonce
        self.provided_nonce = provided_nonce


class InsufficientFundsError(AdmissionError):
    default_message = "Insufficient token balance"


class InsufficientAllowanceError(AdmissionError):
    default_message = "Insufficient token allowance"


class ServiceUnavailableError(GaslessRelayError):
    """Raised when the relayer contract is paused."""
    status_code = 503
    default_message = "Contract is currently paused"


class NotConfiguredError(ServiceUnavailableError):
    """
    Raised when required connection parameters are missing.

    This is a deployment precondition: RPC URL, relayer contract address or
    relayer private key absent or left as placeholders.
    """
    default_message = "Contract service not configured"


class NotFoundError(GaslessRelayError):
    """Raised when a looked-up resource (e.g. a transaction) is unknown."""
    status_code = 404
    default_message = "Transaction not found"


class InternalError(GaslessRelayError):
    """Unexpected failure; callers only ever see the generic message."""
    status_code = 500
    default_message = "Internal server error"


class CalculationError(GaslessRelayError):
    """Raised when a fee cannot be computed from oracle inputs."""
    status_code = 500
    default_message = "Failed to calculate fees"


class PriceUnavailableError(GaslessRelayError):
    """Raised by a single price provider; the oracle falls through to the next one."""
    status_code = 500
    default_message = "Price unavailable"


class BlockchainInteractionError(GaslessRelayError):
    """
    Raised when a blockchain read (RPC call) fails.

    This includes scenarios such as:
    - RPC call timeout
    - Network connectivity issues
    - Contract call revert
    """
    status_code = 500
    default_message = "Internal server error"


class TransactionExecutionError(BlockchainInteractionError):
    """
    Raised when submitting the relay transaction fails.

    Attributes:
        revert_reason: Decoded contract error name, if any
    """

    def __init__(self, message: Optional[str] = None, *, revert_reason: Optional[str] = None):
        super().__init__(message)
        self.revert_reason = revert_reason


class RelayAPIError(GaslessRelayError):
    """
    Raised by ``RelayClient`` when the relay service answers ``success: false``.

    Attributes:
        status_code: HTTP status of the failed response
        retry_after: ``Retry-After`` seconds on 429 responses, if sent
    """

    def __init__(self, status_code: int, error: str, *, retry_after: Optional[int] = None):
        super().__init__(f"{status_code}: {error}", public_message=error)
        self.status_code = status_code
        self.retry_after = retry_after
