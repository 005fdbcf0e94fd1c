"""
Built-in event handlers for the relay admission workflow.

Implements the strictly ordered pipeline:

    parse -> rate limit -> CAPTCHA -> commit count -> deadline -> pause ->
    signature -> token whitelist -> recipient allowlist -> limits -> nonce ->
    balance/allowance -> submit

The first failing step short-circuits with a ``RelayRejectedEvent`` carrying
the matching ``GaslessRelayError``. Nothing is retried.
"""

import logging
from typing import Any, Awaitable, Callable, Sequence

from pydantic import ValidationError

from ..engine.events import (
    Dependencies,
    EventBus,
    RelayAdmittedEvent,
    RelayFailedEvent,
    RelayRejectedEvent,
    RelayRequestEvent,
    RelaySubmittedEvent,
)
from ..engine.exceptions import (
    CaptchaVerificationError,
    DeadlineExpiredError,
    GaslessRelayError,
    InsufficientAllowanceError,
    InsufficientFundsError,
    InternalError,
    InvalidNonceError,
    InvalidSignatureError,
    LimitExceededError,
    RateLimitedError,
    RecipientNotAllowedError,
    RelayValidationError,
    ServiceUnavailableError,
    TokenNotAllowedError,
)
from ..engine.executors import EventChain
from ..fees.oracle import BASE_TRANSFER_GAS, GAS_BUFFER, PERMIT_GAS
from ..logs import (
    captcha_failure,
    get_logger,
    log_event,
    rate_limit_hit,
    relay_attempt,
    relay_failure,
    relay_success,
    security_violation,
    validation_error,
)
from ..schemas.relay import RelayRequest

LOGGER = get_logger(__name__)

RELAY_ENDPOINT = "/relay"

AdmissionStep = Callable[[RelayRequest, Dependencies], Awaitable[None]]


def summarize_validation_errors(exc: ValidationError) -> list:
    """Location and message of each error; input values are left out of logs."""
    return [{"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]} for err in exc.errors()]


# ==================== Admission Steps ====================

async def check_deadline(request: RelayRequest, deps: Dependencies) -> None:
    if request.meta_transfer.deadline_value <= int(deps.clock()):
        raise DeadlineExpiredError("Deadline expired")


async def check_not_paused(request: RelayRequest, deps: Dependencies) -> None:
    if await deps.contract.is_paused():
        raise ServiceUnavailableError("Contract paused")


async def check_signature(request: RelayRequest, deps: Dependencies) -> None:
    meta = request.meta_transfer
    if not deps.contract.verify_signature(meta, request.signature):
        security_violation(LOGGER, "invalid_signature", meta.owner,
                           metaTransfer=meta.to_json_dict(), signature=request.signature)
        raise InvalidSignatureError("Invalid signature")


async def check_token_whitelisted(request: RelayRequest, deps: Dependencies) -> None:
    if not await deps.contract.is_token_whitelisted(request.meta_transfer.token):
        raise TokenNotAllowedError("Token not whitelisted")


async def check_recipient_allowed(request: RelayRequest, deps: Dependencies) -> None:
    if not await deps.contract.is_recipient_allowed(request.meta_transfer.recipient):
        raise RecipientNotAllowedError("Recipient not allowed")


async def check_limits(request: RelayRequest, deps: Dependencies) -> None:
    meta = request.meta_transfer
    limits = await deps.contract.get_limits()
    if meta.amount_value > limits.max_transfer:
        raise LimitExceededError("Amount exceeds maximum")
    if meta.fee_value > limits.max_fee:
        raise LimitExceededError("Fee exceeds maximum", public_message="Fee exceeds maximum allowed")


async def check_nonce(request: RelayRequest, deps: Dependencies) -> None:
    meta = request.meta_transfer
    current = await deps.contract.get_user_nonce(meta.owner)
    if meta.nonce_value != current:
        raise InvalidNonceError("Invalid nonce", expected_nonce=current, provided_nonce=meta.nonce_value)


async def check_funds(request: RelayRequest, deps: Dependencies) -> None:
    meta = request.meta_transfer
    info = await deps.contract.get_token_info(meta.token, meta.owner)
    needed = meta.total_value
    if info.balance < needed:
        raise InsufficientFundsError("Insufficient balance")
    if info.allowance < needed:
        raise InsufficientAllowanceError("Insufficient allowance")


#: Contract-facing checks, run in order after rate limiting and CAPTCHA.
ADMISSION_STEPS: Sequence[AdmissionStep] = (
    check_deadline,
    check_not_paused,
    check_signature,
    check_token_whitelisted,
    check_recipient_allowed,
    check_limits,
    check_nonce,
    check_funds,
)


# ==================== Event Handlers ====================

async def handle_relay_request(
    event: RelayRequestEvent,
    deps: Dependencies,
) -> RelayAdmittedEvent | RelayRejectedEvent:
    """Run every admission step for a raw relay request."""
    try:
        request = RelayRequest.model_validate(event.payload)
    except ValidationError as e:
        validation_error(LOGGER, RELAY_ENDPOINT, summarize_validation_errors(e), event.client_ip)
        return RelayRejectedEvent(error=RelayValidationError(str(e)), client_ip=event.client_ip)

    meta = request.meta_transfer
    owner = meta.owner
    relay_attempt(LOGGER, owner, meta.token, meta.amount,
                  clientIp=event.client_ip, recipient=meta.recipient, fee=meta.fee)

    def reject(error: GaslessRelayError) -> RelayRejectedEvent:
        return RelayRejectedEvent(error=error, owner=owner, client_ip=event.client_ip)

    # Count is taken here and handed back if the CAPTCHA fails.
    decision = deps.rate_limiter.acquire(owner)
    if not decision.allowed:
        rate_limit_hit(LOGGER, owner, RELAY_ENDPOINT, retryAfter=decision.retry_after)
        return reject(RateLimitedError(retry_after=decision.retry_after))

    try:
        captcha_ok = await deps.captcha.verify(request.recaptcha_token, event.client_ip)
    except Exception:
        deps.rate_limiter.release(owner, decision.window_end)
        raise
    if not captcha_ok:
        deps.rate_limiter.release(owner, decision.window_end)
        captcha_failure(LOGGER, owner)
        return reject(CaptchaVerificationError())

    try:
        for step in ADMISSION_STEPS:
            await step(request, deps)
    except GaslessRelayError as e:
        return reject(e)
    except Exception as e:
        log_event(LOGGER, logging.ERROR, "Relay admission error", exc_info=e,
                  userAddress=owner, clientIp=event.client_ip)
        return reject(InternalError(f"Admission failed: {e}"))

    return RelayAdmittedEvent(request=request, client_ip=event.client_ip)


async def handle_relay_admitted(
    event: RelayAdmittedEvent,
    deps: Dependencies,
) -> RelaySubmittedEvent | RelayFailedEvent:
    """Submit an admitted relay."""
    request = event.request
    try:
        tx_hash = await deps.contract.execute_meta_transfer(
            request.meta_transfer, request.permit_data, request.signature
        )
    except Exception as e:
        return RelayFailedEvent(request=request, error=e)
    return RelaySubmittedEvent(request=request, tx_hash=tx_hash)


# ==================== Hooks ====================

async def log_rejection(event: RelayRejectedEvent, deps: Dependencies) -> None:
    error = event.error
    if event.owner is None or isinstance(error, (RateLimitedError, CaptchaVerificationError)):
        return
    meta: dict = {"clientIp": event.client_ip, "status": error.status_code}
    if isinstance(error, InvalidNonceError):
        meta["expectedNonce"] = str(error.expected_nonce)
        meta["providedNonce"] = str(error.provided_nonce)
    log_event(LOGGER, logging.WARNING if error.is_client_error else logging.ERROR,
              "Relay rejected", userAddress=event.owner, reason=str(error),
              error=error.public_message, **meta)


async def log_submission(event: RelaySubmittedEvent, deps: Dependencies) -> None:
    meta = event.request.meta_transfer
    relay_success(LOGGER, event.tx_hash, meta.owner, meta.token, meta.amount)


async def log_failure(event: RelayFailedEvent, deps: Dependencies) -> None:
    meta = event.request.meta_transfer
    relay_failure(LOGGER, meta.owner, meta.token, meta.amount, str(event.error),
                  errorType=type(event.error).__name__)
    log_event(LOGGER, logging.ERROR, "Relay endpoint error", exc_info=event.error,
              userAddress=meta.owner)


async def track_gas_usage(event: RelaySubmittedEvent, deps: Dependencies) -> None:
    """Charge the static relay gas estimate against the owner's hourly budget."""
    meta = event.request.meta_transfer
    if deps.fee_calculator is not None:
        gas = await deps.fee_calculator.oracle.estimate_gas_limit(meta.token, meta.amount_value)
    else:
        gas = BASE_TRANSFER_GAS + PERMIT_GAS + GAS_BUFFER
    if not deps.rate_limiter.add_gas_usage(meta.owner, gas):
        log_event(LOGGER, logging.WARNING, "Hourly gas budget exhausted",
                  userAddress=meta.owner, gasUsed=str(gas))


# ==================== Event Bus Setup ====================

def setup_event_bus(enable_gas_tracking: bool = False) -> EventBus:
    """Initialize event bus with built-in handlers and logging hooks.

    Args:
        enable_gas_tracking: If True, every submitted relay is charged
            against the owner's hourly gas budget.
    """
    event_bus = EventBus()

    event_bus.subscribe(RelayRequestEvent, handle_relay_request)
    event_bus.subscribe(RelayAdmittedEvent, handle_relay_admitted)

    event_bus.hook(RelayRejectedEvent, log_rejection)
    event_bus.hook(RelaySubmittedEvent, log_submission)
    event_bus.hook(RelayFailedEvent, log_failure)

    if enable_gas_tracking:
        event_bus.hook(RelaySubmittedEvent, track_gas_usage)

    return event_bus


# ==================== Pipeline ====================

_TERMINAL_EVENTS = (RelayRejectedEvent, RelaySubmittedEvent, RelayFailedEvent)


class RelayPipeline:
    """
    Runs one relay request through the event chain.

    Example:
        pipeline = RelayPipeline(setup_event_bus(), deps)
        tx_hash = await pipeline.relay(body, client_ip="1.2.3.4")
    """

    def __init__(self, event_bus: EventBus, deps: Dependencies) -> None:
        self.event_bus = event_bus
        self.deps = deps

    async def relay(self, payload: Any, client_ip: str = "unknown") -> str:
        """
        Admit and submit a relay request.

        Returns:
            Pending transaction hash.

        Raises:
            GaslessRelayError: The rejection of the first failing step, or
                ``InternalError`` when submission fails.
        """
        outcome = None
        chain = EventChain(self.event_bus, self.deps)
        async for event in chain.execute(RelayRequestEvent(payload=payload, client_ip=client_ip)):
            if isinstance(event, _TERMINAL_EVENTS):
                outcome = event

        if isinstance(outcome, RelaySubmittedEvent):
            return outcome.tx_hash
        if isinstance(outcome, RelayRejectedEvent):
            raise outcome.error
        if isinstance(outcome, RelayFailedEvent):
            raise InternalError(f"Submission failed: {outcome.error}") from outcome.error
        raise InternalError("Relay chain produced no outcome")

    def events(self, payload: Any, client_ip: str = "unknown"):
        """Async iterator over every event the request produces."""
        chain = EventChain(self.event_bus, self.deps)
        return chain.execute(RelayRequestEvent(payload=payload, client_ip=client_ip))

