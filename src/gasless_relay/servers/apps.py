"""
Gasless Relay Server - Event-driven FastAPI wrapper.

Exposes the relay admission pipeline and the read endpoints the wallet front
end needs:

    POST /relay              admit and submit a signed meta-transfer
    GET  /status             relayer contract status and limits
    GET  /token/{address}    token whitelist flag (+ balance/allowance with ?user=)
    GET  /user/{address}     nonce, rate-limit usage and ban flag
    GET  /tx/{hash}          submitted transaction status
    POST /calculate-fee      fee quote for a transfer

Every response is ``{"success": bool, ...}``; failures carry ``error``.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager, contextmanager
from typing import Any, Callable, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..adapters.bases import RelayerContract
from ..adapters.evm.relayer import EVMRelayerContract
from ..config import RelaySettings
from ..engine.events import Dependencies, EventBus
from ..engine.exceptions import (
    GaslessRelayError,
    InternalError,
    NotConfiguredError,
    NotFoundError,
    RateLimitedError,
    RelayValidationError,
)
from ..fees.calculator import FeeCalculator
from ..fees.oracle import ChainlinkPriceProvider, CoinGeckoPriceProvider, PriceOracle
from ..logs import configure_logging, get_logger, log_event, validation_error
from ..ratelimit.limiter import RateLimiter
from ..schemas.bases import is_address, is_tx_hash
from ..schemas.https import (
    ErrorResponse,
    FeeQuoteRequest,
    FeeQuoteResponse,
    StatusData,
    TokenInfoData,
    TransactionData,
    UsageStatsData,
    UserInfoData,
)
from ..schemas.relay import RelayResponse
from .captcha import CaptchaVerifier, captcha_from_settings
from .flows import RelayPipeline, summarize_validation_errors, setup_event_bus

LOGGER = get_logger(__name__)


def get_client_ip(request: Request) -> str:
    """First ``X-Forwarded-For`` hop, else ``X-Real-IP``, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).to_json_dict(),
                        headers=headers)


def data_response(data: Any) -> JSONResponse:
    return JSONResponse(status_code=200, content={"success": True, "data": data.to_json_dict()})


@contextmanager
def endpoint_errors(log_message: str, public_message: str, **fields: Any):
    """
    Let client-facing errors through and turn everything else into a 500
    with an endpoint-specific message. The original error is logged.
    """
    try:
        yield
    except GaslessRelayError as e:
        if e.is_client_error:
            raise
        log_event(LOGGER, logging.ERROR, log_message, exc_info=e, error=str(e), **fields)
        raise InternalError(str(e), public_message=public_message) from e
    except Exception as e:
        log_event(LOGGER, logging.ERROR, log_message, exc_info=e, error=str(e), **fields)
        raise InternalError(str(e), public_message=public_message) from e


def build_fee_calculator(settings: RelaySettings, web3=None) -> FeeCalculator:
    """Chainlink (when a node is available) then CoinGecko, behind one cache."""
    providers = []
    if web3 is not None:
        providers.append(ChainlinkPriceProvider(web3, settings.eth_usd_feed_address))
    providers.append(CoinGeckoPriceProvider())
    oracle = PriceOracle(
        providers,
        web3,
        cache_ttl=settings.price_cache_ttl,
        timeout=settings.oracle_timeout,
    )
    return FeeCalculator(oracle, percentage_fee_bps=settings.percentage_fee_bps)


class RelayServer(FastAPI):
    """FastAPI server running the gasless relay admission pipeline."""

    def __init__(
        self,
        settings: Optional[RelaySettings] = None,
        contract: Optional[RelayerContract] = None,
        rate_limiter: Optional[RateLimiter] = None,
        captcha: Optional[CaptchaVerifier] = None,
        fee_calculator: Optional[FeeCalculator] = None,
        clock: Callable[[], float] = time.time,
        **fastapi_kwargs,
    ):
        """Initialize the relay server.

        Args:
            settings: Service settings (default: ``RelaySettings.from_env()``)
            contract: Relayer contract adapter (default: web3 adapter from settings)
            rate_limiter: Per-owner rate limiter (default: from settings caps)
            captcha: CAPTCHA verifier (default: from settings)
            fee_calculator: Fee calculator (default: Chainlink/CoinGecko oracle)
            clock: Unix time source in seconds, shared by the pipeline and limiter
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        self.settings = settings or RelaySettings.from_env()
        configure_logging(self.settings.log_level, self.settings.log_format)

        self.contract = contract or EVMRelayerContract.from_settings(self.settings)
        self.rate_limiter = rate_limiter or RateLimiter(
            max_requests_per_minute=self.settings.max_requests_per_minute,
            max_gas_per_hour=self.settings.max_gas_per_hour,
            window_seconds=self.settings.rate_limit_window,
            gas_window_seconds=self.settings.gas_window,
            sweep_interval=self.settings.sweep_interval,
            clock=clock,
        )
        self.captcha = captcha or captcha_from_settings(self.settings)
        self.fee_calculator = fee_calculator or build_fee_calculator(
            self.settings, getattr(self.contract, "web3", None)
        )

        self.depends = Dependencies(
            contract=self.contract,
            rate_limiter=self.rate_limiter,
            captcha=self.captcha,
            fee_calculator=self.fee_calculator,
            settings=self.settings,
            clock=clock,
        )
        self.event_bus: EventBus = setup_event_bus(enable_gas_tracking=self.settings.track_gas_usage)
        self.pipeline = RelayPipeline(self.event_bus, self.depends)

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            self.rate_limiter.start()
            try:
                yield
            finally:
                await self.rate_limiter.stop()

        fastapi_kwargs.setdefault("title", "Gasless Relay")
        super().__init__(lifespan=lifespan, **fastapi_kwargs)

        self._setup_exception_handlers()
        self._setup_relay_endpoint()
        self._setup_read_endpoints()
        self._setup_fee_endpoint()

    # ==================== Extension Points ====================

    def subscribe(self, event_class: type, handler: Callable) -> None:
        """Register event handler.

        Example:
            ```python
            async def notify(event: RelaySubmittedEvent, deps: Dependencies):
                await send_webhook(event.tx_hash)
                return None

            app.subscribe(RelaySubmittedEvent, notify)
            ```
        """
        self.event_bus.subscribe(event_class, handler)

    def add_hook(self, event_class: type, hook: Callable) -> None:
        """Register event hook for side effects."""
        self.event_bus.hook(event_class, hook)

    def hook(self, event_class: type) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @app.hook(RelayRejectedEvent)
            async def on_rejected(event, deps):
                metrics.increment(type(event.error).__name__)
        """
        def decorator(hook_func: Callable) -> Callable:
            self.event_bus.hook(event_class, hook_func)
            return hook_func
        return decorator

    # ==================== Error Mapping ====================

    def _setup_exception_handlers(self) -> None:

        @self.exception_handler(GaslessRelayError)
        async def relay_error_handler(request: Request, exc: GaslessRelayError):
            headers = None
            if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
                headers = {"Retry-After": str(exc.retry_after)}
            return error_response(exc.status_code, exc.public_message, headers)

        @self.exception_handler(StarletteHTTPException)
        async def http_error_handler(request: Request, exc: StarletteHTTPException):
            if exc.status_code == 405:
                return error_response(405, "Method not allowed", getattr(exc, "headers", None))
            return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

        @self.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            validation_error(LOGGER, request.url.path, [str(err.get("msg")) for err in exc.errors()],
                             get_client_ip(request))
            return error_response(400, "Invalid request format")

    # ==================== Endpoints ====================

    def _setup_relay_endpoint(self, path: str = "/relay") -> None:

        @self.post(path)
        async def relay(request: Request):
            """Admit a signed meta-transfer and submit it on-chain."""
            client_ip = get_client_ip(request)
            try:
                payload = await request.json()
            except ValueError:
                validation_error(LOGGER, path, ["body is not valid JSON"], client_ip)
                raise RelayValidationError("Body is not valid JSON")

            with endpoint_errors("Relay endpoint error", InternalError.default_message, clientIp=client_ip):
                tx_hash = await self.pipeline.relay(payload, client_ip)

            response = RelayResponse(success=True, tx_hash=tx_hash)
            return JSONResponse(status_code=200, content=response.to_json_dict(exclude_none=True))

    def _setup_read_endpoints(self) -> None:

        @self.get("/status")
        async def status():
            """Relayer contract address, pause flag, limits and fee wallet."""
            if self.contract.address is None:
                raise NotConfiguredError(
                    public_message="Contract not configured. Please set RELAYER_CONTRACT environment variable."
                )
            with endpoint_errors("Status endpoint error", "Failed to get contract status"):
                is_paused, limits, fee_wallet = await asyncio.gather(
                    self.contract.is_paused(),
                    self.contract.get_limits(),
                    self.contract.get_fee_wallet(),
                )
            return data_response(StatusData(
                contract_address=self.contract.address,
                chain_id=self.contract.chain_id,
                is_paused=is_paused,
                max_transfer_amount=limits.max_transfer,
                max_fee_amount=limits.max_fee,
                fee_wallet=fee_wallet,
            ))

        @self.get("/token/{address}")
        async def token_info(address: str, user: Optional[str] = Query(None)):
            """Whitelist flag for a token, plus balance and allowance of ``user``."""
            if not is_address(address):
                raise RelayValidationError(public_message="Invalid token address format")
            if user is not None and not is_address(user):
                raise RelayValidationError(public_message="Invalid user address format")

            with endpoint_errors("Token info endpoint error", "Failed to get token information",
                                 tokenAddress=address):
                is_whitelisted = await self.contract.is_token_whitelisted(address)

            data = TokenInfoData(address=address, is_whitelisted=is_whitelisted)
            if user is not None:
                try:
                    info = await self.contract.get_token_info(address, user)
                except Exception as e:
                    log_event(LOGGER, logging.WARNING, "Failed to get token info for user",
                              tokenAddress=address, userAddress=user, error=str(e))
                else:
                    data.user_balance = info.balance
                    data.user_allowance = info.allowance
            return JSONResponse(status_code=200, content={
                "success": True,
                "data": data.to_json_dict(exclude_none=True),
            })

        @self.get("/user/{address}")
        async def user_info(address: str):
            """Relayer nonce, rate-limit usage and ban flag of an address."""
            if not is_address(address):
                raise RelayValidationError(public_message="Invalid address format")

            with endpoint_errors("User info endpoint error", "Failed to get user information",
                                 address=address):
                nonce = await self.contract.get_user_nonce(address)

            stats = self.rate_limiter.get_usage_stats(address)
            return data_response(UserInfoData(
                nonce=nonce,
                usage_stats=UsageStatsData(
                    request_count=stats.request_count,
                    gas_used=stats.gas_used,
                    reset_time=stats.reset_time,
                    gas_reset_time=stats.gas_reset_time,
                ) if stats is not None else None,
                is_banned=self.rate_limiter.is_banned(address),
            ))

        @self.get("/tx/{tx_hash}")
        async def transaction_status(tx_hash: str):
            """Status of a submitted relay transaction."""
            if not is_tx_hash(tx_hash):
                raise RelayValidationError(public_message="Invalid transaction hash format")

            with endpoint_errors("Transaction status endpoint error", "Failed to get transaction status",
                                 txHash=tx_hash):
                info = await self.contract.get_transaction_status(tx_hash)
            if info is None:
                raise NotFoundError(public_message="Transaction not found")

            data = TransactionData(
                hash=info.hash,
                status=info.status,
                block_number=info.block_number,
                gas_used=info.gas_used,
                confirmations=info.confirmations,
            )
            return JSONResponse(status_code=200, content={
                "success": True,
                "data": data.to_json_dict(exclude_none=True),
            })

    def _setup_fee_endpoint(self, path: str = "/calculate-fee") -> None:

        @self.post(path)
        async def calculate_fee(request: Request):
            """Quote the fee a relay of ``transferAmount`` must carry."""
            try:
                body = await request.json()
            except ValueError:
                raise RelayValidationError(public_message="Missing required parameters")

            required = ("tokenAddress", "transferAmount", "tokenDecimals")
            if not isinstance(body, dict) or any(body.get(key) in (None, "") for key in required):
                raise RelayValidationError(public_message="Missing required parameters")

            try:
                quote = FeeQuoteRequest.model_validate(body)
            except ValidationError as e:
                validation_error(LOGGER, path, summarize_validation_errors(e), get_client_ip(request))
                raise RelayValidationError(str(e))
            if quote.transfer_amount <= 0:
                raise RelayValidationError(public_message="Transfer amount must be greater than 0")

            with endpoint_errors("Fee calculation error", "Failed to calculate fees",
                                 tokenAddress=quote.token_address):
                breakdown = await self.fee_calculator.calculate_required_fee(
                    quote.token_address, quote.transfer_amount, quote.token_decimals
                )
            return JSONResponse(status_code=200, content=FeeQuoteResponse(fee_breakdown=breakdown).to_json_dict())
