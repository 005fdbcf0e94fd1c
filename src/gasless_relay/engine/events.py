"""
Event-driven relay workflow with typed events and clear data flow.

Events carry their own data, handlers return next events, and dependencies
are injected separately from business data.

Relay flow:
    RelayRequestEvent -> RelayAdmittedEvent | RelayRejectedEvent
    RelayAdmittedEvent -> RelaySubmittedEvent | RelayFailedEvent
"""

import asyncio
import inspect
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ..adapters.bases import RelayerContract
from ..config import RelaySettings
from ..fees.calculator import FeeCalculator
from ..ratelimit.limiter import RateLimiter
from ..schemas.relay import RelayRequest
from .exceptions import GaslessRelayError

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""


# ==================== Trigger Events (External) ====================

class RelayRequestEvent(BaseModel, BaseEvent):
    """External trigger: raw ``POST /relay`` body from a client."""
    payload: Any
    client_ip: str = "unknown"

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayRequestEvent(client_ip={self.client_ip})"


# ==================== Result Events ====================

class RelayAdmittedEvent(BaseModel, BaseEvent):
    """Result: every admission check passed; ready for submission."""
    request: RelayRequest
    client_ip: str = "unknown"

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayAdmittedEvent(owner={self.request.meta_transfer.owner})"


class RelayRejectedEvent(BaseModel, BaseEvent):
    """Result: an admission step rejected the request."""
    error: GaslessRelayError
    owner: Optional[str] = None
    client_ip: str = "unknown"

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayRejectedEvent(error={self.error.public_message})"


class RelaySubmittedEvent(BaseModel, BaseEvent):
    """Result: the relay transaction was broadcast."""
    request: RelayRequest
    tx_hash: str

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelaySubmittedEvent(tx_hash={self.tx_hash})"


class RelayFailedEvent(BaseModel, BaseEvent):
    """Result: submission raised after admission."""
    request: RelayRequest
    error: Exception

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayFailedEvent(error={type(self.error).__name__})"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    contract: Optional[RelayerContract] = None
    rate_limiter: Optional[RateLimiter] = None
    captcha: Optional[Any] = None
    fee_calculator: Optional[FeeCalculator] = None
    settings: RelaySettings = field(default_factory=RelaySettings)
    clock: Callable[[], float] = time.time


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        self._subscribers: Dict[type, List[EventHandlerFunc]] = {}
        self._hooks: Dict[type, List[EventHookFunc]] = {}

    def subscribe(self, event_class: type, handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")
        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type, hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks run before subscribers when the event is dispatched.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")
        self._hooks.setdefault(event_class, []).append(hook_func)

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.

        Yields:
            Results from all subscribers as they complete. Yields nothing if
            no subscribers are registered.
        """
        hooks = self._hooks.get(type(event), [])
        await asyncio.gather(*(hook(event, deps) for hook in hooks))

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = [handler(event, deps) for handler in handlers]
        for coro in asyncio.as_completed(tasks):
            yield await coro
