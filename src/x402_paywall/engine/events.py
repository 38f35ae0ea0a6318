"""
Wallet event subscriptions with typed events.

Wallet providers notify account and chain changes through callbacks. The bus
turns those notifications into typed events and fans them out to async
handlers; every subscription returns its own unsubscribe handle.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List, Union

from pydantic import BaseModel, ConfigDict, field_validator

from ..utils import logger

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all wallet events."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Wallet Events ====================

class AccountsChangedEvent(BaseModel, BaseEvent):
    """Wallet exposed a new account list; empty means disconnected."""
    accounts: List[str]

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def address(self) -> Union[str, None]:
        return self.accounts[0] if self.accounts else None

    def __repr__(self) -> str:
        return f"AccountsChangedEvent(accounts={len(self.accounts)})"


class ChainChangedEvent(BaseModel, BaseEvent):
    """Wallet switched to another chain."""
    chain_id: int

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("chain_id", mode="before")
    @classmethod
    def _parse_chain_id(cls, value):
        if isinstance(value, str):
            return int(value, 16) if value.lower().startswith("0x") else int(value)
        return value

    def __repr__(self) -> str:
        return f"ChainChangedEvent(chain_id={self.chain_id})"


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent], Awaitable[None]]
Unsubscribe = Callable[[], None]


class WalletEventBus:
    """Dispatcher for wallet account and chain notifications."""

    def __init__(self) -> None:
        """Initialize with empty subscribers."""
        self._subscribers: Dict[type, List[EventHandlerFunc]] = {}

    def subscribe(self, event_class: type, handler: EventHandlerFunc) -> Unsubscribe:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Returns:
            Unsubscribe: Callable removing this subscription.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        handlers = self._subscribers.setdefault(event_class, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def on_accounts_changed(self, handler: Callable[[AccountsChangedEvent], Awaitable[None]]) -> Unsubscribe:
        return self.subscribe(AccountsChangedEvent, handler)

    def on_chain_changed(self, handler: Callable[[ChainChangedEvent], Awaitable[None]]) -> Unsubscribe:
        return self.subscribe(ChainChangedEvent, handler)

    async def dispatch(self, event: BaseEvent) -> None:
        """
        Dispatch an event to every subscriber of its type, in parallel.

        Args:
            event: The event to dispatch.
        """
        handlers = list(self._subscribers.get(type(event), []))
        if not handlers:
            return
        logger.debug("Dispatching %r to %d handler(s)", event, len(handlers))
        await asyncio.gather(*(handler(event) for handler in handlers))

    async def emit_accounts_changed(self, accounts: List[str]) -> None:
        await self.dispatch(AccountsChangedEvent(accounts=list(accounts or [])))

    async def emit_chain_changed(self, chain_id: Union[int, str]) -> None:
        await self.dispatch(ChainChangedEvent(chain_id=chain_id))
