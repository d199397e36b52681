"""
Event-driven mint workflow with typed events and clear data flow.

Events carry their own data (including the immutable MintRequest snapshot),
handlers return next events, and collaborators are injected separately from
business data through the Dependencies container.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Callable, Optional, Awaitable, AsyncGenerator

from pydantic import BaseModel, ConfigDict, Field

from ..config import MintConfig
from ..ports.bases import ChainReadPort, ChainWritePort, MetadataPublisher, WalletContext
from ..schemas.bases import TransactionHandle, TransactionReceipt
from ..schemas.mint import AllowanceSnapshot, AnalysisResult, MintRequest, UserContext
from .synchronizer import AllowanceSynchronizer
from .watcher import TransactionWatcher

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Trigger Events (External) ====================

class MintRequestedEvent(BaseModel, BaseEvent):
    """External trigger: the user tapped mint."""
    user: UserContext
    analysis: AnalysisResult
    share_proof: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"MintRequestedEvent(fid={self.user.fid})"


# ==================== Workflow Events ====================

class PrerequisitesPassedEvent(BaseModel, BaseEvent):
    """Prerequisites hold and metadata is published; the request is captured."""
    request: MintRequest

    def __repr__(self) -> str:
        return f"PrerequisitesPassedEvent(fid={self.request.fid})"


class ApprovalRequiredEvent(BaseModel, BaseEvent):
    """Allowance is below the mint price; an approval must be sent."""
    request: MintRequest
    allowance: AllowanceSnapshot
    amount: int = Field(..., gt=0)

    def __repr__(self) -> str:
        return f"ApprovalRequiredEvent(allowance={self.allowance.amount}, amount={self.amount})"


class AllowanceSufficientEvent(BaseModel, BaseEvent):
    """Allowance already covers the mint price; approval is skipped."""
    request: MintRequest
    allowance: AllowanceSnapshot

    def __repr__(self) -> str:
        return f"AllowanceSufficientEvent(allowance={self.allowance.amount})"


class ApprovalSubmittedEvent(BaseModel, BaseEvent):
    """Approval transaction was broadcast."""
    request: MintRequest
    handle: TransactionHandle

    def __repr__(self) -> str:
        return f"ApprovalSubmittedEvent(tx={self.handle.tx_hash})"


class ApprovalConfirmedEvent(BaseModel, BaseEvent):
    """Approval transaction was confirmed on-chain."""
    request: MintRequest
    receipt: TransactionReceipt

    def __repr__(self) -> str:
        return f"ApprovalConfirmedEvent(tx={self.receipt.tx_hash})"


class AllowanceSyncedEvent(BaseModel, BaseEvent):
    """Allowance synchronization finished (possibly still short)."""
    request: MintRequest
    allowance: AllowanceSnapshot

    def __repr__(self) -> str:
        return f"AllowanceSyncedEvent(allowance={self.allowance.amount})"


class MintRetryEvent(BaseModel, BaseEvent):
    """Mint hit the allowance race after a confirmed approval; retry once."""
    request: MintRequest
    attempt: int = Field(..., ge=1, description="1-based number of the retry")
    reason: str = ""

    def __repr__(self) -> str:
        return f"MintRetryEvent(attempt={self.attempt})"


class MintSubmittedEvent(BaseModel, BaseEvent):
    """Mint transaction was broadcast."""
    request: MintRequest
    handle: TransactionHandle
    approved: bool = Field(default=False, description="An approval was confirmed in this attempt")
    retries: int = Field(default=0, ge=0)

    def __repr__(self) -> str:
        return f"MintSubmittedEvent(tx={self.handle.tx_hash}, retries={self.retries})"


# ==================== Result Events ====================

class MintConfirmedEvent(BaseModel, BaseEvent):
    """Result: the collectible was minted."""
    request: MintRequest
    receipt: TransactionReceipt

    def __repr__(self) -> str:
        return f"MintConfirmedEvent(tx={self.receipt.tx_hash})"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    config: MintConfig
    reader: ChainReadPort
    writer: ChainWritePort
    wallet: WalletContext
    publisher: MetadataPublisher
    watcher: TransactionWatcher
    synchronizer: AllowanceSynchronizer
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        """Initialize with empty subscribers and hooks."""
        self._subscribers: Dict[type, list[EventHandlerFunc]] = {}
        self._hooks: Dict[type, list[EventHookFunc]] = {}

    def subscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        if event_class not in self._subscribers:
            self._subscribers[event_class] = []
        self._subscribers[event_class].append(handler)

    def hook(self, event_class: type[BaseEvent], hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before subscribers when the event is dispatched.

        Args:
            event_class: The event class to hook into.
            hook_func: The hook function to call when the event is published.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")

        if event_class not in self._hooks:
            self._hooks[event_class] = []
        self._hooks[event_class].append(hook_func)

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.
        Hooks run first, in registration order, then all subscribers run in parallel.

        Args:
            event: The event to dispatch.
            deps: Dependencies container with injected services.

        Yields:
            Results from all subscribers as they complete. Yields nothing if no subscribers are registered.
        """
        for hook in self._hooks.get(type(event), []):
            await hook(event, deps)

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = [asyncio.ensure_future(handler(event, deps)) for handler in handlers]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            # Subscribers never outlive the dispatch that started them
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
