"""
Event chain execution engine.

Provides workflow orchestration on top of EventBus, processing events
recursively until no handler returns a further event.
"""

from typing import AsyncGenerator

from .events import BaseEvent, EventBus, Dependencies


class EventChain:
    """Executes event-driven workflows by chaining event handler results.

    Events are yielded as they are produced. Handlers run in the task that
    iterates ``execute()``, so cancelling that task cancels the running
    handler. If a handler raises, the exception is re-raised from
    ``execute()`` after the events that preceded it have been yielded.
    """

    def __init__(
        self,
        event_bus: EventBus,
        deps: Dependencies,
    ) -> None:
        """
        Initialize event chain executor.

        Args:
            event_bus: The event bus to dispatch events through.
            deps: Dependencies container to pass to handlers.
        """
        self.event_bus = event_bus
        self.deps = deps

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Execute event chain starting from initial event.

        Yields:
            Events encountered during chain execution.

        Raises:
            Whatever a handler or hook raised.
        """
        async for event in self._process_event(initial_event):
            yield event

    async def _process_event(self, event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Process single event and recursively handle results.

        Args:
            event: The event to process.

        Yields:
            Events from the chain.
        """
        async for result in self.event_bus.dispatch(event, self.deps):
            if result is None:
                continue
            if isinstance(result, BaseEvent):
                yield result
                async for e in self._process_event(result):
                    yield e
            else:
                raise TypeError(f"Handler returned unsupported type: {type(result).__name__}")
