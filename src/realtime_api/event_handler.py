import asyncio
import inspect
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from utils.ml_logging import get_logger

logger = get_logger("realtime_api.event_handler")

EventCallback = Callable[[Any], Any]


class RealtimeEventHandler:
    """
    Manages registration and dispatching of event observers.

    Handlers may be plain functions or coroutine functions; coroutine handlers
    are scheduled as tasks on the running loop so dispatching never blocks.
    """

    def __init__(self) -> None:
        self.event_handlers: Dict[str, List[EventCallback]] = defaultdict(list)

    def on(self, event_name: str, handler: EventCallback) -> EventCallback:
        """
        Register an event handler for a specific event.

        Args:
            event_name (str): Name of the event, or ``"*"`` suffixed wildcard
                names such as ``"server.*"`` dispatched by the emitter.
            handler (Callable): Function or coroutine to handle the event.

        Returns:
            The handler, so it can be passed to :meth:`off` later.
        """
        self.event_handlers[event_name].append(handler)
        logger.debug(f"Handler registered for event: {event_name}")
        return handler

    def off(self, event_name: str, handler: Optional[EventCallback] = None) -> None:
        """Remove one handler, or every handler of ``event_name`` when none is given."""
        if handler is None:
            self.event_handlers.pop(event_name, None)
            return
        handlers = self.event_handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def dispatch(self, event_name: str, event: Any) -> None:
        """
        Dispatch an event to all registered handlers.

        A failing handler is logged and does not prevent the others from running.

        Args:
            event_name (str): Name of the event.
            event: Event payload.
        """
        handlers = list(self.event_handlers.get(event_name, []))
        if handlers:
            logger.debug(f"Dispatching event: {event_name} to {len(handlers)} handler(s)")
        for handler in handlers:
            try:
                if inspect.iscoroutinefunction(handler):
                    asyncio.get_running_loop().create_task(handler(event))
                else:
                    handler(event)
            except Exception as e:
                logger.error(f"Error dispatching event {event_name}: {e}")

    async def wait_for_next(self, event_name: str, timeout: Optional[float] = None) -> Any:
        """
        Wait for the next occurrence of a specific event.

        Args:
            event_name (str): Name of the event to wait for.
            timeout (float, optional): Seconds to wait before raising
                :class:`asyncio.TimeoutError`.

        Returns:
            Event payload.
        """
        future = asyncio.get_running_loop().create_future()

        def handler(event):
            if not future.done():
                future.set_result(event)

        self.on(event_name, handler)
        logger.debug(f"Waiting for next event: {event_name}")
        try:
            return await asyncio.wait_for(future, timeout=timeout)
        finally:
            self.off(event_name, handler)
