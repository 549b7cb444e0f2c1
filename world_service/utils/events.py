"""
In-process event bus
Collaborators (faction subsystem, routers, metrics) subscribe to world
notifications by name; the world service publishes with emit().
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


# Notification names
TERRITORY_CONTROL_CHANGED = "territory_control_changed"
EVENT_CREATED = "event_created"
EVENT_EXPIRED = "event_expired"
ECONOMIC_STATE_CHANGED = "economic_state_changed"
PRICES_UPDATED = "prices_updated"
TRANSACTION_COMPLETED = "transaction_completed"

# Inbound triggers raised by the game server bridge
FACTION_CONFLICT = "faction_conflict"
PLAYER_ACTIVITY = "player_activity"
ECONOMIC_CHANGE = "economic_change"


class EventBus:
    """
    Minimal publish/subscribe mechanism
    Handlers may be plain callables or coroutine functions; coroutine
    handlers are scheduled on the running loop and not awaited by emit().
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[..., Any]]] = {}
        self._pending: set = set()

    def on(self, event_name: str, handler: Callable[..., Any]) -> None:
        """Register a handler for an event"""
        self._subscribers.setdefault(event_name, []).append(handler)
        logger.debug(f"[EVENTS] Subscribed {getattr(handler, '__name__', handler)} to {event_name}")

    def off(self, event_name: str, handler: Callable[..., Any]) -> bool:
        """Remove a handler; returns False if it was not registered"""
        handlers = self._subscribers.get(event_name, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._subscribers[event_name]
        return True

    def remove_all_listeners(self, event_name: Optional[str] = None) -> None:
        """Detach every handler, or every handler of one event"""
        if event_name is None:
            self._subscribers.clear()
        else:
            self._subscribers.pop(event_name, None)

    async def cancel_pending(self) -> int:
        """Cancel async handlers still in flight and wait for them to finish"""
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug(f"[EVENTS] Cancelled {len(tasks)} pending async handlers")
        self._pending.clear()
        return len(tasks)

    def listener_count(self, event_name: str) -> int:
        return len(self._subscribers.get(event_name, []))

    def emit(self, event_name: str, *args: Any) -> int:
        """
        Deliver an event to all handlers

        Handler errors are logged and do not stop delivery to the remaining
        handlers.

        Returns:
            Number of handlers the event was delivered to
        """
        handlers = list(self._subscribers.get(event_name, []))
        delivered = 0

        for handler in handlers:
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    self._schedule(event_name, result)
                delivered += 1
            except Exception as e:
                logger.exception(f"[EVENTS] Handler for {event_name} failed: {e}")

        return delivered

    def _schedule(self, event_name: str, awaitable) -> None:
        try:
            task = asyncio.ensure_future(awaitable, loop=asyncio.get_running_loop())
        except RuntimeError:
            # No running loop to deliver the coroutine on
            logger.warning(f"[EVENTS] Dropped async handler for {event_name}: no running event loop")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[EVENTS] Async handler failed: {error}")
