"""Event hub shared by the transfer executor, the session and the console."""
from typing import Callable, Dict, FrozenSet, List, Optional, Set
import asyncio
import logging

logger = logging.getLogger(__name__)

# name -> listener arguments
SESSION_EVENTS: FrozenSet[str] = frozenset({
    "item_status",     # item
    "item_progress",   # item
    "batch_start",     # index, batch
    "batch_complete",  # index, BatchResult
    "run_finish",      # UploadRun
    "uploaded",        # base_id, urls
    "submitted",       # task_id
    "alert",           # concern, text
})


class EventEmitter:
    """
    Listener registry; sync and async callbacks are both accepted.

    Usage:
        events = EventEmitter()
        unsubscribe = events.on("item_progress", display.on_item_progress)
        await events.emit("item_progress", item)
        unsubscribe()
    """

    def __init__(self, known_events: Optional[FrozenSet[str]] = SESSION_EVENTS):
        self._known = known_events
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = asyncio.Lock()
        self._scheduled: Set[asyncio.Task] = set()

    def _check(self, event_name: str) -> None:
        if self._known is not None and event_name not in self._known:
            raise ValueError(f"Unknown event: {event_name}")

    def on(self, event_name: str, callback: Callable) -> Callable[[], None]:
        """Subscribe to an event; returns a function that unsubscribes."""
        self._check(event_name)
        listeners = self._listeners.setdefault(event_name, [])
        if callback not in listeners:
            listeners.append(callback)
        return lambda: self.off(event_name, callback)

    def off(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners.get(event_name)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, ()))

    async def emit(self, event_name: str, *args, **kwargs) -> None:
        """Call every listener in subscription order; listener errors are logged."""
        if not self._listeners.get(event_name):
            return

        async with self._lock:
            for callback in list(self._listeners[event_name]):
                try:
                    if asyncio.iscoroutinefunction(callback):
                        await callback(*args, **kwargs)
                    else:
                        callback(*args, **kwargs)
                except Exception as e:
                    logger.error(f"Error in {event_name} listener: {e}")

    def emit_nowait(self, event_name: str, *args, **kwargs) -> None:
        """Schedule an emit from synchronous code running inside the loop."""
        if not self._listeners.get(event_name):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, dropping event {event_name}")
            return
        task = loop.create_task(self.emit(event_name, *args, **kwargs))
        # the loop keeps only weak references to tasks
        self._scheduled.add(task)
        task.add_done_callback(self._scheduled.discard)
