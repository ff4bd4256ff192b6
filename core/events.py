"""
In-process Events
=================

[EVENTS] Two event streams leave the core:
- proof_step:   {step, error, error_kind} on every lifecycle transition
- activity_log: {message, level} for each INFO+ log record

Callers on the event loop use broadcast(); synchronous code (logging handlers,
state transitions) uses publish_nowait(), which schedules delivery on the
running loop and is a no-op without one.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

logger = logging.getLogger(__name__)

PROOF_STEP = "proof_step"
ACTIVITY_LOG = "activity_log"

Payload = Dict[str, Any]
Subscriber = Callable[[Payload], Union[None, Awaitable[None]]]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._lock = asyncio.Lock()
        self._pending: Set["asyncio.Task[None]"] = set()

    async def subscribe(self, event_name: str, callback: Subscriber) -> None:
        async with self._lock:
            self._subscribers.setdefault(event_name, []).append(callback)

    async def unsubscribe(self, event_name: str, callback: Subscriber) -> None:
        async with self._lock:
            if event_name in self._subscribers:
                self._subscribers[event_name] = [cb for cb in self._subscribers[event_name] if cb != callback]

    async def broadcast(self, event_name: str, payload: Payload) -> None:
        async with self._lock:
            callbacks = list(self._subscribers.get(event_name, []))
        for cb in callbacks:
            try:
                result = cb(payload)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                # One broken listener must not starve the others
                logger.exception("[EVENTS] Subscriber for %s failed", event_name)

    def publish_nowait(self, event_name: str, payload: Payload) -> Optional["asyncio.Task[None]"]:
        """Schedule a broadcast from synchronous code. Returns None without a running loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        task = loop.create_task(self.broadcast(event_name, payload))
        # The loop only keeps weak references to tasks
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task


# Global singleton
event_bus = EventBus()
